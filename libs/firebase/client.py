import json
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import credentials
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.settings import get_settings

logger = structlog.get_logger(__name__)


def initialize_firebase_app():
    """
    Initializes the Firebase Admin SDK using settings from Pydantic.

    Used both for verifying dashboard ID tokens and for Firestore access.
    """
    if firebase_admin._apps:
        return

    settings = get_settings()
    sdk_json_content = settings.firebase_admin_sdk_json
    sdk_json_path = settings.firebase_admin_sdk_path

    cred = None
    if sdk_json_content:
        try:
            cred = credentials.Certificate(json.loads(sdk_json_content))
        except json.JSONDecodeError:
            logger.error("HEARTH_FIREBASE_ADMIN_SDK_JSON is not valid JSON")
            return
    elif sdk_json_path:
        try:
            cred = credentials.Certificate(sdk_json_path)
        except FileNotFoundError:
            logger.error("Firebase credentials file not found", path=sdk_json_path)
            return

    if cred:
        firebase_admin.initialize_app(cred)
        return

    logger.warning("No Firebase credentials found in settings. Assuming emulator or mock environment.")
    try:
        firebase_admin.initialize_app()
    except ValueError:
        # Already initialized, which is fine
        pass


def get_firestore_async_client() -> Optional[AsyncClient]:
    """
    Returns an asynchronous Firestore client, or None when no project is configured.

    Without a client every tenant store falls back to in-memory state.
    """
    settings = get_settings()
    if not settings.firestore_project:
        logger.info("Firestore not configured, tenant data kept in memory")
        return None

    initialize_firebase_app()
    if settings.firestore_database:
        return AsyncClient(project=settings.firestore_project, database=settings.firestore_database)
    return AsyncClient(project=settings.firestore_project)
