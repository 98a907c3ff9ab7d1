import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from firebase_admin import auth
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class User(BaseModel):
    """Dashboard admin or gateway service account behind a Firebase ID token."""
    uid: str
    email: str | None = None


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error_code": "NOT_AUTHENTICATED", "message": "Not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        decoded_token = auth.verify_id_token(token)
        return User(uid=decoded_token["uid"], email=decoded_token.get("email"))
    except (ValueError, auth.InvalidIdTokenError) as e:
        logger.warning("Rejected ID token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error_code": "INVALID_TOKEN", "message": f"Invalid authentication credentials: {e}"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        # Firebase not initialized, key fetch failures
        logger.error("ID token verification failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "AUTH_UNAVAILABLE", "message": f"Could not validate credentials: {e}"},
        )
