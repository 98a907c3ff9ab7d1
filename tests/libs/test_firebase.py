import unittest
from unittest.mock import Mock, patch

# Target for patching should be the absolute path to the module
FIREBASE_CLIENT_PATH = 'libs.firebase.client'


def _settings(**overrides):
    values = {
        "firebase_admin_sdk_json": None,
        "firebase_admin_sdk_path": None,
        "firestore_project": None,
        "firestore_database": None,
    }
    values.update(overrides)
    return Mock(**values)


class TestFirebase(unittest.TestCase):

    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin._apps', {})
    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin.initialize_app')
    @patch(f'{FIREBASE_CLIENT_PATH}.credentials.Certificate')
    @patch(f'{FIREBASE_CLIENT_PATH}.get_settings')
    def test_initialize_firebase_app_from_json(self, mock_settings, mock_certificate, mock_initialize_app):
        mock_settings.return_value = _settings(firebase_admin_sdk_json='{"project_id": "hearth"}')

        from libs.firebase.client import initialize_firebase_app
        initialize_firebase_app()

        mock_certificate.assert_called_once_with({"project_id": "hearth"})
        mock_initialize_app.assert_called_once_with(mock_certificate.return_value)

    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin._apps', {})
    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin.initialize_app')
    @patch(f'{FIREBASE_CLIENT_PATH}.get_settings')
    def test_invalid_json_skips_initialization(self, mock_settings, mock_initialize_app):
        mock_settings.return_value = _settings(firebase_admin_sdk_json='not json')

        from libs.firebase.client import initialize_firebase_app
        initialize_firebase_app()

        mock_initialize_app.assert_not_called()

    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin._apps', {"[DEFAULT]": object()})
    @patch(f'{FIREBASE_CLIENT_PATH}.firebase_admin.initialize_app')
    def test_already_initialized_is_noop(self, mock_initialize_app):
        from libs.firebase.client import initialize_firebase_app
        initialize_firebase_app()

        mock_initialize_app.assert_not_called()

    @patch(f'{FIREBASE_CLIENT_PATH}.AsyncClient')
    @patch(f'{FIREBASE_CLIENT_PATH}.get_settings')
    def test_no_project_means_no_client(self, mock_settings, mock_async_client):
        mock_settings.return_value = _settings()

        from libs.firebase.client import get_firestore_async_client

        self.assertIsNone(get_firestore_async_client())
        mock_async_client.assert_not_called()

    @patch(f'{FIREBASE_CLIENT_PATH}.initialize_firebase_app')
    @patch(f'{FIREBASE_CLIENT_PATH}.AsyncClient')
    @patch(f'{FIREBASE_CLIENT_PATH}.get_settings')
    def test_get_firestore_async_client(self, mock_settings, mock_async_client, mock_initialize_app):
        mock_settings.return_value = _settings(firestore_project="hearth-prod", firestore_database="triage")

        from libs.firebase.client import get_firestore_async_client
        client = get_firestore_async_client()

        mock_initialize_app.assert_called_once()
        mock_async_client.assert_called_once_with(project="hearth-prod", database="triage")
        self.assertIsNotNone(client)


if __name__ == '__main__':
    unittest.main()
