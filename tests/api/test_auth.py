from unittest.mock import patch

from fastapi import Depends, FastAPI, status
from fastapi.testclient import TestClient

from api.auth import User, get_current_user

app = FastAPI()


@app.get("/test-secure", response_model=User)
def secure_endpoint(current_user: User = Depends(get_current_user)):
    return current_user


client = TestClient(app)

# Patch where 'auth' is used, which is in 'api.auth'
AUTH_MODULE_PATH = 'api.auth.auth'


@patch(f'{AUTH_MODULE_PATH}.verify_id_token')
def test_get_current_user_valid_token(mock_verify_id_token):
    mock_verify_id_token.return_value = {'uid': 'gateway', 'email': 'gateway@example.com'}

    response = client.get("/test-secure", headers={"Authorization": "Bearer fake-token"})

    assert response.status_code == 200
    assert response.json() == {"uid": "gateway", "email": "gateway@example.com"}
    mock_verify_id_token.assert_called_once_with("fake-token")


def test_get_current_user_no_authorization_header():
    response = client.get("/test-secure")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()['detail']['error_code'] == "NOT_AUTHENTICATED"


def test_get_current_user_invalid_bearer_scheme():
    response = client.get("/test-secure", headers={"Authorization": "NotBearer fake-token"})

    # auto_error=False, so our own detail is returned
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()['detail']['error_code'] == "NOT_AUTHENTICATED"


@patch(f'{AUTH_MODULE_PATH}.verify_id_token')
def test_get_current_user_firebase_auth_error(mock_verify_id_token):
    from firebase_admin import auth
    mock_verify_id_token.side_effect = auth.InvalidIdTokenError("Invalid token")

    response = client.get("/test-secure", headers={"Authorization": "Bearer fake-token"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()['detail']['error_code'] == "INVALID_TOKEN"
    assert "Invalid authentication credentials" in response.json()['detail']['message']


@patch(f'{AUTH_MODULE_PATH}.verify_id_token')
def test_get_current_user_firebase_unavailable(mock_verify_id_token):
    mock_verify_id_token.side_effect = RuntimeError("The default Firebase app does not exist")

    response = client.get("/test-secure", headers={"Authorization": "Bearer fake-token"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()['detail']['error_code'] == "AUTH_UNAVAILABLE"
