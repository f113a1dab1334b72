from app import main
from app.services.credentials import FirebaseCredentialProvider
from app.services.recipient_store import SqlRecipientStore


def test_home_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Push API running"
    assert payload["status"] == "success"
    assert payload["data"]["service"] == "push-dispatch-backend"


def test_api_info_endpoint(client):
    response = client.get("/api-info")

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "API information"
    assert payload["status"] == "success"
    assert payload["data"]["docs_url"] == "/docs"
    assert payload["data"]["service"] == "Push Dispatch Backend"
    assert payload["data"]["recipient_store"] == "sql"


def test_startup_wires_collaborators(client):
    assert isinstance(main.app.state.recipient_store, SqlRecipientStore)
    assert isinstance(main.app.state.credential_provider, FirebaseCredentialProvider)
