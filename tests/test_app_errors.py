from fastapi.testclient import TestClient

from mindful_ads.main import create_app


def _failing_app():
    app = create_app()

    @app.get("/boom")
    def boom():
        raise RuntimeError("connection string postgres://secret@db leaked")

    return app


def test_unhandled_error_uses_error_envelope():
    with TestClient(_failing_app(), raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}


def test_unknown_route_uses_error_envelope():
    with TestClient(create_app()) as client:
        response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json()["success"] is False
