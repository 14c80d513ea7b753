from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_root_banner():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["service"] == "Books Service"


def test_health_check_reports_database():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy", "database": "connected"}


def test_request_id_is_echoed_or_generated():
    r = client.get("/books", headers={"X-Request-Id": "abc-123"})
    assert r.headers["X-Request-Id"] == "abc-123"

    r2 = client.get("/books")
    assert r2.headers["X-Request-Id"]


def test_metrics_exposes_request_counter():
    client.get("/books")

    r = client.get("/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text
    assert 'path="/books"' in r.text


def test_openapi_docs_are_served():
    r = client.get("/openapi.json")
    assert r.status_code == 200
    schema = r.json()
    assert schema["info"]["title"] == "Book Directory API"
    assert "/books/{book_id}" in schema["paths"]

    assert client.get("/api-docs").status_code == 200


def test_metrics_label_by_route_template():
    r = client.get("/books/987654")
    assert r.status_code == 404

    text = client.get("/metrics").text
    assert 'path="/books/{book_id}"' in text
    assert 'path="/books/987654"' not in text


def test_invalid_log_level_falls_back_to_info(monkeypatch):
    import importlib

    from app import config

    monkeypatch.setenv("LOG_LEVEL", "verbose")
    importlib.reload(config)
    try:
        assert config.LOG_LEVEL == "INFO"
        assert config.LOG_LEVEL_VALID is False
    finally:
        monkeypatch.delenv("LOG_LEVEL")
        importlib.reload(config)
