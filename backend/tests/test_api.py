import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from app.config import Settings
from app.core.observability import (
    _percentile,
    global_exception_handler,
    request_logging_middleware,
)


def test_root_and_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["docs"] == "/api/openapi.json"

    for path in ("/health", "/healthz", "/api/health"):
        r = client.get(path)
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["environment"] == "test"
        assert body["time"].endswith("Z")
        assert "uptime_seconds" in body


def test_health_paths_share_one_endpoint(client, monkeypatch):
    from app.api.routes import health
    from app.config import settings
    from app.main import app

    endpoints = {
        route.path: route.endpoint
        for route in app.routes
        if route.path in ("/health", "/healthz", "/api/health")
    }
    assert set(endpoints) == {"/health", "/healthz", "/api/health"}
    assert all(endpoint is health.healthcheck for endpoint in endpoints.values())

    monkeypatch.setattr(settings, "build_version", "2026.10.1")
    for path in endpoints:
        assert client.get(path).json()["version"] == "2026.10.1"


def test_request_id_is_propagated_or_generated(client):
    r = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"

    r = client.get("/api/health")
    assert r.headers.get("X-Request-ID")


def test_unhandled_exceptions_return_structured_500():
    boom_app = FastAPI()
    boom_app.add_exception_handler(Exception, global_exception_handler)
    boom_app.middleware("http")(request_logging_middleware)

    @boom_app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    r = TestClient(boom_app, raise_server_exceptions=False).get(
        "/boom", headers={"X-Request-ID": "req-500"}
    )
    assert r.status_code == 500
    assert r.json() == {
        "detail": "Internal server error. Please try again later.",
        "request_id": "req-500",
        "code": "INTERNAL_SERVER_ERROR",
    }
    assert "kaboom" not in r.text


def test_percentile():
    values = [float(v) for v in range(1, 101)]
    assert _percentile(values, 50) == 51.0
    assert _percentile(values, 99) == 99.0
    assert _percentile([], 95) == 0.0


def test_settings_normalization():
    s = Settings(
        API_V1_STR="api/",
        DATABASE_URL="postgres://user:pw@db.internal:5432/passport",
        CORS_ORIGINS="http://localhost:5173/, https://app.example.com",
        INQUIRY_CODE_PREFIX=" inq ",
        DEFAULT_CURRENCY="eur",
    )
    assert s.api_prefix == "/api"
    assert s.database_url == "postgresql+psycopg://user:pw@db.internal:5432/passport"
    assert s.cors_origins == ["http://localhost:5173", "https://app.example.com"]
    assert s.inquiry_code_prefix == "INQ"
    assert s.default_currency == "EUR"
    assert s.enable_docs is True


def test_settings_cors_origins_json_list():
    s = Settings(CORS_ORIGINS='["https://a.example.com/", "https://b.example.com"]')
    assert s.cors_origins == ["https://a.example.com", "https://b.example.com"]


def test_settings_production_defaults_and_guards():
    s = Settings(
        ENVIRONMENT="production",
        DATABASE_URL="postgresql://user:pw@db.internal/passport",
        CORS_ORIGINS="https://app.example.com",
    )
    assert s.enable_docs is False

    with pytest.raises(ValidationError):
        Settings(
            ENVIRONMENT="production",
            DATABASE_URL="sqlite+pysqlite:///./prod.db",
            CORS_ORIGINS="https://app.example.com",
        )

    with pytest.raises(ValidationError):
        Settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql://user:pw@db.internal/passport",
            CORS_ORIGINS="",
        )


def test_settings_rejects_weak_secret_key():
    with pytest.raises(ValidationError):
        Settings(SECRET_KEY="change-me")
