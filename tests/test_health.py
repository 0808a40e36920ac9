# tests/test_health.py

from unittest.mock import patch

from core.config import settings


def test_health_app_reports_integrations(client, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test")
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)

    data = client.get("/health/app").json()

    assert data["status"] == "ok"
    assert data["integrations"]["supabase"] is True
    assert data["integrations"]["stripe"] is True
    assert data["integrations"]["assistant"] is False


def test_health_db_reports_tables(client, db):
    db.seed("permits", {"id": "permit-1"})

    data = client.get("/health/db").json()

    assert data["status"] == "ok"
    assert data["details"]["tables"]["permits"] == {"status": "ok", "rows_found": 1}
    assert data["details"]["tables"]["vendor_profiles"]["rows_found"] == 0


def test_health_db_degraded_when_a_table_fails(client, db):
    real_table = db.table

    def table(name):
        if name == "vendor_profiles":
            raise RuntimeError("relation does not exist")
        return real_table(name)

    with patch.object(db, "table", side_effect=table):
        data = client.get("/health/db").json()

    assert data["status"] == "degraded"
    assert data["details"]["tables"]["vendor_profiles"]["status"] == "error"


def test_health_db_without_credentials(client, db, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", None)

    assert client.get("/health/db").json()["status"] == "not_configured"
