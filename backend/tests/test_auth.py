from __future__ import annotations

import json
import logging
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from agency_billing.core.logging import JsonFormatter
from agency_billing.core.security import create_access_token
from agency_billing.db.session import get_db
from agency_billing.main import app


@pytest.fixture()
def raw_api(db):
    """Client that keeps the real bearer-token dependency."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


def _bearer(**claims) -> dict:
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


def test_missing_token_is_rejected(raw_api):
    assert raw_api.get("/api/invoices").status_code == 401


def test_garbage_token_is_rejected(raw_api):
    response = raw_api.get("/api/invoices", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_expired_token_is_rejected(raw_api):
    token = create_access_token({"sub": "u-1", "role": "ADMIN"}, expires_delta=timedelta(minutes=-5))
    response = raw_api.get("/api/invoices", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_unknown_role_is_rejected(raw_api):
    assert raw_api.get("/api/invoices", headers=_bearer(sub="u-1", role="INTERN")).status_code == 401


def test_token_without_subject_is_rejected(raw_api):
    assert raw_api.get("/api/invoices", headers=_bearer(role="ADMIN")).status_code == 401


def test_valid_token_reaches_route(raw_api):
    response = raw_api.get("/api/invoices", headers=_bearer(sub="u-1", email="pm@agency.test", role="PROJECT_MANAGER"))
    assert response.status_code == 200
    assert response.headers["X-Request-Id"]


def test_employee_token_cannot_record_payment(raw_api, poster_client):
    response = raw_api.post(
        "/api/invoices/payment",
        headers=_bearer(sub="u-2", role="EMPLOYEE"),
        json={"client_id": poster_client.id, "amount": "10", "payment_date": "2026-02-10", "payment_method": "Cash"},
    )
    assert response.status_code == 403


def test_healthz_and_metrics(raw_api):
    assert raw_api.get("/healthz").json() == {"status": "ok", "database": "ok"}

    metrics = raw_api.get("/metrics")
    assert metrics.status_code == 200
    assert "billing_invoices_created" in metrics.text


def test_request_id_is_echoed_and_logged(raw_api, caplog):
    caplog.set_level(logging.INFO, logger="agency_billing.request")

    response = raw_api.get("/api/invoices", headers={**_bearer(sub="u-1", role="ADMIN"), "X-Request-Id": "req-42"})

    assert response.headers["X-Request-Id"] == "req-42"
    record = next(r for r in caplog.records if r.name == "agency_billing.request")
    assert (record.request_id, record.user_id, record.role, record.status_code) == ("req-42", "u-1", "ADMIN", 200)


def test_forbidden_billing_action_is_logged(raw_api, poster_client, caplog):
    caplog.set_level(logging.INFO, logger="agency_billing.security")

    raw_api.post(
        "/api/invoices/payment",
        headers=_bearer(sub="u-2", role="EMPLOYEE"),
        json={"client_id": poster_client.id, "amount": "10", "payment_date": "2026-02-10", "payment_method": "Cash"},
    )

    records = [r for r in caplog.records if r.name == "agency_billing.security"]
    assert [(r.getMessage(), r.user_id, r.status_code) for r in records] == [("billing_action_forbidden", "u-2", 403)]


def test_json_formatter_lifts_billing_fields():
    record = logging.LogRecord("agency_billing.invoices", logging.INFO, __file__, 1, "invoice_created", None, None)
    record.invoice_number = "INV-00007"
    record.client_id = 3
    record.user_id = None

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "invoice_created"
    assert payload["invoice_number"] == "INV-00007"
    assert payload["client_id"] == 3
    assert "user_id" not in payload
