"""HTTP tests for the incoming-invoice webhook."""

import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import WEBHOOK_SECRET
from taxcore.infrastructure.database import InvoiceRecord
from taxcore.main import create_app

URL = "/api/webhooks/incoming-invoice"

ACME_PAYLOAD = {
    "sender": "Acme BV",
    "subject": "Factuur 42",
    "date": "2024-03-01",
    "amount": "€121,00",
}

AUTH = {"x-api-key": WEBHOOK_SECRET}


def stored_invoices(engine) -> list[InvoiceRecord]:
    with Session(engine) as s:
        return list(s.scalars(select(InvoiceRecord)))


class TestIncomingInvoiceSuccess:

    def test_creates_invoice(self, client, account_id, sync_engine):
        response = client.post(URL, json=ACME_PAYLOAD, headers=AUTH)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["invoice_number"] == "2025-001"

        [record] = stored_invoices(sync_engine)
        assert record.id == data["invoice_id"]
        assert record.owner_id == account_id
        assert record.subtotal == Decimal("100.00")
        assert record.vat_amount == Decimal("21.00")
        assert record.total_amount == Decimal("121.00")

    def test_idempotency_key_replays_with_200(self, client, account_id, sync_engine):
        headers = dict(AUTH, **{"Idempotency-Key": "mail-123"})

        first = client.post(URL, json=ACME_PAYLOAD, headers=headers)
        second = client.post(URL, json=ACME_PAYLOAD, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["invoice_id"] == first.json()["invoice_id"]
        assert len(stored_invoices(sync_engine)) == 1

    def test_oversized_amount_is_stored_as_zero(self, client, account_id, sync_engine):
        response = client.post(URL, json=dict(ACME_PAYLOAD, amount="1" * 30), headers=AUTH)

        assert response.status_code == 201
        [record] = stored_invoices(sync_engine)
        assert record.total_amount == Decimal("0")
        assert record.subtotal + record.vat_amount == record.total_amount

    def test_without_key_every_call_creates(self, client, account_id, sync_engine):
        client.post(URL, json=ACME_PAYLOAD, headers=AUTH)
        response = client.post(URL, json=ACME_PAYLOAD, headers=AUTH)

        assert response.json()["invoice_number"] == "2025-002"
        assert len(stored_invoices(sync_engine)) == 2


class TestIncomingInvoiceRejections:
    """Failures return {success: false, error, details?} and store nothing."""

    def test_missing_credential(self, client, account_id, sync_engine):
        response = client.post(URL, json=ACME_PAYLOAD)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}
        assert stored_invoices(sync_engine) == []

    def test_credential_checked_before_body(self, client, account_id):
        response = client.post(
            URL, content=b"{not json", headers={"x-api-key": "wrong", "content-type": "application/json"}
        )
        assert response.status_code == 401

    def test_not_configured_wins_over_bad_body(self, settings, clock, sync_engine):
        settings.webhook_secret = None
        with TestClient(create_app(settings=settings, clock=clock)) as client:
            response = client.post(URL, content=b"{not json", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["error"] == "Webhook not configured"

    def test_invalid_json(self, client, account_id):
        response = client.post(
            URL, content=b"{not json", headers=dict(AUTH, **{"content-type": "application/json"})
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON"

    def test_missing_sender(self, client, account_id, sync_engine):
        payload = {k: v for k, v in ACME_PAYLOAD.items() if k != "sender"}

        response = client.post(URL, json=payload, headers=AUTH)

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Missing required fields"
        assert "sender" in data["details"]
        assert stored_invoices(sync_engine) == []

    def test_no_account(self, client, sync_engine):
        response = client.post(URL, json=ACME_PAYLOAD, headers=AUTH)

        assert response.status_code == 500
        assert response.json()["error"] == "No user found for invoice creation"
        assert stored_invoices(sync_engine) == []

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "OPTIONS"])
    def test_method_not_allowed(self, client, method):
        response = client.request(method, URL)

        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method not allowed"}
        assert response.headers["allow"] == "POST"


class TestHealth:

    def test_reports_database(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"
