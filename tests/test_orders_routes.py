from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient
from psycopg import errors

from apps.orderdesk.main import app
from apps.orderdesk.routes import orders as orders_routes


def _dec(value) -> Decimal:
    return Decimal(str(value))


LINE = {
    "id": "ln-1",
    "item_id": 7,
    "sku": "SMN-50K",
    "desc": "Semen 50kg",
    "qty": Decimal("2.0000"),
    "unit_price": Decimal("2500.0000"),
    "tax_percentage": Decimal("11.0000"),
    "discount": Decimal("2000.00"),
    "subtotal": Decimal("5000.00"),
    "taxable_base": Decimal("3000.00"),
    "tax": Decimal("330.00"),
    "total": Decimal("3330.00"),
}


def _order(status: str = "DRAFT", *, locked: bool = False, lines: List[dict] | None = None, **overrides: Any) -> Dict[str, Any]:
    order = {
        "id": "ord-1",
        "kind": "PURCHASE",
        "order_no": "PO-202510-0001",
        "party_id": "v-1",
        "warehouse_id": None,
        "order_date": date(2025, 10, 1),
        "due_date": None,
        "currency": "IDR",
        "additional_discount": Decimal("0.00"),
        "expense": Decimal("0.00"),
        "status": status,
        "payment_status": "UNPAID",
        "subtotal": Decimal("3000.00"),
        "total_tax": Decimal("330.00"),
        "grand_total": Decimal("3330.00"),
        "locked_at": datetime(2025, 10, 2, tzinfo=timezone.utc) if locked else None,
        "created_at": datetime(2025, 10, 1, tzinfo=timezone.utc),
        "lines": [dict(LINE)] if lines is None else lines,
    }
    order.update(overrides)
    return order


class Recorder:
    def __init__(self) -> None:
        self.calls: Dict[str, List[tuple]] = {}

    def record(self, name: str, result: Any = None):
        def _fn(*args, **kwargs):
            self.calls.setdefault(name, []).append(args[1:])
            return result
        return _fn


@pytest.fixture()
def rec(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    @contextmanager
    def fake_conn():
        yield object()

    monkeypatch.setattr(orders_routes, "get_conn", fake_conn)
    monkeypatch.setattr(orders_routes, "get_settlement_sums", lambda conn, oid: (Decimal("0"), Decimal("0")))
    return Recorder()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def _serve(monkeypatch: pytest.MonkeyPatch, *orders: Dict[str, Any]) -> None:
    seq = iter(orders)
    monkeypatch.setattr(orders_routes, "get_order_with_lines", lambda conn, oid: next(seq))


CREATE_PAYLOAD = {
    "kind": "PURCHASE",
    "party_id": "v-1",
    "order_date": "2025-10-01",
    "lines": [
        {"item_id": 7, "qty": 2, "unit_price": 2500, "tax_percentage": 11, "discount": 2000},
    ],
}


def test_create_order_computes_totals(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orders_routes, "next_order_no", lambda conn, kind, d: "PO-202510-0001")
    monkeypatch.setattr(orders_routes, "insert_order", rec.record("insert_order", "ord-1"))
    monkeypatch.setattr(orders_routes, "replace_lines", rec.record("replace_lines"))

    resp = client.post("/orders", json=CREATE_PAYLOAD)

    assert resp.status_code == 201
    body = resp.json()
    assert body["order_id"] == "ord-1"
    assert body["order_no"] == "PO-202510-0001"
    assert body["status"] == "DRAFT"
    assert _dec(body["totals"]["grand_total"]) == Decimal("3330")

    (org_id, payload, totals), = rec.calls["insert_order"]
    assert payload["kind"] == "PURCHASE"
    assert totals.total_tax == Decimal("330.00")
    (order_id, rows), = rec.calls["replace_lines"]
    assert order_id == "ord-1"
    assert rows[0]["taxable_base"] == Decimal("3000.00")
    assert rows[0]["total"] == Decimal("3330.00")


def test_create_order_rejects_disagreeing_claims(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orders_routes, "insert_order", rec.record("insert_order", "ord-1"))
    payload = dict(CREATE_PAYLOAD, claimed_totals={"grand_total": "3550"})

    resp = client.post("/orders", json=payload)

    assert resp.status_code == 422
    assert resp.json()["detail"][0]["code"] == "GRAND_TOTAL_MISMATCH"
    assert "insert_order" not in rec.calls


def test_create_order_rejects_empty_lines(client: TestClient, rec: Recorder) -> None:
    resp = client.post("/orders", json=dict(CREATE_PAYLOAD, lines=[]))
    assert resp.status_code == 422


def test_get_missing_order(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orders_routes, "get_order_with_lines", lambda conn, oid: None)
    resp = client.get("/orders/nope")
    assert resp.status_code == 404


def test_patch_draft_recomputes_totals(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order())
    monkeypatch.setattr(orders_routes, "update_order_fields", rec.record("update_order_fields", True))
    monkeypatch.setattr(orders_routes, "store_totals", rec.record("store_totals", True))

    resp = client.patch("/orders/ord-1", json={"additional_discount": "330", "expense": "25"})

    assert resp.status_code == 200
    assert _dec(resp.json()["totals"]["grand_total"]) == Decimal("3025")
    (order_id, fields), = rec.calls["update_order_fields"]
    assert fields == {"additional_discount": Decimal("330"), "expense": Decimal("25")}
    (order_id, totals), = rec.calls["store_totals"]
    assert totals.grand_total == Decimal("3025.00")


def test_patch_finalized_order_is_conflict(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order("ACTIVE", locked=True))
    monkeypatch.setattr(orders_routes, "update_order_fields", rec.record("update_order_fields", True))

    resp = client.patch("/orders/ord-1", json={"expense": "10"})

    assert resp.status_code == 409
    assert "update_order_fields" not in rec.calls


def test_delete_only_drafts(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orders_routes, "delete_order", rec.record("delete_order", True))
    _serve(monkeypatch, _order("COMPLETED", locked=True), _order())

    assert client.delete("/orders/ord-1").status_code == 409
    assert client.delete("/orders/ord-1").status_code == 204
    assert len(rec.calls["delete_order"]) == 1


def test_finalize_locks_totals(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order(), _order("ACTIVE", locked=True))
    monkeypatch.setattr(orders_routes, "lock_totals", rec.record("lock_totals", True))

    resp = client.post("/orders/ord-1/finalize")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ACTIVE"
    assert body["locked"] is True
    assert body["payment_status"] == "UNPAID"
    assert _dec(body["grand_total"]) == Decimal("3330")
    (order_id, totals), = rec.calls["lock_totals"]
    assert totals.subtotal == Decimal("3000.00")
    assert totals.grand_total == Decimal("3330.00")


def test_finalize_empty_order_is_conflict(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order(lines=[]))
    monkeypatch.setattr(orders_routes, "lock_totals", rec.record("lock_totals", True))

    resp = client.post("/orders/ord-1/finalize")

    assert resp.status_code == 409
    assert "lock_totals" not in rec.calls


def test_finalize_twice_is_conflict(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order("ACTIVE", locked=True))
    resp = client.post("/orders/ord-1/finalize")
    assert resp.status_code == 409


def test_locked_totals_are_not_recomputed(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    # stored figures differ from what the lines would give today
    _serve(monkeypatch, _order("ACTIVE", locked=True, grand_total=Decimal("3400.00")))

    resp = client.get("/orders/ord-1/totals")

    assert resp.status_code == 200
    body = resp.json()
    assert _dec(body["grand_total"]) == Decimal("3400")
    assert _dec(body["amount_due"]) == Decimal("3400")


def test_draft_totals_follow_lines(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order(grand_total=None, subtotal=None, total_tax=None, expense=Decimal("20")))

    body = client.get("/orders/ord-1/totals").json()

    assert body["locked"] is False
    assert _dec(body["gross_subtotal"]) == Decimal("5000")
    assert _dec(body["total_line_discount"]) == Decimal("2000")
    assert _dec(body["grand_total"]) == Decimal("3350")


def test_recalculate_only_drafts(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orders_routes, "store_totals", rec.record("store_totals", True))
    _serve(monkeypatch, _order(), _order("ACTIVE", locked=True))

    assert client.post("/orders/ord-1/recalculate").status_code == 200
    assert client.post("/orders/ord-1/recalculate").status_code == 409
    assert len(rec.calls["store_totals"]) == 1


def test_status_endpoint_cannot_activate(client: TestClient, rec: Recorder) -> None:
    resp = client.patch("/orders/ord-1/status", json={"status": "ACTIVE"})
    assert resp.status_code == 409


def test_complete_active_order(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order("ACTIVE", locked=True))
    monkeypatch.setattr(orders_routes, "set_status", rec.record("set_status", True))

    resp = client.patch("/orders/ord-1/status", json={"status": "COMPLETED"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "COMPLETED"
    assert rec.calls["set_status"] == [("ord-1", "COMPLETED")]


def test_payment_on_draft_is_conflict(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order())
    monkeypatch.setattr(orders_routes, "insert_payment", rec.record("insert_payment", "pay-1"))

    resp = client.post("/orders/ord-1/payments", json={"amount": "100"})

    assert resp.status_code == 409
    assert "insert_payment" not in rec.calls


def test_payment_updates_amount_due(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order("ACTIVE", locked=True))
    monkeypatch.setattr(orders_routes, "insert_payment", rec.record("insert_payment", "pay-1"))
    monkeypatch.setattr(orders_routes, "set_payment_status", rec.record("set_payment_status", True))
    monkeypatch.setattr(orders_routes, "get_settlement_sums", lambda conn, oid: (Decimal("1000"), Decimal("0")))

    resp = client.post("/orders/ord-1/payments", json={"amount": "1000", "note": "DP"})

    assert resp.status_code == 201
    body = resp.json()
    assert body["payment_status"] == "HALF_PAID"
    assert _dec(body["total_paid"]) == Decimal("1000")
    assert _dec(body["amount_due"]) == Decimal("2330")
    assert rec.calls["set_payment_status"] == [("ord-1", "HALF_PAID")]


def test_return_reverses_payment(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order("ACTIVE", locked=True))
    monkeypatch.setattr(orders_routes, "insert_return", rec.record("insert_return", "ret-1"))
    monkeypatch.setattr(orders_routes, "set_payment_status", rec.record("set_payment_status", True))
    monkeypatch.setattr(orders_routes, "get_settlement_sums", lambda conn, oid: (Decimal("3330"), Decimal("330")))

    resp = client.post("/orders/ord-1/returns", json={"amount": "330"})

    assert resp.status_code == 201
    body = resp.json()
    assert _dec(body["total_return"]) == Decimal("330")
    assert _dec(body["amount_due"]) == Decimal("330")
    assert body["payment_status"] == "HALF_PAID"


def test_create_order_duplicate_number_is_conflict(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    def taken(*args, **kwargs):
        raise errors.UniqueViolation("duplicate key value violates unique constraint")

    monkeypatch.setattr(orders_routes, "insert_order", taken)
    monkeypatch.setattr(orders_routes, "replace_lines", rec.record("replace_lines"))

    resp = client.post("/orders", json=dict(CREATE_PAYLOAD, order_no="PO-202510-0002"))

    assert resp.status_code == 409
    assert "PO-202510-0002" in resp.json()["detail"]
    assert "replace_lines" not in rec.calls


def test_patch_due_date_before_stored_order_date(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order())
    monkeypatch.setattr(orders_routes, "update_order_fields", rec.record("update_order_fields", True))

    resp = client.patch("/orders/ord-1", json={"due_date": "2025-09-15"})

    assert resp.status_code == 422
    assert "update_order_fields" not in rec.calls


def test_patch_order_date_after_stored_due_date(client: TestClient, rec: Recorder, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, _order(due_date=date(2025, 10, 15)))
    monkeypatch.setattr(orders_routes, "update_order_fields", rec.record("update_order_fields", True))

    resp = client.patch("/orders/ord-1", json={"order_date": "2025-10-20"})

    assert resp.status_code == 422
    assert "update_order_fields" not in rec.calls
