import asyncio
from datetime import date

import pytest

from autoentrepreneur.documents import check_transition
from autoentrepreneur.errors import ValidationError
from conftest import register, make_client, lines


def test_invoice_transitions():
    check_transition("draft", "sent")
    check_transition("sent", "paid")
    check_transition("overdue", "paid")
    for current, new in [("draft", "paid"), ("paid", "cancelled"), ("cancelled", "sent"), ("sent", "draft")]:
        with pytest.raises(ValidationError):
            check_transition(current, new)


@pytest.mark.anyio
async def test_invoice_totals_and_sequential_numbers(client, auth):
    c = await make_client(client, auth)

    r = await client.get("/api/invoices/next-number", headers=auth)
    assert r.json() == {"number": "INV-001"}

    payload = {"client_id": c["id"], "line_items": lines((2, 5000), (1, 3000))}
    r = await client.post("/api/invoices/", json=payload, headers=auth)
    assert r.status_code == 200, r.text
    first = r.json()
    assert first["number"] == "INV-001"
    assert first["status"] == "draft"
    assert (first["subtotal_cents"], first["vat_amount_cents"], first["total_cents"]) == (13000, 0, 13000)
    assert [l["amount_cents"] for l in first["line_items"]] == [10000, 3000]

    r = await client.post("/api/invoices/", json=payload, headers=auth)
    assert r.json()["number"] == "INV-002"

    # un autre compte repart de 1
    other = await register(client)
    oc = await make_client(client, other)
    r = await client.post("/api/invoices/", json={"client_id": oc["id"], "line_items": lines((1, 1))}, headers=other)
    assert r.json()["number"] == "INV-001"


@pytest.mark.anyio
async def test_invoice_rejects_foreign_or_missing_client(client, auth):
    other = await register(client)
    foreign = await make_client(client, other)
    r = await client.post("/api/invoices/", json={"client_id": foreign["id"], "line_items": lines((1, 1))}, headers=auth)
    assert r.status_code == 403
    r = await client.post("/api/invoices/", json={"client_id": 999999, "line_items": lines((1, 1))}, headers=auth)
    assert r.status_code == 404
    r = await client.post("/api/invoices/", json={"client_id": foreign["id"], "line_items": []}, headers=auth)
    assert r.status_code == 422


@pytest.mark.anyio
async def test_invoice_update_recomputes_totals(client, auth):
    c = await make_client(client, auth)
    inv = (await client.post("/api/invoices/", json={"client_id": c["id"], "line_items": lines((1, 1000))},
                             headers=auth)).json()

    r = await client.patch(f"/api/invoices/{inv['id']}", json={"line_items": lines((3, 1000)), "notes": "Merci"},
                           headers=auth)
    assert r.status_code == 200
    body = r.json()
    assert body["total_cents"] == 3000
    assert body["notes"] == "Merci"
    assert len(body["line_items"]) == 1

    r = await client.get(f"/api/invoices/{inv['id']}/lines", headers=auth)
    assert [l["quantity"] for l in r.json()] == [3]


@pytest.mark.anyio
async def test_invoice_status_flow(client, auth):
    c = await make_client(client, auth)
    inv = (await client.post("/api/invoices/", json={"client_id": c["id"], "line_items": lines((1, 2500))},
                             headers=auth)).json()
    url = f"/api/invoices/{inv['id']}/status"

    r = await client.post(url, json={"status": "paid"}, headers=auth)
    assert r.status_code == 422

    r = await client.post(url, json={"status": "sent"}, headers=auth)
    assert r.json()["status"] == "sent"

    r = await client.post(url, json={"status": "paid", "paid_date": "2024-05-02"}, headers=auth)
    assert r.json()["status"] == "paid"
    assert r.json()["paid_date"] == "2024-05-02"

    r = await client.patch(f"/api/invoices/{inv['id']}", json={"notes": "modif"}, headers=auth)
    assert r.status_code == 422
    r = await client.delete(f"/api/invoices/{inv['id']}", headers=auth)
    assert r.status_code == 422


@pytest.mark.anyio
async def test_invoice_delete_removes_lines(client, auth):
    c = await make_client(client, auth)
    inv = (await client.post("/api/invoices/", json={"client_id": c["id"], "line_items": lines((1, 1))},
                             headers=auth)).json()
    r = await client.delete(f"/api/invoices/{inv['id']}", headers=auth)
    assert r.status_code == 204
    r = await client.get(f"/api/invoices/{inv['id']}/lines", headers=auth)
    assert r.status_code == 404


@pytest.mark.anyio
async def test_invoice_due_date_before_issue_date(client, auth):
    c = await make_client(client, auth)
    r = await client.post("/api/invoices/", json={
        "client_id": c["id"], "issue_date": "2024-03-10", "due_date": "2024-03-01", "line_items": lines((1, 1)),
    }, headers=auth)
    assert r.status_code == 422

    r = await client.post("/api/invoices/", json={
        "client_id": c["id"], "issue_date": "2024-03-10", "line_items": lines((1, 1)),
    }, headers=auth)
    assert r.json()["due_date"] == "2024-04-09"


@pytest.mark.anyio
async def test_idempotent_invoice_keeps_number(client, auth):
    c = await make_client(client, auth)
    headers = {**auth, "Idempotency-Key": "facture-mars"}
    payload = {"client_id": c["id"], "line_items": lines((1, 1000))}
    first = (await client.post("/api/invoices/", json=payload, headers=headers)).json()
    again = (await client.post("/api/invoices/", json=payload, headers=headers)).json()
    assert again["id"] == first["id"]
    assert again["number"] == first["number"] == "INV-001"
    assert len(again["line_items"]) == 1
    r = await client.get("/api/invoices/next-number", headers=auth)
    assert r.json()["number"] == "INV-002"


@pytest.mark.anyio
async def test_quote_conversion(client, auth):
    c = await make_client(client, auth)
    r = await client.post("/api/quotes/", json={"client_id": c["id"], "line_items": lines((4, 2500)),
                                                "terms": "Paiement à 30 jours"}, headers=auth)
    assert r.status_code == 200
    quote = r.json()
    assert quote["number"] == "DEV-001"
    assert quote["total_cents"] == 10000
    assert quote["validity_date"] is not None

    r = await client.post(f"/api/quotes/{quote['id']}/convert", headers=auth)
    assert r.status_code == 422   # pas encore accepté

    await client.patch(f"/api/quotes/{quote['id']}", json={"status": "accepted"}, headers=auth)
    r = await client.post(f"/api/quotes/{quote['id']}/convert", headers=auth)
    assert r.status_code == 200
    invoice = r.json()
    assert invoice["quote_id"] == quote["id"]
    assert invoice["number"] == "INV-001"
    assert invoice["total_cents"] == 10000
    assert invoice["payment_terms"] == "Paiement à 30 jours"
    assert [l["description"] for l in invoice["line_items"]] == ["Prestation 1"]

    r = await client.post(f"/api/quotes/{quote['id']}/convert", headers=auth)
    assert r.status_code == 422
    r = await client.delete(f"/api/quotes/{quote['id']}", headers=auth)
    assert r.status_code == 422


@pytest.mark.anyio
async def test_quote_list_filters(client, auth):
    c = await make_client(client, auth)
    for status in ("draft", "sent", "sent"):
        await client.post("/api/quotes/", json={"client_id": c["id"], "status": status,
                                                "line_items": lines((1, 100))}, headers=auth)
    r = await client.get("/api/quotes/", params={"status": "sent"}, headers=auth)
    assert len(r.json()) == 2
    assert {q["number"] for q in r.json()} == {"DEV-002", "DEV-003"}


@pytest.mark.anyio
async def test_parallel_invoices_get_distinct_numbers(client, auth):
    c = await make_client(client, auth)
    payload = {"client_id": c["id"], "line_items": lines((1, 1000))}

    async def create():
        return await client.post("/api/invoices/", json=payload, headers=auth)

    responses = await asyncio.gather(*(create() for _ in range(4)))
    assert [r.status_code for r in responses] == [200] * 4
    assert sorted(r.json()["number"] for r in responses) == ["INV-001", "INV-002", "INV-003", "INV-004"]

    # le compteur reprend après la rafale
    responses = await asyncio.gather(*(create() for _ in range(3)))
    assert sorted(r.json()["number"] for r in responses) == ["INV-005", "INV-006", "INV-007"]


@pytest.mark.anyio
async def test_update_rejects_null_required_fields(client, auth):
    c = await make_client(client, auth)
    inv = (await client.post("/api/invoices/", json={"client_id": c["id"], "line_items": lines((1, 1))},
                             headers=auth)).json()
    r = await client.patch(f"/api/invoices/{inv['id']}", json={"client_id": None}, headers=auth)
    assert r.status_code == 422
    assert r.json()["detail"] == "client_id cannot be null"

    quote = (await client.post("/api/quotes/", json={"client_id": c["id"], "line_items": lines((1, 1))},
                               headers=auth)).json()
    r = await client.patch(f"/api/quotes/{quote['id']}", json={"status": None}, headers=auth)
    assert r.status_code == 422

    # rien n'a bougé
    r = await client.get(f"/api/invoices/{inv['id']}", headers=auth)
    assert r.json()["client_id"] == c["id"]
    r = await client.get(f"/api/quotes/{quote['id']}", headers=auth)
    assert r.json()["status"] == "draft"


@pytest.mark.anyio
async def test_update_keeps_dates_in_order(client, auth):
    c = await make_client(client, auth)
    inv = (await client.post("/api/invoices/", json={
        "client_id": c["id"], "issue_date": "2024-03-01", "line_items": lines((1, 1)),
    }, headers=auth)).json()
    r = await client.patch(f"/api/invoices/{inv['id']}", json={"due_date": "2024-01-01"}, headers=auth)
    assert r.status_code == 422
    assert r.json()["detail"] == "due_date must not be before issue_date"

    # la date d'émission déplacée après l'échéance existante
    r = await client.patch(f"/api/invoices/{inv['id']}", json={"issue_date": "2024-05-01"}, headers=auth)
    assert r.status_code == 422

    r = await client.patch(f"/api/invoices/{inv['id']}", json={"issue_date": "2024-05-01", "due_date": "2024-05-31"},
                           headers=auth)
    assert r.status_code == 200
    assert r.json()["due_date"] == "2024-05-31"

    quote = (await client.post("/api/quotes/", json={
        "client_id": c["id"], "issue_date": "2024-03-01", "line_items": lines((1, 1)),
    }, headers=auth)).json()
    r = await client.patch(f"/api/quotes/{quote['id']}", json={"validity_date": "2024-02-01"}, headers=auth)
    assert r.status_code == 422
