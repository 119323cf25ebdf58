"""End-to-end flows through the HTTP API."""

import json
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from settlement_core.config import settings
from settlement_core.core.exceptions import StoreUnavailable
from settlement_core.core.security import create_access_token
from settlement_core.gateways.base import GatewayEventKind
from settlement_core.services.booking_service import utc_today
from settlement_core.services.settlement_service import SettlementService

from tests.conftest import signed_event, token_for

API = settings.api_prefix


def booking_body(item, days_ahead=10, nights=4, **extra):
    start = utc_today() + timedelta(days=days_ahead)
    return {
        "kind": "HOTEL",
        "item_id": str(item.id),
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=nights)).isoformat(),
        **extra,
    }


async def _book_and_pay(client, seed, **extra):
    response = await client.post(
        f"{API}/bookings/",
        json=booking_body(seed.hotel, amount="400.00", currency="usd", **extra),
        headers=token_for(seed.tourist),
    )
    assert response.status_code == 201, response.text
    booking = response.json()

    response = await client.post(
        f"{API}/payments/intents",
        json={"booking_id": booking["id"]},
        headers=token_for(seed.tourist),
    )
    assert response.status_code == 200, response.text
    return booking, response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_book_pay_settle_and_payout(client, gateway, seed):
    booking, intent = await _book_and_pay(client, seed)
    assert booking["status"] == "PENDING"
    assert intent["booking_id"] == booking["id"]
    assert Decimal(intent["amount"]) == Decimal("400.00")

    payload, headers = signed_event(gateway, intent["intent_id"])
    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"received": True, "outcome": "confirmed", "booking_id": booking["id"]}

    # Redelivery
    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)
    assert response.json()["outcome"] == "duplicate"

    response = await client.get(f"{API}/bookings/{booking['id']}/status", headers=token_for(seed.tourist))
    assert response.json() == {
        "booking_id": booking["id"],
        "status": "CONFIRMED",
        "payment_status": "PAID",
        "message": None,
    }

    response = await client.get(f"{API}/commissions/", headers=token_for(seed.owner))
    commissions = response.json()
    assert commissions["total"] == 1
    assert _amounts(commissions["totals_by_currency"]) == {"USD": Decimal("40.00")}
    assert commissions["commissions"][0]["status"] == "PENDING"

    response = await client.post(f"{API}/payouts/run", json={}, headers=token_for(seed.owner))
    assert response.status_code == 200, response.text
    payout = response.json()
    assert payout["status"] == "SUCCEEDED"
    assert Decimal(payout["amount"]) == Decimal("40.00")
    assert payout["commission_ids"] == [commissions["commissions"][0]["id"]]

    response = await client.get(f"{API}/payouts/", headers=token_for(seed.owner))
    history = response.json()
    assert history["total"] == 1
    assert _amounts(history["paid_by_currency"]) == {"USD": Decimal("40.00")}

    response = await client.get(f"{API}/commissions/?status=processed", headers=token_for(seed.owner))
    assert response.json()["commissions"][0]["transfer_id"] == payout["transfer_id"]


async def test_failed_payment_status_message(client, gateway, seed):
    booking, intent = await _book_and_pay(client, seed)

    payload, headers = signed_event(gateway, intent["intent_id"], GatewayEventKind.FAILED)
    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)
    assert response.json()["outcome"] == "cancelled"

    response = await client.get(f"{API}/bookings/{booking['id']}/status", headers=token_for(seed.tourist))
    body = response.json()
    assert (body["status"], body["payment_status"]) == ("CANCELLED", "FAILED")
    assert body["message"] == "Payment failed. Please try again."


async def test_intent_request_is_idempotent(client, gateway, seed):
    booking, first = await _book_and_pay(client, seed)

    response = await client.post(
        f"{API}/payments/intents",
        json={"booking_id": booking["id"], "amount": "400.00", "currency": "USD"},
        headers=token_for(seed.tourist),
    )
    assert response.json()["intent_id"] == first["intent_id"]
    assert len(gateway.intents) == 1

    response = await client.post(
        f"{API}/payments/intents",
        json={"booking_id": booking["id"], "amount": "10.00"},
        headers=token_for(seed.tourist),
    )
    assert response.status_code == 409


async def test_bad_signature_rejected(client, gateway, seed):
    _, intent = await _book_and_pay(client, seed)
    payload, headers = signed_event(gateway, intent["intent_id"])
    headers[gateway.signature_header] = "0" * 64

    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)

    assert response.status_code == 400
    assert response.json()["retryable"] is False


async def test_unknown_gateway(client):
    response = await client.post(f"{API}/webhooks/paypal", content=b"{}")
    assert response.status_code == 404


async def test_event_without_booking_is_acknowledged(client, gateway):
    payload, headers = signed_event(gateway, "pi_unknown", metadata={})

    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["outcome"] == "not_found"


async def test_unhandled_event_type(client, gateway):
    payload = json.dumps({"id": "evt_1", "type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}).encode()
    headers = {gateway.signature_header: gateway.sign(payload)}

    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["outcome"] == "unhandled"


async def test_transient_failure_asks_for_redelivery(client, gateway, seed, monkeypatch):
    _, intent = await _book_and_pay(client, seed)

    async def store_down(self, event):
        raise StoreUnavailable()

    monkeypatch.setattr(SettlementService, "handle_gateway_event", store_down)
    payload, headers = signed_event(gateway, intent["intent_id"])

    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)

    assert response.status_code == 503
    assert response.json()["retryable"] is True
    assert response.headers["Retry-After"] == "5"


async def test_past_start_date_rejected(client, seed):
    response = await client.post(
        f"{API}/bookings/",
        json=booking_body(seed.hotel, days_ahead=-1),
        headers=token_for(seed.tourist),
    )
    assert response.status_code == 422


async def test_overlapping_booking_conflicts(client, seed):
    first = await client.post(f"{API}/bookings/", json=booking_body(seed.hotel), headers=token_for(seed.tourist))
    assert first.status_code == 201
    assert Decimal(first.json()["amount"]) == Decimal("400.00")

    response = await client.post(
        f"{API}/bookings/",
        json=booking_body(seed.hotel, days_ahead=12),
        headers=token_for(seed.other_tourist),
    )
    assert response.status_code == 409


async def test_cancel_booking(client, seed):
    created = await client.post(f"{API}/bookings/", json=booking_body(seed.hotel), headers=token_for(seed.tourist))
    booking_id = created.json()["id"]

    response = await client.post(f"{API}/bookings/{booking_id}/cancel", headers=token_for(seed.other_tourist))
    assert response.status_code == 403

    response = await client.post(f"{API}/bookings/{booking_id}/cancel", headers=token_for(seed.tourist))
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancelled_by"] == "payer"


async def test_list_bookings(client, seed):
    await client.post(f"{API}/bookings/", json=booking_body(seed.hotel), headers=token_for(seed.tourist))

    response = await client.get(f"{API}/bookings/", headers=token_for(seed.tourist))
    assert response.json()["total"] == 1

    response = await client.get(f"{API}/bookings/", headers=token_for(seed.other_tourist))
    assert response.json()["total"] == 0


async def test_authentication_required(client):
    response = await client.get(f"{API}/bookings/")
    assert response.status_code in (401, 403)

    response = await client.get(f"{API}/bookings/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


async def test_tourists_cannot_see_payouts(client, seed):
    response = await client.get(f"{API}/payouts/", headers=token_for(seed.tourist))
    assert response.status_code == 403


async def test_owner_cannot_pay_out_someone_else(client, seed):
    response = await client.post(
        f"{API}/payouts/run",
        json={"business_id": str(seed.unready_owner.id)},
        headers=token_for(seed.owner),
    )
    assert response.status_code == 403


async def test_resume_unknown_payout(client, seed):
    payout_id = uuid4()
    response = await client.post(f"{API}/payouts/{payout_id}/resume", headers=token_for(seed.admin))
    assert response.status_code == 404

    response = await client.post(f"{API}/payouts/{payout_id}/resume", headers=token_for(seed.owner))
    assert response.status_code == 403


async def test_nothing_to_pay_out(client, seed):
    response = await client.post(f"{API}/payouts/run", json={}, headers=token_for(seed.owner))
    assert response.status_code == 400


async def _settle(client, gateway, seed, currency, days_ahead):
    response = await client.post(
        f"{API}/bookings/",
        json=booking_body(seed.hotel, days_ahead=days_ahead, amount="400.00", currency=currency),
        headers=token_for(seed.tourist),
    )
    response = await client.post(
        f"{API}/payments/intents",
        json={"booking_id": response.json()["id"]},
        headers=token_for(seed.tourist),
    )
    payload, headers = signed_event(gateway, response.json()["intent_id"])
    response = await client.post(f"{API}/webhooks/manual", content=payload, headers=headers)
    assert response.json()["outcome"] == "confirmed"


def _amounts(totals):
    return {code: Decimal(amount) for code, amount in totals.items()}


async def test_totals_are_kept_per_currency(client, gateway, seed):
    await _settle(client, gateway, seed, "USD", days_ahead=10)
    await _settle(client, gateway, seed, "EUR", days_ahead=20)
    await _settle(client, gateway, seed, "EUR", days_ahead=30)

    response = await client.get(f"{API}/commissions/", headers=token_for(seed.owner))
    assert _amounts(response.json()["totals_by_currency"]) == {"USD": Decimal("40.00"), "EUR": Decimal("80.00")}

    response = await client.get(f"{API}/commissions/?currency=eur", headers=token_for(seed.owner))
    assert response.json()["total"] == 2
    assert _amounts(response.json()["totals_by_currency"]) == {"EUR": Decimal("80.00")}

    for currency in ("USD", "EUR"):
        response = await client.post(f"{API}/payouts/run", json={"currency": currency}, headers=token_for(seed.owner))
        assert response.json()["status"] == "SUCCEEDED"

    response = await client.get(f"{API}/payouts/", headers=token_for(seed.owner))
    assert response.json()["total"] == 2
    assert _amounts(response.json()["paid_by_currency"]) == {"USD": Decimal("40.00"), "EUR": Decimal("80.00")}


async def test_token_role_must_match_account(client, seed):
    stale = create_access_token(seed.tourist.id, "hotel_owner")
    response = await client.get(f"{API}/payouts/", headers={"Authorization": f"Bearer {stale}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token role is out of date"


async def test_malformed_claims_rejected(client, seed):
    unknown_role = create_access_token(seed.owner.id, "superuser")
    expired = create_access_token(seed.owner.id, seed.owner.role, expires_delta=timedelta(minutes=-1))

    for token in (unknown_role, expired):
        response = await client.get(f"{API}/payouts/", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
