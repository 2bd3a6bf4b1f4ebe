"""Integration tests for the payment and settings HTTP endpoints."""
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.auth.jwt import jwt_auth
from ipspay.models.payment_intent import PaymentIntent
from tests.utils.factories import PaymentIntentFactory


def _become_admin(claims: dict) -> None:
    claims.update({"sub": "op1", "role": "ADMIN"})


def _become_user(claims: dict, sub: str = "u1") -> None:
    claims.update({"sub": sub, "role": "USER"})


async def _add_intent(db_session: AsyncSession, **overrides) -> PaymentIntent:
    intent = PaymentIntent(**PaymentIntentFactory.create(overrides))
    db_session.add(intent)
    await db_session.commit()
    return intent


@pytest.mark.asyncio
async def test_health_check(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_list_plans(async_client: AsyncClient, seeded_plans) -> None:
    response = await async_client.get("/v1/payments/plans")

    assert response.status_code == 200
    plans = response.json()
    assert [p["code"] for p in plans] == ["FREE", "STARTER", "PRO", "UNLIMITED"]
    assert plans[2]["price_monthly"] == 600


@pytest.mark.asyncio
async def test_buy_subscription_returns_qr(async_client: AsyncClient, seeded_plans) -> None:
    response = await async_client.post("/v1/payments/subscription", json={"plan_code": "PRO"})

    assert response.status_code == 201
    data = response.json()
    assert data["amount"] == 600
    assert data["currency"] == "RSD"
    assert data["qr_code"].startswith("data:image/png;base64,")
    assert "I:RSD600,00" in data["qr_text"]
    assert data["qr_text"].endswith(f"RO:97{data['reference_number']}")


@pytest.mark.asyncio
async def test_buy_unknown_plan_returns_structured_404(async_client: AsyncClient, seeded_plans) -> None:
    response = await async_client.post(
        "/v1/payments/subscription",
        json={"plan_code": "GOLD"},
        headers={"X-Request-ID": "req_plan_404"},
    )

    assert response.status_code == 404
    data = response.json()
    assert data["error"] == "NotFound"
    assert data["details"][0]["code"] == "plan_not_found"
    assert data["request_id"] == "req_plan_404"
    assert data["remediation"]


@pytest.mark.asyncio
async def test_topup_validation_error(async_client: AsyncClient) -> None:
    response = await async_client.post("/v1/payments/topup", json={"amount": 0})

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert data["details"][0]["code"] == "invalid_amount"


@pytest.mark.asyncio
async def test_topup_and_listing_purchases(async_client: AsyncClient) -> None:
    topup = await async_client.post("/v1/payments/topup", json={"amount": 200})
    priority = await async_client.post("/v1/payments/priority", json={"listing_id": "listing-1"})
    urgent = await async_client.post("/v1/payments/urgent", json={"listing_id": "listing-1"})

    assert topup.status_code == 201
    assert topup.json()["amount"] == 200
    assert priority.json()["amount"] == 150
    assert urgent.json()["amount"] == 300


@pytest.mark.asyncio
async def test_payment_status_is_private_to_payer(async_client: AsyncClient, current_claims: dict) -> None:
    opened = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})
    payment_id = opened.json()["payment_id"]

    own = await async_client.get(f"/v1/payments/{payment_id}")
    assert own.status_code == 200
    assert own.json()["status"] == "pending"
    assert own.json()["effective_status"] == "pending"
    assert own.json()["purpose"] == "contact_reveal"

    _become_user(current_claims, sub="u2")
    other = await async_client.get(f"/v1/payments/{payment_id}")
    assert other.status_code == 403
    assert other.json()["error"] == "Forbidden"

    _become_admin(current_claims)
    admin = await async_client.get(f"/v1/payments/{payment_id}")
    assert admin.status_code == 200


@pytest.mark.asyncio
async def test_verify_requires_admin(async_client: AsyncClient) -> None:
    opened = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})

    response = await async_client.post(
        "/v1/payments/verify",
        json={"reference_number": opened.json()["reference_number"], "amount": 30},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_contact_reveal_reconciliation_flow(async_client: AsyncClient, current_claims: dict) -> None:
    """u1 pays 30 for a contact reveal; a second transfer arrives short by 5."""
    opened = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})
    assert opened.status_code == 201
    assert opened.json()["amount"] == 30
    reference = opened.json()["reference_number"]

    _become_admin(current_claims)
    paid = await async_client.post("/v1/payments/verify", json={"reference_number": reference, "amount": 30})
    repeat = await async_client.post("/v1/payments/verify", json={"reference_number": reference, "amount": 30})

    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["verified_by"] == "op1"
    assert repeat.status_code == 200
    assert repeat.json()["status"] == "paid"

    _become_user(current_claims)
    fresh = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-2"})
    fresh_reference = fresh.json()["reference_number"]

    _become_admin(current_claims)
    short = await async_client.post(
        "/v1/payments/verify", json={"reference_number": fresh_reference, "amount": 25}
    )
    assert short.status_code == 422
    assert short.json()["error"] == "AmountMismatch"
    assert short.json()["details"][1]["value"] == 25

    status = await async_client.get(f"/v1/payments/{fresh.json()['payment_id']}")
    assert status.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_verify_late_payment(async_client: AsyncClient, db_session: AsyncSession, current_claims: dict) -> None:
    intent = await _add_intent(db_session, created_at=datetime.utcnow() - timedelta(hours=30), amount=30)
    _become_admin(current_claims)

    before_sweep = await async_client.post(
        "/v1/payments/verify", json={"reference_number": intent.reference_number, "amount": 30}
    )
    sweep = await async_client.post("/v1/payments/admin/sweep")
    after_sweep = await async_client.post(
        "/v1/payments/verify", json={"reference_number": intent.reference_number, "amount": 30}
    )

    assert before_sweep.status_code == 410
    assert before_sweep.json()["error"] == "Expired"
    assert sweep.status_code == 200
    assert sweep.json() == {"expired": 1}
    assert after_sweep.status_code == 409
    assert after_sweep.json()["details"][0]["code"] == "payment_already_terminal"


@pytest.mark.asyncio
async def test_cancel_payment(async_client: AsyncClient) -> None:
    opened = await async_client.post("/v1/payments/priority", json={"listing_id": "listing-1"})
    payment_id = opened.json()["payment_id"]

    cancelled = await async_client.post(f"/v1/payments/{payment_id}/cancel")
    again = await async_client.post(f"/v1/payments/{payment_id}/cancel")

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_history_and_pending_queue(
    async_client: AsyncClient, db_session: AsyncSession, current_claims: dict
) -> None:
    await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})
    await async_client.post("/v1/payments/topup", json={"amount": 100})
    await _add_intent(db_session, payer_id="someone-else")

    history = await async_client.get("/v1/payments/history")
    paid_only = await async_client.get("/v1/payments/history", params={"status": "paid"})

    assert history.status_code == 200
    assert history.json()["total"] == 2
    assert {item["payer_id"] for item in history.json()["items"]} == {"u1"}
    assert paid_only.json()["total"] == 0

    forbidden = await async_client.get("/v1/payments/admin/pending")
    assert forbidden.status_code == 403

    _become_admin(current_claims)
    queue = await async_client.get("/v1/payments/admin/pending")
    assert queue.status_code == 200
    assert queue.json()["total"] == 3


@pytest.mark.asyncio
async def test_site_settings_admin(async_client: AsyncClient, current_claims: dict) -> None:
    user_read = await async_client.get("/v1/settings/CONTACT_REVEAL_PRICE")
    assert user_read.status_code == 403

    _become_admin(current_claims)
    default = await async_client.get("/v1/settings/CONTACT_REVEAL_PRICE")
    assert default.status_code == 200
    assert default.json()["value"] == "30"

    updated = await async_client.put("/v1/settings/CONTACT_REVEAL_PRICE", json={"value": "45"})
    assert updated.status_code == 200
    assert updated.json()["value"] == "45"

    missing = await async_client.get("/v1/settings/NOT_A_SETTING")
    assert missing.status_code == 404

    _become_user(current_claims)
    opened = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})
    assert opened.json()["amount"] == 45


@pytest.mark.asyncio
async def test_bearer_token_authentication(async_client: AsyncClient) -> None:
    from ipspay.api.deps import get_current_user
    from ipspay.main import app

    app.dependency_overrides.pop(get_current_user)

    anonymous = await async_client.post("/v1/payments/contact-reveal", json={"match_id": "match-1"})
    token = jwt_auth.create_access_token("u9", "USER")
    authenticated = await async_client.post(
        "/v1/payments/contact-reveal",
        json={"match_id": "match-1"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert anonymous.status_code == 401
    assert authenticated.status_code == 201
    payment = await async_client.get(
        f"/v1/payments/{authenticated.json()['payment_id']}",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert payment.json()["payer_id"] == "u9"


@pytest.mark.asyncio
async def test_current_subscription_after_verification(
    async_client: AsyncClient, current_claims: dict, seeded_plans
) -> None:
    before = await async_client.get("/v1/payments/subscription/current")
    assert before.status_code == 200
    assert before.json() == {"subscription": None, "credit_balance": 0}

    plan = await async_client.post("/v1/payments/subscription", json={"plan_code": "PRO"})
    topup = await async_client.post("/v1/payments/topup", json={"amount": 100})
    assert topup.json()["amount"] == 100

    _become_admin(current_claims)
    for opened, amount in ((plan, 600), (topup, 100)):
        verified = await async_client.post(
            "/v1/payments/verify",
            json={"reference_number": opened.json()["reference_number"], "amount": amount},
        )
        assert verified.status_code == 200

    _become_user(current_claims)
    after = await async_client.get("/v1/payments/subscription/current")

    data = after.json()
    assert data["credit_balance"] == 5
    assert data["subscription"]["plan_code"] == "PRO"
    assert data["subscription"]["credits_remaining"] == 30
    assert data["subscription"]["status"] == "active"
    assert data["subscription"]["payment_intent_id"] == plan.json()["payment_id"]

    topup_status = await async_client.get(f"/v1/payments/{topup.json()['payment_id']}")
    assert topup_status.json()["credits"] == 5
