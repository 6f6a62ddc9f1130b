"""Plans, checkout, subscription overview and cancel/resume endpoints."""
import pytest

from conftest import (
    PRICE_PRO_MONTHLY,
    add_subscription,
    auth_headers,
    create_account,
)
from reelcut.services import ledger, stripe_gateway


class FakeStripe:
    """Records gateway calls in place of the Stripe SDK."""

    def __init__(self):
        self.customers: list[dict] = []
        self.sessions: list[dict] = []
        self.modifications: list[tuple[str, bool]] = []
        self.fail = False

    async def create_customer(self, *, email, name, account_id):
        self.customers.append({"email": email, "name": name, "account_id": account_id})
        return f"cus_{len(self.customers)}"

    async def create_checkout_session(self, *, customer_id, price_id, metadata, trial_period_days):
        if self.fail:
            raise RuntimeError("stripe is down")
        self.sessions.append(
            {
                "customer_id": customer_id,
                "price_id": price_id,
                "metadata": metadata,
                "trial_period_days": trial_period_days,
            }
        )
        return f"https://checkout.stripe.test/{len(self.sessions)}"

    async def set_cancel_at_period_end(self, subscription_id, cancel):
        if self.fail:
            raise RuntimeError("stripe is down")
        self.modifications.append((subscription_id, cancel))
        return {
            "id": subscription_id,
            "status": "active",
            "cancel_at_period_end": cancel,
            "cancel_at": 1_762_000_000 if cancel else None,
            "current_period_end": 1_762_000_000,
        }


@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr(stripe_gateway, "create_customer", fake.create_customer)
    monkeypatch.setattr(stripe_gateway, "create_checkout_session", fake.create_checkout_session)
    monkeypatch.setattr(stripe_gateway, "set_cancel_at_period_end", fake.set_cancel_at_period_end)
    return fake


# --- Plans ---


async def test_plans_are_listed_by_price(client, catalog):
    response = await client.get("/api/plans")

    assert response.status_code == 200
    plans = response.json()
    assert [p["id"] for p in plans] == [
        "free-plan", "pro-monthly", "business-monthly", "pro-yearly", "business-yearly",
    ]
    assert plans[1]["price"] == 19.0
    assert plans[1]["videoLimit"] == 100
    assert plans[2]["videoLimit"] is None


# --- Checkout ---


async def test_checkout_requires_session(client, catalog, fake_stripe):
    response = await client.post("/api/checkout", json={"priceId": PRICE_PRO_MONTHLY})

    assert response.status_code == 401
    assert fake_stripe.sessions == []


async def test_checkout_requires_price(client, account, catalog, fake_stripe):
    response = await client.post("/api/checkout", json={"planId": "pro-monthly"}, headers=auth_headers(account))

    assert response.status_code == 400
    assert response.json() == {"error": "Price ID is required"}


async def test_checkout_rejects_unknown_price(client, account, catalog, fake_stripe):
    response = await client.post("/api/checkout", json={"priceId": "price_nope"}, headers=auth_headers(account))

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown price"}
    assert fake_stripe.customers == []


async def test_checkout_creates_customer_once(client, session_factory, account, catalog, fake_stripe):
    headers = auth_headers(account)
    body = {"priceId": PRICE_PRO_MONTHLY, "planId": "pro-monthly"}

    first = await client.post("/api/checkout", json=body, headers=headers)
    second = await client.post("/api/checkout", json=body, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"url": "https://checkout.stripe.test/1"}
    assert second.json() == {"url": "https://checkout.stripe.test/2"}
    assert len(fake_stripe.customers) == 1
    assert fake_stripe.customers[0]["account_id"] == account.id

    session = fake_stripe.sessions[0]
    assert session["customer_id"] == "cus_1"
    assert session["price_id"] == PRICE_PRO_MONTHLY
    assert session["metadata"] == {"account_id": account.id, "plan_id": "pro-monthly"}
    assert session["trial_period_days"] == 14
    assert fake_stripe.sessions[1]["customer_id"] == "cus_1"

    async with session_factory() as db:
        stored = await ledger.get_account(db, account.id)
    assert stored.stripe_customer_id == "cus_1"


async def test_checkout_uses_existing_customer(client, session_factory, catalog, fake_stripe):
    account = await create_account(session_factory, email="paid@example.com", stripe_customer_id="cus_existing")

    response = await client.post("/api/checkout", json={"priceId": PRICE_PRO_MONTHLY}, headers=auth_headers(account))

    assert response.status_code == 200
    assert fake_stripe.customers == []
    assert fake_stripe.sessions[0]["customer_id"] == "cus_existing"
    assert fake_stripe.sessions[0]["metadata"]["plan_id"] == "pro-monthly"


async def test_checkout_failure_is_generic_500(client, account, catalog, fake_stripe):
    fake_stripe.fail = True

    response = await client.post("/api/checkout", json={"priceId": PRICE_PRO_MONTHLY}, headers=auth_headers(account))

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create checkout session"}


async def test_checkout_failure_keeps_linked_customer(client, session_factory, account, catalog, fake_stripe):
    headers = auth_headers(account)
    fake_stripe.fail = True
    failed = await client.post("/api/checkout", json={"priceId": PRICE_PRO_MONTHLY}, headers=headers)

    assert failed.status_code == 500
    assert failed.json() == {"error": "Failed to create checkout session"}
    async with session_factory() as db:
        assert (await ledger.get_account(db, account.id)).stripe_customer_id == "cus_1"

    fake_stripe.fail = False
    retry = await client.post("/api/checkout", json={"priceId": PRICE_PRO_MONTHLY}, headers=headers)

    assert retry.status_code == 200
    assert len(fake_stripe.customers) == 1
    assert fake_stripe.sessions[0]["customer_id"] == "cus_1"


async def test_customer_link_is_set_once(session_factory, account):
    async with session_factory() as db:
        assert await ledger.link_customer(db, account.id, "cus_first") == "cus_first"
        await db.commit()
    async with session_factory() as db:
        assert await ledger.link_customer(db, account.id, "cus_second") == "cus_first"
        await db.commit()
    async with session_factory() as db:
        assert (await ledger.get_account(db, account.id)).stripe_customer_id == "cus_first"


# --- Overview ---


async def test_overview_is_null_without_subscription(client, account, catalog):
    response = await client.get("/api/subscription", headers=auth_headers(account))

    assert response.status_code == 200
    assert response.json() is None


async def test_overview_includes_plan_and_usage(client, session_factory, account, catalog):
    await add_subscription(session_factory, account.id, "pro-monthly", "sub_1")
    headers = auth_headers(account)
    await client.post("/api/usage/videos", headers=headers)

    response = await client.get("/api/subscription", headers=headers)

    body = response.json()
    assert body["subscription"]["stripeSubscriptionId"] == "sub_1"
    assert body["subscription"]["status"] == "active"
    assert body["plan"]["id"] == "pro-monthly"
    assert body["usage"]["videosCreated"] == 1
    assert body["usage"]["limit"] == 100


# --- Cancel / resume ---


async def test_cancel_schedules_at_period_end(client, session_factory, account, catalog, fake_stripe):
    await add_subscription(session_factory, account.id, "pro-monthly", "sub_1")

    response = await client.post(
        "/api/cancel-subscription", json={"subscriptionId": "sub_1"}, headers=auth_headers(account)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["subscription"]["id"] == "sub_1"
    assert body["subscription"]["cancelAtPeriodEnd"] is True
    assert fake_stripe.modifications == [("sub_1", True)]

    # The ledger waits for the webhook
    async with session_factory() as db:
        sub = await ledger.get_subscription_by_stripe_id(db, "sub_1")
    assert sub.cancel_at_period_end is False


async def test_resume_clears_cancellation(client, session_factory, account, catalog, fake_stripe):
    await add_subscription(session_factory, account.id, "pro-monthly", "sub_1")

    response = await client.post(
        "/api/resume-subscription", json={"subscriptionId": "sub_1"}, headers=auth_headers(account)
    )

    assert response.status_code == 200
    assert response.json()["subscription"]["cancelAtPeriodEnd"] is False
    assert fake_stripe.modifications == [("sub_1", False)]


async def test_cancel_someone_elses_subscription_is_404(client, session_factory, account, catalog, fake_stripe):
    other = await create_account(session_factory, email="other@example.com")
    await add_subscription(session_factory, other.id, "pro-monthly", "sub_other")

    response = await client.post(
        "/api/cancel-subscription", json={"subscriptionId": "sub_other"}, headers=auth_headers(account)
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Subscription not found"}
    assert fake_stripe.modifications == []


async def test_cancel_without_reference_is_404(client, account, catalog, fake_stripe):
    response = await client.post("/api/cancel-subscription", json={}, headers=auth_headers(account))

    assert response.status_code == 404
    assert fake_stripe.modifications == []


async def test_cancel_stripe_failure_is_500(client, session_factory, account, catalog, fake_stripe):
    await add_subscription(session_factory, account.id, "pro-monthly", "sub_1")
    fake_stripe.fail = True

    response = await client.post(
        "/api/cancel-subscription", json={"subscriptionId": "sub_1"}, headers=auth_headers(account)
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to cancel subscription"}


async def test_cancel_requires_session(client, fake_stripe):
    response = await client.post("/api/cancel-subscription", json={"subscriptionId": "sub_1"})

    assert response.status_code == 401
