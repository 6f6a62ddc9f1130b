"""
Pytest configuration: isolated SQLite ledger per test, signed Stripe events.
"""
import hashlib
import hmac
import json
import os
import tempfile
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

# Settings are read once and cached; configure the environment before importing the app
os.environ["DEBUG"] = "true"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "reelcut-test.db")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reelcut.app import create_app
from reelcut.config import get_settings
from reelcut.constants import COOKIE_NAME, ROLE_USER
from reelcut.db.session import get_db
from reelcut.models import Account, Base, Subscription
from reelcut.services.auth_service import create_jwt, hash_password
from reelcut.services.catalog import default_plans, seed_plans
from reelcut.utils import now_utc

WEBHOOK_SECRET = "whsec_test_secret"

PRICE_PRO_MONTHLY = "price_pro_monthly"
PRICE_PRO_YEARLY = "price_pro_yearly"
PRICE_BUSINESS_MONTHLY = "price_business_monthly"
PRICE_BUSINESS_YEARLY = "price_business_yearly"

PERIOD_START = 1_760_000_000
PERIOD_END = PERIOD_START + 30 * 86400


# --- Database ---


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def catalog(session_factory) -> dict[str, str]:
    """Seed the standard catalogue with test price ids. Returns price id -> plan id."""
    prices = {
        "pro-monthly": PRICE_PRO_MONTHLY,
        "pro-yearly": PRICE_PRO_YEARLY,
        "business-monthly": PRICE_BUSINESS_MONTHLY,
        "business-yearly": PRICE_BUSINESS_YEARLY,
    }
    plans = default_plans(get_settings())
    for plan in plans:
        if plan["id"] in prices:
            plan["stripe_price_id"] = prices[plan["id"]]
    async with session_factory() as db:
        await seed_plans(db, plans)
    return {price: plan_id for plan_id, price in prices.items()}


# --- App / client ---


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app()

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# --- Accounts ---


async def create_account(
    session_factory,
    email: str = "editor@example.com",
    name: str = "Editor",
    role: str = ROLE_USER,
    password: str | None = None,
    stripe_customer_id: str | None = None,
) -> Account:
    async with session_factory() as db:
        account = Account(
            name=name,
            email=email,
            role=role,
            password_hash=hash_password(password) if password else None,
            stripe_customer_id=stripe_customer_id,
        )
        db.add(account)
        await db.commit()
        return account


@pytest_asyncio.fixture
async def account(session_factory) -> Account:
    return await create_account(session_factory)


def auth_headers(account: Account) -> dict[str, str]:
    return {"Cookie": f"{COOKIE_NAME}={create_jwt(account.id)}"}


async def add_subscription(
    session_factory,
    account_id: str,
    plan_id: str,
    stripe_subscription_id: str = "sub_local",
    status: str = "active",
    period_end: datetime | None = None,
    created_at: datetime | None = None,
) -> Subscription:
    async with session_factory() as db:
        sub = Subscription(
            account_id=account_id,
            plan_id=plan_id,
            stripe_subscription_id=stripe_subscription_id,
            status=status,
            current_period_start=now_utc() - timedelta(days=1),
            current_period_end=period_end or now_utc() + timedelta(days=29),
            created_at=created_at or now_utc(),
        )
        db.add(sub)
        await db.commit()
        return sub


# --- Stripe events ---


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does: HMAC-SHA256 over "t.payload"."""
    ts = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


async def post_event(client: httpx.AsyncClient, event: dict, **sign_kwargs) -> httpx.Response:
    payload = json.dumps(event)
    return await client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, **sign_kwargs), "content-type": "application/json"},
    )


def make_event(event_type: str, obj: dict, created: int | None = None, event_id: str | None = None) -> dict:
    created = created if created is not None else int(time.time())
    return {
        "id": event_id or f"evt_{obj.get('id', 'x')}_{created}",
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {"object": obj},
    }


def subscription_object(
    sub_id: str,
    account_id: str | None,
    price_id: str = PRICE_PRO_MONTHLY,
    status: str = "active",
    cancel_at_period_end: bool = False,
    canceled_at: int | None = None,
    period_start: int = PERIOD_START,
    period_end: int = PERIOD_END,
) -> dict:
    """Subscription payload in the newer API shape (periods on the item)."""
    return {
        "id": sub_id,
        "object": "subscription",
        "status": status,
        "metadata": {"account_id": account_id} if account_id else {},
        "cancel_at_period_end": cancel_at_period_end,
        "canceled_at": canceled_at,
        "trial_start": None,
        "trial_end": None,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": f"si_{sub_id}",
                    "price": {"id": price_id},
                    "current_period_start": period_start,
                    "current_period_end": period_end,
                }
            ],
        },
    }


def invoice_object(
    invoice_id: str,
    sub_id: str | None,
    account_id: str | None = None,
    payment_intent: str | None = None,
    amount_paid: int = 1900,
    amount_due: int = 1900,
    currency: str = "usd",
    nested: bool = False,
) -> dict:
    """Invoice payload; ``nested`` uses the parent.subscription_details shape."""
    details = {"subscription": sub_id, "metadata": {"account_id": account_id} if account_id else {}}
    invoice = {
        "id": invoice_id,
        "object": "invoice",
        "amount_paid": amount_paid,
        "amount_due": amount_due,
        "currency": currency,
        "payment_intent": payment_intent,
    }
    if nested:
        invoice["parent"] = {"type": "subscription_details", "subscription_details": details}
    else:
        invoice["subscription"] = sub_id
        invoice["subscription_details"] = {"metadata": details["metadata"]}
    return invoice


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
