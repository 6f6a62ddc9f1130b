"""Centralized application constants: single source of truth for hardcoded values."""

# --- Session ---
COOKIE_NAME = "reelcut_session"

# --- Roles ---
ROLE_ADMIN = "admin"
ROLE_USER = "user"
ACCOUNT_ROLES = (ROLE_ADMIN, ROLE_USER)

# --- Stripe metadata keys (written at checkout, read back by the webhook) ---
METADATA_ACCOUNT_KEY = "account_id"
METADATA_PLAN_KEY = "plan_id"

# --- Subscription status (mirrors Stripe's subscription.status vocabulary) ---
SUBSCRIPTION_STATUSES = (
    "active",
    "trialing",
    "past_due",
    "canceled",
    "incomplete",
    "incomplete_expired",
    "paused",
    "unpaid",
)
ENTITLED_STATUSES = ("active", "trialing")

# --- Plans ---
PLAN_INTERVALS = ("month", "year")

# --- Payments ---
PAYMENT_STATUSES = ("succeeded", "failed", "pending")
DEFAULT_CURRENCY = "usd"

# --- Stripe event types ---
EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_SUBSCRIPTION_CREATED = "customer.subscription.created"
EVENT_SUBSCRIPTION_UPDATED = "customer.subscription.updated"
EVENT_SUBSCRIPTION_DELETED = "customer.subscription.deleted"
EVENT_INVOICE_PAID = "invoice.payment_succeeded"
EVENT_INVOICE_FAILED = "invoice.payment_failed"

# --- Password policy ---
PASSWORD_MIN_LENGTH = 8
RESET_TOKEN_BYTES = 32

# --- Admin reports ---
RECENT_PAYMENTS_LIMIT = 10
GROWTH_WINDOW_MONTHS = 12

# --- Worker ---
ARQ_MAX_JOBS = 10
ARQ_JOB_TIMEOUT = 300  # seconds
