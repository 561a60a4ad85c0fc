from __future__ import annotations

# =========================================
# errors.py
# Jove Storefront - Pricing/order error taxonomy
# =========================================
# The pricing core raises these instead of returning 0/None for bad input.
# The web layer maps them to HTTP responses (see app.create_app).
# =========================================


class PricingError(Exception):
    """Base class for everything the pricing core raises."""


class ValidationError(PricingError):
    """Bad customer input: missing required selection, unknown option, bad quantity."""


class ConfigurationError(PricingError):
    """Deployment defect: unknown market, missing currency rate."""


class InvalidOrderError(PricingError):
    """The order cannot be created (e.g. total would be negative)."""


class PromoCodeRejected(ValidationError):
    """A promo code exists but cannot be applied to this order.

    `reason` is a machine code; callers turn it into customer-facing text.
    """

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(f"promo code rejected: {reason}" + (f" ({detail})" if detail else ""))
