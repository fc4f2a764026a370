"""Payments provider client."""

from __future__ import annotations

from functools import lru_cache

import stripe

from app.core.config import get_settings


@lru_cache
def get_stripe_client() -> stripe.StripeClient:
    """Process-wide Stripe client, pinned to the configured API version.

    Raises RuntimeError if no secret key is configured.
    """
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise RuntimeError("ORGSYNC_STRIPE_SECRET_KEY is not configured")
    return stripe.StripeClient(
        settings.stripe_secret_key,
        stripe_version=settings.stripe_api_version,
    )
