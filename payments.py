import logging
from abc import ABC, abstractmethod
from typing import Optional

import stripe
from fastapi import HTTPException

logger = logging.getLogger(__name__)

CURRENCY = "usd"


def to_minor_units(price: float) -> int:
    """Dollars to cents, rounded so 19.99 becomes 1999 rather than 1998."""
    return int(round(price * 100))


class PaymentGateway(ABC):
    @abstractmethod
    def create_intent(self, amount: int, currency: str = CURRENCY) -> str:
        """Return the client secret of a new payment intent."""


class StripeGateway(PaymentGateway):
    """Card-only PaymentIntents; the caller completes payment with the client secret."""

    def __init__(self, secret_key: Optional[str]):
        self.secret_key = secret_key

    def create_intent(self, amount: int, currency: str = CURRENCY) -> str:
        if not self.secret_key:
            raise HTTPException(status_code=503, detail="Payments are not configured")
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
            )
        except stripe.StripeError as e:
            logger.error("Payment intent failed: %s", e)
            raise HTTPException(status_code=502, detail="Payment provider error")
        logger.info("Created payment intent %s for %d %s", intent.id, amount, currency)
        return intent.client_secret
