"""Payment gateway collaborator (deposits and refunds)"""

import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

import stripe
import structlog

from app.config import settings

logger = structlog.get_logger()


class PaymentError(Exception):
    """Gateway rejected or failed a charge/refund"""


class PaymentGateway(ABC):
    """Abstract payment gateway.

    A deposit is opened with :meth:`charge` and paid by the guest on the
    client. :meth:`is_paid` tells whether that payment went through, and an
    unpaid deposit is released with :meth:`void`.
    """

    @abstractmethod
    async def charge(
        self,
        amount: Decimal,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Open a deposit payment and return the gateway's payment reference"""
        pass

    @abstractmethod
    async def is_paid(self, payment_reference: str) -> bool:
        """True once the guest's payment has succeeded"""
        pass

    @abstractmethod
    async def void(self, payment_reference: str) -> None:
        """Cancel a payment that was never completed"""
        pass

    @abstractmethod
    async def refund(self, payment_reference: str) -> str:
        """Refund a captured payment and return the refund reference"""
        pass


def _money_cents(amount: Decimal) -> int:
    q = Decimal(amount or 0).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int((q * 100).to_integral_value())


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents; the blocking SDK runs in a worker thread"""

    def __init__(self, api_key: Optional[str] = None):
        self.client = stripe.StripeClient(api_key or settings.stripe_secret_key)

    async def charge(
        self,
        amount: Decimal,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        try:
            intent = await asyncio.to_thread(
                self.client.payment_intents.create,
                params={
                    "amount": _money_cents(amount),
                    "currency": (currency or settings.stripe_currency).lower(),
                    "metadata": metadata or {},
                    "automatic_payment_methods": {"enabled": True},
                },
            )
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e

        logger.info("Deposit intent created", payment_intent_id=intent.id)
        return intent.id

    async def is_paid(self, payment_reference: str) -> bool:
        try:
            intent = await asyncio.to_thread(self.client.payment_intents.retrieve, payment_reference)
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e
        return intent.status == "succeeded"

    async def void(self, payment_reference: str) -> None:
        try:
            await asyncio.to_thread(self.client.payment_intents.cancel, payment_reference)
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e

        logger.info("Deposit intent cancelled", payment_intent_id=payment_reference)

    async def refund(self, payment_reference: str) -> str:
        try:
            refund = await asyncio.to_thread(
                self.client.refunds.create,
                params={"payment_intent": payment_reference},
            )
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e

        logger.info("Refund processed", payment_intent_id=payment_reference, refund_id=refund.id)
        return refund.id
