"""Braintree payment collaborator.

Only two calls are used: a client-token handshake for the drop-in UI and a
sale that is submitted for settlement immediately.
"""
import logging
from decimal import Decimal
from typing import Optional

import braintree
from braintree.exceptions.braintree_error import BraintreeError
from fastapi import Request

from .config import Settings
from .errors import CollaboratorError

logger = logging.getLogger(__name__)

ENVIRONMENTS = {
    "sandbox": braintree.Environment.Sandbox,
    "production": braintree.Environment.Production,
}


class PaymentGateway:
    def __init__(self, gateway: "braintree.BraintreeGateway"):
        self._gateway = gateway

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        environment = ENVIRONMENTS.get(settings.braintree_environment.lower())
        if environment is None:
            raise CollaboratorError(f"unknown braintree environment: {settings.braintree_environment}")
        try:
            gateway = braintree.BraintreeGateway(
                braintree.Configuration(
                    environment=environment,
                    merchant_id=settings.braintree_merchant_id,
                    public_key=settings.braintree_public_key,
                    private_key=settings.braintree_private_key,
                )
            )
        except BraintreeError as e:
            logger.error("Braintree gateway misconfigured: %r", e)
            raise CollaboratorError("payment gateway is not configured") from e
        return cls(gateway)

    def client_token(self) -> str:
        try:
            return self._gateway.client_token.generate()
        except BraintreeError as e:
            logger.error("Braintree client token request failed: %r", e)
            raise CollaboratorError("payment gateway unavailable") from e

    def charge(self, amount: Decimal, nonce: str) -> dict:
        """Capture ``amount`` against ``nonce``.

        Returns the payment record to store on the order; raises
        CollaboratorError when the gateway declines or cannot be reached.
        """
        try:
            result = self._gateway.transaction.sale({
                "amount": str(amount),
                "payment_method_nonce": nonce,
                "options": {"submit_for_settlement": True},
            })
        except BraintreeError as e:
            logger.error("Braintree sale failed: %r", e)
            raise CollaboratorError("payment gateway unavailable") from e

        if not result.is_success:
            logger.warning("Braintree declined sale of %s: %s", amount, result.message)
            raise CollaboratorError(result.message, message="Payment failed")

        transaction = result.transaction
        return {
            "success": True,
            "transaction_id": transaction.id,
            "status": transaction.status,
            "amount": str(amount),
        }


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway(request: Request) -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway.from_settings(request.app.state.settings)
    return _gateway
