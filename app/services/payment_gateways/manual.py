"""
Manual payment

No provider call. The payment stays pending until staff confirm the
transaction id the payer submits.
"""

from app.services.payment_gateways.base import (
    PaymentGateway, PaymentIntent, RedirectResult, register_gateway,
)

MANUAL_PAYMENT_MESSAGE = "Manual payment created. Please complete payment and submit transaction ID."


@register_gateway
class ManualGateway(PaymentGateway):
    name = "manual"
    display_name = "Manual"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        return RedirectResult(checkout_url=None, message=MANUAL_PAYMENT_MESSAGE)
