"""
UddoktaPay

Single checkout-v2 call authenticated by the RT-UDDOKTAPAY-API-KEY
header. Our payment id travels in metadata.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)


@register_gateway
class UddoktaPayGateway(PaymentGateway):
    name = "uddoktapay"
    display_name = "UddoktaPay"
    sandbox_base_url = "https://sandbox.uddoktapay.com/api"
    live_base_url = "https://pay.uddoktapay.com/api"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        payload = {
            "full_name": intent.customer_name or "Customer",
            "email": intent.customer_email or "customer@example.com",
            "amount": intent.amount_str,
            "metadata": {
                "payment_id": intent.payment_id,
                "tenant_id": intent.tenant_id,
                "payment_for": intent.payment_for,
                "customer_id": intent.customer_id or "",
                "return_url": intent.return_url,
            },
            "redirect_url": self.callback_url(intent, "success"),
            "cancel_url": self.callback_url(intent, "cancel"),
            "webhook_url": self.callback_url(intent, "ipn"),
        }

        result = await self.post_json(
            f"{self.base_url}/checkout-v2",
            payload,
            headers={"RT-UDDOKTAPAY-API-KEY": self.config.get("api_key", "")},
        )

        if result.get("payment_url"):
            return RedirectResult(checkout_url=result["payment_url"], raw=result)
        raise self.fail(result.get("message") or "UddoktaPay initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        metadata = body.get("metadata") or {}
        invoice_id = body.get("invoice_id") or params.get("invoice_id")
        return CallbackOutcome(
            payment_id=metadata.get("payment_id"),
            success=body.get("status") == "COMPLETED" or params.get("status") == "success",
            transaction_id=body.get("transaction_id") or invoice_id,
            amount=to_decimal(body.get("amount")),
            return_url=metadata.get("return_url"),
            payment_for=metadata.get("payment_for"),
            customer_id=metadata.get("customer_id") or None,
        )
