"""
PipraPay

Bearer-authenticated checkout call. Depending on the API version the
redirect comes back as checkout_url or payment_url.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)

SUCCESS_STATUSES = ("COMPLETED", "SUCCESS")


@register_gateway
class PipraPayGateway(PaymentGateway):
    name = "piprapay"
    display_name = "PipraPay"
    sandbox_base_url = "https://sandbox.piprapay.com/api/v1"
    live_base_url = "https://api.piprapay.com/api/v1"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        payload = {
            "amount": intent.amount_number,
            "currency": intent.currency,
            "order_id": intent.payment_id,
            "customer_name": intent.customer_name or "Customer",
            "customer_email": intent.customer_email or "customer@example.com",
            "customer_phone": intent.customer_phone or "01700000000",
            "description": intent.description or "Payment",
            "success_url": self.callback_url(intent, "success"),
            "cancel_url": self.callback_url(intent, "cancel"),
            "ipn_url": self.callback_url(intent, "ipn"),
            "metadata": {
                "payment_id": intent.payment_id,
                "tenant_id": intent.tenant_id,
                "payment_for": intent.payment_for,
                "customer_id": intent.customer_id or "",
                "return_url": intent.return_url,
            },
        }

        result = await self.post_json(
            f"{self.base_url}/checkout",
            payload,
            headers={"Authorization": f"Bearer {self.config.get('api_key', '')}"},
        )

        checkout_url = result.get("checkout_url") or result.get("payment_url")
        if checkout_url:
            return RedirectResult(checkout_url=checkout_url, raw=result)
        raise self.fail(result.get("message") or "PipraPay initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        metadata = body.get("metadata") or {}
        order_id = body.get("order_id") or metadata.get("payment_id")
        return CallbackOutcome(
            payment_id=order_id,
            success=body.get("status") in SUCCESS_STATUSES or params.get("status") == "success",
            transaction_id=body.get("transaction_id") or order_id,
            amount=to_decimal(body.get("amount")),
            return_url=metadata.get("return_url"),
            payment_for=metadata.get("payment_for"),
            customer_id=metadata.get("customer_id") or None,
        )
