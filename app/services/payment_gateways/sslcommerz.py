"""
SSLCommerz

Hosted checkout via a form POST to the v4 session API. The payer is
redirected to GatewayPageURL.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)


@register_gateway
class SSLCommerzGateway(PaymentGateway):
    name = "sslcommerz"
    display_name = "SSLCommerz"
    sandbox_base_url = "https://sandbox.sslcommerz.com"
    live_base_url = "https://securepay.sslcommerz.com"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        payload = {
            "store_id": self.config.get("store_id", ""),
            "store_passwd": self.config.get("store_password", ""),
            "total_amount": intent.amount_str,
            "currency": intent.currency,
            "tran_id": intent.payment_id,
            "success_url": self.callback_url(intent, "success"),
            "fail_url": self.callback_url(intent, "fail"),
            "cancel_url": self.callback_url(intent, "cancel"),
            "ipn_url": self.callback_url(intent, "ipn"),
            "cus_name": intent.customer_name or "Customer",
            "cus_email": intent.customer_email or "customer@example.com",
            "cus_phone": intent.customer_phone or "01700000000",
            "cus_add1": "Bangladesh",
            "cus_city": "Dhaka",
            "cus_country": "Bangladesh",
            "shipping_method": "NO",
            "product_name": intent.description or "Payment",
            "product_category": "Service",
            "product_profile": "general",
            # Echoed back on the callback
            "value_a": intent.return_url,
            "value_b": intent.tenant_id,
            "value_c": intent.payment_for,
            "value_d": intent.customer_id or "",
        }

        result = await self.post_form(f"{self.base_url}/gwprocess/v4/api.php", payload)

        if result.get("status") == "SUCCESS" and result.get("GatewayPageURL"):
            return RedirectResult(checkout_url=result["GatewayPageURL"], raw=result)
        raise self.fail(result.get("failedreason") or "SSLCommerz initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        tran_id = body.get("tran_id")
        return CallbackOutcome(
            payment_id=tran_id,
            # "ipn" is the server-to-server notification of a successful payment
            success=params.get("status") in ("success", "ipn"),
            transaction_id=body.get("val_id") or tran_id,
            amount=to_decimal(body.get("amount")),
            return_url=body.get("value_a"),
            payment_for=body.get("value_c"),
            customer_id=body.get("value_d") or None,
        )
