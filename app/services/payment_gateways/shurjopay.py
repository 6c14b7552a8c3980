"""
ShurjoPay

Two calls: get_token for a bearer token and store id, then secret-pay
which returns the checkout_url.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)

SUCCESS_CODE = "1000"


@register_gateway
class ShurjoPayGateway(PaymentGateway):
    name = "shurjopay"
    display_name = "ShurjoPay"
    sandbox_base_url = "https://sandbox.shurjopayment.com/api"
    live_base_url = "https://engine.shurjopayment.com/api"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        token_data = await self.post_json(
            f"{self.base_url}/get_token",
            {
                "username": self.config.get("username", ""),
                "password": self.config.get("password", ""),
            },
        )
        token = token_data.get("token")
        if not token:
            raise self.fail("ShurjoPay token generation failed")

        payload = {
            "prefix": self.config.get("merchant_id", "SP"),
            "token": token,
            "return_url": self.callback_url(intent, "success"),
            "cancel_url": self.callback_url(intent, "cancel"),
            "store_id": token_data.get("store_id"),
            "amount": intent.amount_number,
            "order_id": intent.payment_id,
            "currency": intent.currency,
            "customer_name": intent.customer_name or "Customer",
            "customer_phone": intent.customer_phone or "01700000000",
            "customer_email": intent.customer_email or "customer@example.com",
            "customer_address": "Bangladesh",
            "customer_city": "Dhaka",
            "customer_country": "Bangladesh",
            "customer_postcode": "1000",
            "value1": intent.return_url,
            "value2": intent.tenant_id,
            "value3": intent.payment_for,
            "value4": intent.customer_id or "",
        }

        result = await self.post_json(
            f"{self.base_url}/secret-pay",
            payload,
            headers={"Authorization": f"Bearer {token}"},
        )

        if result.get("checkout_url"):
            return RedirectResult(checkout_url=result["checkout_url"], raw=result)
        raise self.fail("ShurjoPay initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        order_id = body.get("order_id") or body.get("sp_order_id")
        return CallbackOutcome(
            payment_id=order_id,
            success=str(body.get("sp_code", "")) == SUCCESS_CODE or params.get("status") == "success",
            transaction_id=body.get("bank_trx_id") or order_id,
            amount=to_decimal(body.get("amount") or body.get("payable_amount")),
        )
