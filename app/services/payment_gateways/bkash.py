"""
bKash (tokenized checkout)

token/grant with the merchant username/password headers and the app
key/secret in the body, then checkout/create with the id_token.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)

CHECKOUT_MODE = "0011"
SUCCESS_STATUSES = ("success", "Completed")


@register_gateway
class BkashGateway(PaymentGateway):
    name = "bkash"
    display_name = "bKash"
    sandbox_base_url = "https://tokenized.sandbox.bka.sh/v1.2.0-beta"
    live_base_url = "https://tokenized.pay.bka.sh/v1.2.0-beta"

    async def grant_token(self) -> str:
        result = await self.post_json(
            f"{self.base_url}/tokenized/checkout/token/grant",
            {
                "app_key": self.config.get("app_key", ""),
                "app_secret": self.config.get("app_secret", ""),
            },
            headers={
                "username": self.config.get("username", ""),
                "password": self.config.get("password", ""),
            },
        )
        id_token = result.get("id_token")
        if not id_token:
            raise self.fail("bKash token generation failed")
        return id_token

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        id_token = await self.grant_token()

        payload = {
            "mode": CHECKOUT_MODE,
            "payerReference": intent.customer_phone or "01700000000",
            "callbackURL": self.callback_url(intent, "callback"),
            "amount": intent.amount_str,
            "currency": intent.currency,
            "intent": "sale",
            "merchantInvoiceNumber": intent.payment_id,
        }

        result = await self.post_json(
            f"{self.base_url}/tokenized/checkout/create",
            payload,
            headers={
                "Authorization": id_token,
                "X-APP-Key": self.config.get("app_key", ""),
            },
        )

        if result.get("bkashURL"):
            return RedirectResult(checkout_url=result["bkashURL"], raw=result)
        raise self.fail(result.get("statusMessage") or "bKash initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        bkash_payment_id = body.get("paymentID") or params.get("paymentID")
        status = body.get("status") or params.get("status")
        return CallbackOutcome(
            payment_id=body.get("merchantInvoiceNumber"),
            success=status in SUCCESS_STATUSES,
            transaction_id=body.get("trxID") or bkash_payment_id,
            # bKash does not echo an amount we trust; the stored amount is used
            amount=to_decimal(body.get("amount")),
        )
