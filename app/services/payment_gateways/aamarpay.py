"""
aamarPay

JSON post to jsonpost.php with the store id and signature key. The
optional opt_a..opt_d fields are echoed back on the callback.
"""

from typing import Any, Mapping

from app.services.payment_gateways.base import (
    CallbackOutcome, PaymentGateway, PaymentIntent, RedirectResult, register_gateway, to_decimal,
)


@register_gateway
class AamarPayGateway(PaymentGateway):
    name = "aamarpay"
    display_name = "aamarPay"
    sandbox_base_url = "https://sandbox.aamarpay.com"
    live_base_url = "https://secure.aamarpay.com"

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        payload = {
            "store_id": self.config.get("store_id", ""),
            "signature_key": self.config.get("api_key", ""),
            "tran_id": intent.payment_id,
            "amount": intent.amount_str,
            "currency": intent.currency,
            "desc": intent.description or "Payment",
            "cus_name": intent.customer_name or "Customer",
            "cus_email": intent.customer_email or "customer@example.com",
            "cus_phone": intent.customer_phone or "01700000000",
            "cus_add1": "Bangladesh",
            "cus_city": "Dhaka",
            "cus_country": "Bangladesh",
            "success_url": self.callback_url(intent, "success"),
            "fail_url": self.callback_url(intent, "fail"),
            "cancel_url": self.callback_url(intent, "cancel"),
            "opt_a": intent.return_url,
            "opt_b": intent.tenant_id,
            "opt_c": intent.payment_for,
            "opt_d": intent.customer_id or "",
            "type": "json",
        }

        result = await self.post_json(f"{self.base_url}/jsonpost.php", payload)

        if result.get("payment_url"):
            return RedirectResult(checkout_url=result["payment_url"], raw=result)
        raise self.fail(result.get("error") or "AamarPay initiation failed")

    @classmethod
    def interpret_callback(cls, body: Mapping[str, Any], params: Mapping[str, Any]) -> CallbackOutcome:
        tran_id = body.get("mer_txnid")
        return CallbackOutcome(
            payment_id=tran_id,
            success=body.get("pay_status") == "Successful" or params.get("status") == "success",
            transaction_id=body.get("pg_txnid") or tran_id,
            amount=to_decimal(body.get("amount")),
            return_url=body.get("opt_a"),
            payment_for=body.get("opt_c"),
            customer_id=body.get("opt_d") or None,
        )
