"""
Nagad

Nagad's checkout initialize call must carry a request signed with the
merchant private key and sensitive data encrypted with Nagad's public
key. That signing is not implemented, so this gateway refuses to
initiate instead of sending an unsigned request.
"""

from datetime import datetime, timezone
from typing import Dict, Tuple

from app.services.payment_gateways.base import (
    PaymentGateway, PaymentIntent, RedirectResult, register_gateway,
)

API_VERSION = "v-0.2.0"


@register_gateway
class NagadGateway(PaymentGateway):
    name = "nagad"
    display_name = "Nagad"
    sandbox_base_url = "https://sandbox.mynagad.com:10061/remote-payment-gateway-1.0/api/dfs"
    live_base_url = "https://api.mynagad.com/api/dfs"

    def initialize_request(self, intent: PaymentIntent) -> Tuple[str, Dict[str, str]]:
        """URL and headers of the checkout initialize call."""
        merchant_id = self.config.get("merchant_id", "")
        url = f"{self.base_url}/check-out/initialize/{merchant_id}/{intent.payment_id}"
        headers = {
            "Content-Type": "application/json",
            "X-KM-IP-V4": "127.0.0.1",
            "X-KM-Client-Type": "PC_WEB",
            "X-KM-Api-Version": API_VERSION,
            "X-KM-Request-Time": datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S"),
        }
        return url, headers

    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        url, _ = self.initialize_request(intent)
        raise self.fail(
            "Nagad integration is incomplete: request signing is not implemented",
            details={"initialize_url": url},
        )
