"""
ISP Manager - Payment Gateway Base

Common interface for the Bangladeshi payment gateways, the data passed
in and out of them, and the registry the dispatcher looks gateways up in.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Type
from urllib.parse import urlencode

import httpx

from app.utils.error_handling import PaymentGatewayException, UnsupportedGatewayException

logger = logging.getLogger(__name__)


# ===========================================
# DATA CLASSES
# ===========================================

@dataclass
class GatewayConfig:
    """Resolved gateway credentials (tenant row or platform fallback)."""
    gateway: str
    sandbox_mode: bool = True
    config: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        value = self.config.get(key)
        return default if value in (None, "") else value


@dataclass
class PaymentIntent:
    """Everything a gateway needs to start a checkout for one payment."""
    payment_id: str
    tenant_id: str
    amount: Decimal
    currency: str
    payment_for: str
    return_url: str
    callback_url: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    description: Optional[str] = None

    @property
    def amount_str(self) -> str:
        """Amount without trailing zeros: 500.00 -> "500", 500.50 -> "500.5"."""
        normalized = self.amount.normalize()
        return format(normalized, "f")

    @property
    def amount_number(self) -> float:
        return float(self.amount)


@dataclass
class RedirectResult:
    """Result of a successful initiation."""
    checkout_url: Optional[str]
    message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallbackOutcome:
    """What a gateway's callback says about a payment."""
    payment_id: Optional[str]
    success: bool
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    return_url: Optional[str] = None
    payment_for: Optional[str] = None
    customer_id: Optional[str] = None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a callback amount; anything unparseable counts as absent."""
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning(f"Ignoring unparseable callback amount: {value!r}")
        return None


# ===========================================
# GATEWAY INTERFACE
# ===========================================

class PaymentGateway(ABC):
    """
    A payment gateway integration.

    Subclasses set `name` and the sandbox/live base URLs, implement
    `initiate`, and override `interpret_callback` for their callback
    payload. The base class carries the HTTP plumbing.
    """

    name: str = ""
    display_name: str = ""
    sandbox_base_url: str = ""
    live_base_url: str = ""

    def __init__(self, config: GatewayConfig, timeout: float = 30.0):
        self.config = config
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return self.sandbox_base_url if self.config.sandbox_mode else self.live_base_url

    def callback_url(self, intent: PaymentIntent, status: str) -> str:
        """Callback URL for this gateway with the given status."""
        query = urlencode({"gateway": self.name, "status": status})
        return f"{intent.callback_url}?{query}"

    @abstractmethod
    async def initiate(self, intent: PaymentIntent) -> RedirectResult:
        """
        Start a checkout with the provider.

        Returns:
            RedirectResult with the URL the payer should be sent to

        Raises:
            PaymentGatewayException: The provider refused or could not be reached
        """

    @classmethod
    def interpret_callback(
        cls,
        body: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> CallbackOutcome:
        """
        Generic callback reading for gateways without their own format.

        The payment id is taken from the first of order_id, tran_id,
        payment_id, invoice_id and success comes from the status query
        parameter.
        """
        payment_id = (
            body.get("order_id")
            or body.get("tran_id")
            or body.get("payment_id")
            or body.get("invoice_id")
        )
        return CallbackOutcome(
            payment_id=payment_id,
            success=params.get("status") == "success",
            transaction_id=body.get("transaction_id"),
            amount=to_decimal(body.get("amount")),
        )

    def fail(self, message: str, details: Optional[Dict[str, Any]] = None) -> PaymentGatewayException:
        logger.error(f"{self.name} initiation failed: {message}")
        return PaymentGatewayException(gateway=self.name, message=message, details=details)

    async def _request(
        self,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST to the provider and return the parsed JSON body.

        Provider-level errors come back in the body and are left to the
        caller; transport failures and non-JSON responses raise.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=json, data=data, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} request timed out: {url}")
            raise PaymentGatewayException(
                gateway=self.name,
                message=f"{self.display_name or self.name} request timed out",
                original_error=e,
            )
        except httpx.RequestError as e:
            logger.error(f"{self.name} request failed: {e}")
            raise PaymentGatewayException(
                gateway=self.name,
                message=f"{self.display_name or self.name} request failed",
                original_error=e,
            )

        logger.debug(f"{self.name} POST {url}: status={response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise PaymentGatewayException(
                gateway=self.name,
                message=f"{self.display_name or self.name} returned an invalid response",
                original_error=e,
                details={"status_code": response.status_code},
            )
        if not isinstance(result, dict):
            raise PaymentGatewayException(
                gateway=self.name,
                message=f"{self.display_name or self.name} returned an invalid response",
                details={"status_code": response.status_code},
            )
        return result

    async def post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await self._request(url, json=payload, headers=headers)

    async def post_form(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await self._request(url, data=payload, headers=headers)


# ===========================================
# REGISTRY
# ===========================================

GATEWAY_REGISTRY: Dict[str, Type[PaymentGateway]] = {}


def register_gateway(cls: Type[PaymentGateway]) -> Type[PaymentGateway]:
    """Class decorator adding a gateway to GATEWAY_REGISTRY under its name."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} has no gateway name")
    GATEWAY_REGISTRY[cls.name] = cls
    return cls


def get_gateway_class(name: str) -> Type[PaymentGateway]:
    try:
        return GATEWAY_REGISTRY[name]
    except KeyError:
        raise UnsupportedGatewayException(name)


def is_supported_gateway(name: str) -> bool:
    return name in GATEWAY_REGISTRY


