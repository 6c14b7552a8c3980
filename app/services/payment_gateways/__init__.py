"""
ISP Manager - Payment Gateways

One module per provider. Importing this package registers every gateway
in GATEWAY_REGISTRY.
"""

from app.services.payment_gateways.base import (
    GATEWAY_REGISTRY,
    CallbackOutcome,
    GatewayConfig,
    PaymentGateway,
    PaymentIntent,
    RedirectResult,
    get_gateway_class,
    is_supported_gateway,
    register_gateway,
)
from app.services.payment_gateways.sslcommerz import SSLCommerzGateway
from app.services.payment_gateways.shurjopay import ShurjoPayGateway
from app.services.payment_gateways.uddoktapay import UddoktaPayGateway
from app.services.payment_gateways.aamarpay import AamarPayGateway
from app.services.payment_gateways.piprapay import PipraPayGateway
from app.services.payment_gateways.bkash import BkashGateway
from app.services.payment_gateways.nagad import NagadGateway
from app.services.payment_gateways.manual import ManualGateway, MANUAL_PAYMENT_MESSAGE

__all__ = [
    "GATEWAY_REGISTRY",
    "CallbackOutcome",
    "GatewayConfig",
    "PaymentGateway",
    "PaymentIntent",
    "RedirectResult",
    "get_gateway_class",
    "is_supported_gateway",
    "register_gateway",
    "SSLCommerzGateway",
    "ShurjoPayGateway",
    "UddoktaPayGateway",
    "AamarPayGateway",
    "PipraPayGateway",
    "BkashGateway",
    "NagadGateway",
    "ManualGateway",
    "MANUAL_PAYMENT_MESSAGE",
]
