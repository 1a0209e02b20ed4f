"""
统一支付接入（支付宝 / 微信支付）
"""

from unipay.core.constants import Provider, TradeStatus, Way
from unipay.core.exceptions import (
    ConfigurationError,
    MalformedPayloadError,
    PayException,
    ProviderBusinessError,
    ProviderTransportError,
    SignatureVerificationError,
    UnsupportedChannelError,
    WayNotSupported,
)
from unipay.providers import (
    AlipayAdapter,
    AlipayOptions,
    Payer,
    WeChatPayAdapter,
    WeChatPayOptions,
    get_adapter,
)
from unipay.schemas import NoticeParams, Order

__all__ = [
    "Provider",
    "TradeStatus",
    "Way",
    "Order",
    "NoticeParams",
    "Payer",
    "AlipayAdapter",
    "AlipayOptions",
    "WeChatPayAdapter",
    "WeChatPayOptions",
    "get_adapter",
    "PayException",
    "ConfigurationError",
    "MalformedPayloadError",
    "SignatureVerificationError",
    "UnsupportedChannelError",
    "WayNotSupported",
    "ProviderTransportError",
    "ProviderBusinessError",
]
