"""
Payer 工厂（根据 Provider 加载配置并实例化）
"""

from unipay.core.constants import Provider
from unipay.core.settings import Settings, get_settings
from .base import Payer
from .alipay import AlipayAdapter, AlipayOptions, get_alipay_adapter
from .wechatpay import WeChatPayAdapter, WeChatPayOptions, get_wechatpay_adapter

# 导出类和获取函数
__all__ = [
    "Payer",
    "AlipayAdapter",
    "AlipayOptions",
    "WeChatPayAdapter",
    "WeChatPayOptions",
    "get_alipay_adapter",
    "get_wechatpay_adapter",
    "get_adapter",
    "create_adapter",
]


def get_adapter(provider: Provider | str) -> Payer:
    """
    根据 Provider 获取对应的适配器单例

    只有在调用此函数时才会初始化对应的适配器，
    避免启动时就要求所有支付渠道的配置
    """
    provider = Provider(provider)
    if provider == Provider.alipay:
        return get_alipay_adapter()
    elif provider == Provider.wechatpay:
        return get_wechatpay_adapter()
    else:
        raise ValueError(f"Unsupported provider: {provider}")


def create_adapter(provider: Provider | str, settings: Settings | None = None) -> Payer:
    """根据配置创建新的适配器实例（不复用单例）"""
    provider = Provider(provider)
    settings = settings or get_settings()
    if provider == Provider.alipay:
        return AlipayAdapter(AlipayOptions.from_settings(settings))
    elif provider == Provider.wechatpay:
        return WeChatPayAdapter(WeChatPayOptions.from_settings(settings))
    else:
        raise ValueError(f"Unsupported provider: {provider}")
