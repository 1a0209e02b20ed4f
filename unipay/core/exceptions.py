"""
统一异常定义
"""

from typing import Any


class PayException(Exception):
    """支付异常基类"""

    def __init__(
        self,
        message: str,
        code: int = 1000,
        status_code: int = 500,
        details: Any = None,
    ):
        self.message = message
        self.code = code  # 业务错误码
        self.status_code = status_code  # 建议的 HTTP 状态码
        self.details = details
        super().__init__(self.message)


class ConfigurationError(PayException):
    """渠道配置错误（凭证缺失/格式错误）"""

    def __init__(
        self, message: str = "支付渠道配置错误", code: int = 5001, details: Any = None
    ):
        super().__init__(message=message, code=code, status_code=500, details=details)


class MalformedPayloadError(PayException):
    """回调内容无法解析 - 400"""

    def __init__(
        self, message: str = "回调内容格式错误", code: int = 4000, details: Any = None
    ):
        super().__init__(message=message, code=code, status_code=400, details=details)


class SignatureVerificationError(PayException):
    """验签失败 - 400"""

    def __init__(
        self, message: str = "签名验证失败", code: int = 4001, details: Any = None
    ):
        super().__init__(message=message, code=code, status_code=400, details=details)


class UnsupportedChannelError(PayException):
    """不支持的支付方式 - 400"""

    def __init__(
        self, message: str = "不支持的支付方式", code: int = 4002, details: Any = None
    ):
        super().__init__(message=message, code=code, status_code=400, details=details)


WayNotSupported = UnsupportedChannelError


class ProviderTransportError(PayException):
    """支付渠道通信异常（网络/HTTP/响应无法解析）- 502"""

    def __init__(
        self, message: str = "支付渠道通信异常", code: int = 5020, details: Any = None
    ):
        super().__init__(message=message, code=code, status_code=502, details=details)


class ProviderBusinessError(PayException):
    """支付渠道业务失败（渠道已响应但拒绝了请求）- 502"""

    def __init__(
        self,
        message: str = "支付渠道业务失败",
        code: int = 5021,
        details: Any = None,
        *,
        provider_code: str | None = None,
        provider_message: str | None = None,
    ):
        self.provider_code = provider_code
        self.provider_message = provider_message
        super().__init__(message=message, code=code, status_code=502, details=details)
