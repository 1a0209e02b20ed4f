"""
支付宝 Adapter
"""

import asyncio
import base64
import json
from collections.abc import Mapping
from typing import Any, Literal
from urllib.parse import parse_qsl

from alipay.aop.api.AlipayClientConfig import AlipayClientConfig
from alipay.aop.api.DefaultAlipayClient import DefaultAlipayClient
from alipay.aop.api.exception.Exception import RequestException, ResponseException
from alipay.aop.api.request.AlipayTradeAppPayRequest import AlipayTradeAppPayRequest
from alipay.aop.api.request.AlipayTradePagePayRequest import AlipayTradePagePayRequest
from alipay.aop.api.request.AlipayTradePrecreateRequest import AlipayTradePrecreateRequest
from alipay.aop.api.request.AlipayTradeWapPayRequest import AlipayTradeWapPayRequest
from alipay.aop.api.util.SignatureUtils import get_sign_content, verify_with_rsa
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict
from rsa import VerificationError

from unipay.core.constants import Provider, Way
from unipay.core.convert import fen_to_yuan, parse_trade_status, yuan_to_fen
from unipay.core.exceptions import (
    ConfigurationError,
    MalformedPayloadError,
    ProviderBusinessError,
    ProviderTransportError,
    SignatureVerificationError,
)
from unipay.core.logging import get_logger
from unipay.core.settings import Settings, get_settings
from unipay.providers.base import Payer
from unipay.schemas import NoticeParams, Order


logger = get_logger(__name__)

ALIPAY_SUCCESS_CODE = "10000"
SIGN_TYPES = ("RSA2", "RSA")


class AlipayOptions(BaseModel):
    """支付宝配置"""

    model_config = ConfigDict(frozen=True)

    app_id: str
    alipay_public_key: str  # 支付宝公钥
    app_private_key: str  # 应用私钥
    is_production: bool = False
    notify_url: str = ""  # 异步回调地址
    return_url: str = ""  # 同步回调地址
    form_http_method: Literal["GET", "POST"] = "GET"  # GET 返回跳转 url，POST 返回自动提交的 form
    timeout: int = 15

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlipayOptions":
        return cls(
            app_id=settings.alipay_app_id,
            alipay_public_key=settings.alipay_public_key,
            app_private_key=settings.alipay_private_key,
            is_production=not settings.alipay_sandbox,
            notify_url=settings.alipay_notify_url,
            return_url=settings.alipay_return_url,
            timeout=int(settings.provider_timeout),
        )


def _key_der(text: str) -> bytes:
    # 支持 PEM 或裸 base64
    body = "".join(
        line.strip() for line in text.strip().splitlines() if not line.startswith("-----")
    )
    return base64.b64decode(body, validate=True)


def load_public_key(text: str) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_der_public_key(_key_der(text))
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError("支付宝公钥格式错误") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise ConfigurationError("支付宝公钥必须是 RSA 公钥")
    return key


def load_private_key(text: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_der_private_key(_key_der(text), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError("应用私钥格式错误") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError("应用私钥必须是 RSA 私钥")
    return key


def sdk_public_key(key: rsa.RSAPublicKey) -> str:
    """SDK 读取的公钥格式：X.509 SubjectPublicKeyInfo 的裸 base64"""
    der = key.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return base64.b64encode(der).decode()


def sdk_private_key(key: rsa.RSAPrivateKey) -> str:
    """SDK 只认 PKCS#1 私钥（裸 base64），PKCS#8 需先转换"""
    der = key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    return base64.b64encode(der).decode()


def form_to_values(body: bytes | str) -> dict[str, str]:
    """转 application/x-www-form-urlencoded 回调内容到扁平字典"""
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayloadError("回调内容不是 utf-8 编码") from exc
    return dict(parse_qsl(body, keep_blank_values=True))


def sign_content(values: Mapping[str, str]) -> str:
    """待验签字符串：除 sign、sign_type 外的参数按 key 排序后 k=v 以 & 连接"""
    return get_sign_content({k: v for k, v in values.items() if k not in ("sign", "sign_type")})


class AlipayAdapter(Payer):
    """
    支付宝适配器

    form -> 电脑网站支付，跳转 url（或自动提交的 form html）
    wap -> 手机网站支付，跳转 url（或自动提交的 form html）
    app -> 调起 app 用到的参数串
    qrcode -> 二维码内容（当面付预下单）
    """

    def __init__(self, options: AlipayOptions, client: DefaultAlipayClient | None = None):
        if not options.app_id:
            raise ConfigurationError("支付宝配置不完整。请设置 ALIPAY_APP_ID")

        self.options = options
        # 统一转换成 SDK 可读的格式，格式错误在构造时暴露
        self._public_key = sdk_public_key(load_public_key(options.alipay_public_key))
        private_key = sdk_private_key(load_private_key(options.app_private_key))

        if client is None:
            config = AlipayClientConfig(sandbox_debug=not options.is_production)
            config.app_id = options.app_id
            config.app_private_key = private_key
            config.alipay_public_key = self._public_key
            config.timeout = options.timeout
            client = DefaultAlipayClient(alipay_client_config=config)
        self.client = client

    @property
    def provider(self) -> Provider:
        return Provider.alipay

    @property
    def supported_ways(self) -> tuple[Way, ...]:
        return (Way.qrcode, Way.app, Way.form, Way.wap)

    async def verify(self, values: Mapping[str, str]) -> NoticeParams:
        """
        验证支付宝异步通知签名（RSA2 / RSA）

        成功返回回调参数
        """
        sign = values.get("sign")
        if not sign:
            raise SignatureVerificationError("回调缺少签名 sign")

        try:
            # 非 ascii 或非法 base64 都是 ValueError
            base64.b64decode(sign, validate=True)
        except ValueError as exc:
            raise SignatureVerificationError("回调签名格式错误") from exc

        sign_type = values.get("sign_type") or "RSA2"
        if sign_type not in SIGN_TYPES:
            raise SignatureVerificationError(f"不支持的签名类型 {sign_type}")

        try:
            verify_with_rsa(self._public_key, sign_content(values).encode("utf-8"), sign)
        except VerificationError as exc:
            logger.warning(
                "支付宝回调验签失败", out_trade_no=values.get("out_trade_no")
            )
            raise SignatureVerificationError("支付宝回调验签失败") from exc

        return notice_params(values)

    def success(self) -> str:
        return "success"

    async def _dispatch(self, way: Way, order: Order) -> str:
        if way == Way.qrcode:
            return await self._qrcode_call(order)
        if way == Way.app:
            return self._app_call(order)
        if way == Way.form:
            return self._page_call(AlipayTradePagePayRequest(), order, "FAST_INSTANT_TRADE_PAY")
        return self._page_call(AlipayTradeWapPayRequest(), order, "QUICK_WAP_WAY")

    def _trade_biz(self, order: Order, product_code: str | None = None) -> dict[str, Any]:
        # 支付宝金额单位：元（需要从分转换）
        biz_content = {
            "out_trade_no": order.id,
            "total_amount": fen_to_yuan(order.amount),
            "subject": order.title[:256],
        }
        if product_code:
            biz_content["product_code"] = product_code
        return biz_content

    def _page_call(self, request, order: Order, product_code: str) -> str:
        """电脑/手机网站支付：返回跳转 url 或 form html"""
        request.biz_content = self._trade_biz(order, product_code)
        request.notify_url = self.options.notify_url or None
        request.return_url = self.options.return_url or None

        try:
            result = self.client.page_execute(request, http_method=self.options.form_http_method)
        except RequestException as exc:
            raise ProviderTransportError(
                f"支付宝请求签名失败：{exc}", details={"order_id": order.id}
            ) from exc
        logger.info(
            f"[{self.__class__.__name__}] 支付订单创建成功：{order.id=} {product_code=}"
        )
        return result

    def _app_call(self, order: Order) -> str:
        """返回 app 调起支付的参数串"""
        request = AlipayTradeAppPayRequest()
        request.biz_content = self._trade_biz(order, "QUICK_MSECURITY_PAY")
        request.notify_url = self.options.notify_url or None

        try:
            result = self.client.sdk_execute(request)
        except RequestException as exc:
            raise ProviderTransportError(
                f"支付宝请求签名失败：{exc}", details={"order_id": order.id}
            ) from exc
        logger.info(f"[{self.__class__.__name__}] app 支付参数生成成功：{order.id=}")
        return result

    async def _qrcode_call(self, order: Order) -> str:
        """当面付预下单，返回二维码内容"""
        request = AlipayTradePrecreateRequest()
        request.biz_content = self._trade_biz(order)
        request.notify_url = self.options.notify_url or None

        try:
            content = await asyncio.to_thread(self.client.execute, request)
        except RequestException as exc:
            raise ProviderTransportError(
                f"支付宝预下单请求失败：{exc}", details={"order_id": order.id}
            ) from exc
        except ResponseException as exc:
            raise ProviderTransportError(
                f"支付宝预下单响应验签失败：{exc}", details={"order_id": order.id}
            ) from exc

        data = _parse_response(content, "alipay_trade_precreate_response")
        if data.get("code") != ALIPAY_SUCCESS_CODE:
            provider_code = data.get("sub_code") or data.get("code")
            provider_message = data.get("sub_msg") or data.get("msg")
            logger.warning(
                "支付宝预下单失败",
                out_trade_no=order.id,
                code=provider_code,
                msg=provider_message,
            )
            raise ProviderBusinessError(
                f"支付宝预下单失败：{provider_code}:{provider_message}",
                provider_code=provider_code,
                provider_message=provider_message,
            )

        qr_code = data.get("qr_code")
        if not qr_code:
            raise ProviderBusinessError(
                "支付宝预下单未返回 qr_code",
                provider_code=data.get("code"),
                provider_message=data.get("msg"),
            )

        logger.info(f"[{self.__class__.__name__}] 二维码生成成功：{order.id=}")
        return qr_code


def _parse_response(content: Any, method_key: str) -> dict[str, Any]:
    # SDK 返回的 response 可能是字符串或字典，通常结构为 {"alipay_trade_xxx_response": {...}}
    if isinstance(content, (str, bytes)):
        try:
            content = json.loads(content)
        except ValueError as exc:
            raise ProviderTransportError("支付宝响应无法解析") from exc
    if not isinstance(content, dict):
        raise ProviderTransportError("支付宝响应无法解析")
    return content.get(method_key, content)


def notice_params(values: Mapping[str, str]) -> NoticeParams:
    """回调参数 -> NoticeParams"""
    return NoticeParams(
        order_id=values.get("out_trade_no", ""),
        payment_id=values.get("trade_no", ""),  # 支付宝交易号
        trade_status=parse_trade_status(values.get("trade_status")),
        amount=yuan_to_fen(values.get("total_amount")),
    )


# 延迟初始化单例实例（只在首次访问时创建）
_alipay_adapter_instance = None


def get_alipay_adapter() -> AlipayAdapter:
    """获取支付宝适配器单例（配置来自环境变量）"""
    global _alipay_adapter_instance
    if _alipay_adapter_instance is None:
        _alipay_adapter_instance = AlipayAdapter(AlipayOptions.from_settings(get_settings()))
    return _alipay_adapter_instance
