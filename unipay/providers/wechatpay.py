"""
微信支付 v2 Adapter

https://pay.weixin.qq.com/wiki/doc/api/index.html
"""

import hashlib
import hmac
import json
import secrets
import time
from collections.abc import Mapping
from typing import Any, Literal
from urllib.parse import urlencode
from xml.etree import ElementTree

import httpx
from pydantic import BaseModel, ConfigDict

from unipay.core.constants import WECHAT_SUCCESS, WECHAT_TRADE_STATE, Provider, TradeStatus, Way
from unipay.core.convert import parse_fen, parse_trade_status, yuan_to_fen
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

API_DOMAIN = "https://api.mch.weixin.qq.com"
SANDBOX_API_DOMAIN = "https://api.mch.weixin.qq.com/sandboxnew"

SIGN_TYPE_MD5 = "MD5"
SIGN_TYPE_HMAC_SHA256 = "HMAC-SHA256"

# trade_type
TRADE_TYPE_NATIVE = "NATIVE"
TRADE_TYPE_APP = "APP"
TRADE_TYPE_JSAPI = "JSAPI"
TRADE_TYPE_MWEB = "MWEB"


class WeChatPayOptions(BaseModel):
    """微信支付配置"""

    model_config = ConfigDict(frozen=True)

    app_id: str
    mch_id: str
    api_key: str  # 商户 API 密钥
    notify_url: str = ""
    is_production: bool = False
    mini_app_id: str = ""  # 小程序 appid，为空时使用 app_id
    sign_type: Literal["MD5", "HMAC-SHA256"] = SIGN_TYPE_MD5
    wap_url: str = "//"  # H5 支付 scene_info 中的网站地址
    wap_name: str = ""  # H5 支付 scene_info 中的网站名，为空时使用订单标题
    timeout: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "WeChatPayOptions":
        return cls(
            app_id=settings.wechatpay_appid,
            mch_id=settings.wechatpay_mchid,
            api_key=settings.wechatpay_api_key,
            notify_url=settings.wechatpay_notify_url,
            is_production=not settings.wechatpay_sandbox,
            mini_app_id=settings.wechatpay_mini_appid,
            timeout=settings.provider_timeout,
        )


def nonce_str() -> str:
    return secrets.token_hex(16)


def make_sign(values: Mapping[str, Any], api_key: str, sign_type: str = SIGN_TYPE_MD5) -> str:
    """
    计算 v2 签名

    非空参数按 key 排序后 k=v 以 & 连接，末尾拼接 &key=API密钥，
    MD5 或 HMAC-SHA256 后转大写
    """
    content = "&".join(
        f"{k}={values[k]}"
        for k in sorted(values)
        if k != "sign" and values[k] is not None and str(values[k]) != ""
    )
    content = f"{content}&key={api_key}".encode("utf-8")

    if sign_type == SIGN_TYPE_HMAC_SHA256:
        digest = hmac.new(api_key.encode("utf-8"), content, hashlib.sha256).hexdigest()
    else:
        digest = hashlib.md5(content).hexdigest()
    return digest.upper()


def sign_matches(expected: str, sign: str) -> bool:
    # 按字节比较，sign 可能含非 ascii 字符
    return hmac.compare_digest(expected.encode("utf-8"), sign.upper().encode("utf-8"))


def _cdata(value: Any) -> str:
    # 值内的 ]]> 需拆成两段 CDATA
    return "<![CDATA[" + str(value).replace("]]>", "]]]]><![CDATA[>") + "]]>"


def to_xml(values: Mapping[str, Any]) -> str:
    items = "".join(f"<{k}>{_cdata(v)}</{k}>" for k, v in values.items())
    return f"<xml>{items}</xml>"


def body_to_values(body: bytes | str) -> dict[str, str]:
    """转回调 / 响应的 xml 内容到扁平字典"""
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as exc:
        raise MalformedPayloadError("xml 内容无法解析") from exc
    return {child.tag: child.text or "" for child in root}


class H5SceneInfo(BaseModel):
    """H5 支付场景信息"""

    type: str = "Wap"
    wap_url: str
    wap_name: str

    def dumps(self) -> str:
        return json.dumps({"h5_info": self.model_dump()}, ensure_ascii=False)


class WeChatPayAdapter(Payer):
    """
    微信支付 v2 适配器（统一下单）

    qrcode -> 二维码内容 code_url（NATIVE）
    app -> 调起 app 用到的 url 参数（APP）
    jsapi / mini_program -> 调起支付用到的 json 参数（JSAPI）
    wap -> 跳转 url mweb_url（MWEB）
    """

    def __init__(self, options: WeChatPayOptions, http_client: httpx.AsyncClient | None = None):
        missing = [
            name for name in ("app_id", "mch_id", "api_key") if not getattr(options, name)
        ]
        if missing:
            raise ConfigurationError(
                "微信支付配置不完整。请设置以下环境变量：\n"
                "- WECHATPAY_APPID\n"
                "- WECHATPAY_MCHID\n"
                "- WECHATPAY_API_KEY",
                details={"missing": missing},
            )

        self.options = options
        self.api_domain = API_DOMAIN if options.is_production else SANDBOX_API_DOMAIN
        self.http_client = http_client or httpx.AsyncClient(timeout=options.timeout)

    @property
    def provider(self) -> Provider:
        return Provider.wechatpay

    @property
    def supported_ways(self) -> tuple[Way, ...]:
        return (Way.qrcode, Way.app, Way.jsapi, Way.mini_program, Way.wap)

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def verify(self, values: Mapping[str, str]) -> NoticeParams:
        """验证支付回调签名，成功返回回调参数"""
        sign = values.get("sign")
        if not sign:
            raise SignatureVerificationError("回调缺少签名 sign")

        sign_type = values.get("sign_type") or self.options.sign_type
        if sign_type not in (SIGN_TYPE_MD5, SIGN_TYPE_HMAC_SHA256):
            raise SignatureVerificationError(f"不支持的签名类型 {sign_type}")

        expected = make_sign(values, self.options.api_key, sign_type)
        if not sign_matches(expected, sign):
            logger.warning("微信支付回调验签失败", out_trade_no=values.get("out_trade_no"))
            raise SignatureVerificationError("微信支付回调验签失败")

        return notice_params(values)

    def success(self) -> str:
        return to_xml({"return_code": WECHAT_SUCCESS, "return_msg": "OK"})

    async def _dispatch(self, way: Way, order: Order) -> str:
        if way == Way.qrcode:
            return await self._qrcode_call(order)
        if way == Way.app:
            return await self._app_call(order)
        if way == Way.wap:
            return await self._wap_call(order)
        if way == Way.mini_program:
            return await self._jsapi_call(order, self.options.mini_app_id or self.options.app_id)
        return await self._jsapi_call(order, self.options.app_id)

    async def _qrcode_call(self, order: Order) -> str:
        """返回二维码地址，ip 传服务器端 ip"""
        resp = await self._unified_order(
            order, TRADE_TYPE_NATIVE, product_id=order.id
        )
        if not resp.get("code_url"):
            raise ProviderBusinessError("微信支付未返回 code_url")
        return resp["code_url"]

    async def _wap_call(self, order: Order) -> str:
        """返回跳转的 url 地址"""
        scene_info = H5SceneInfo(
            wap_url=self.options.wap_url, wap_name=self.options.wap_name or order.title
        )
        resp = await self._unified_order(order, TRADE_TYPE_MWEB, scene_info=scene_info.dumps())
        if not resp.get("mweb_url"):
            raise ProviderBusinessError("微信支付未返回 mweb_url")
        return resp["mweb_url"]

    async def _app_call(self, order: Order) -> str:
        """返回 app 调起支付的参数"""
        resp = await self._unified_order(order, TRADE_TYPE_APP)

        params = {
            "appid": self.options.app_id,
            "partnerid": self.options.mch_id,
            "prepayid": resp.get("prepay_id", ""),
            "package": "Sign=WXPay",
            "noncestr": nonce_str(),
            "timestamp": str(int(time.time())),
        }
        params["sign"] = make_sign(params, self.options.api_key, self.options.sign_type)
        return urlencode(sorted(params.items()))

    async def _jsapi_call(self, order: Order, app_id: str) -> str:
        """返回公众号 / 小程序调起支付的 json 参数"""
        if not order.open_id:
            raise ValueError("JSAPI 支付需要提供 open_id")

        resp = await self._unified_order(
            order, TRADE_TYPE_JSAPI, app_id=app_id, openid=order.open_id
        )

        params = {
            "appId": app_id,
            "timeStamp": str(int(time.time())),
            "nonceStr": nonce_str(),
            "package": f"prepay_id={resp.get('prepay_id', '')}",
            "signType": self.options.sign_type,
        }
        params["paySign"] = make_sign(params, self.options.api_key, self.options.sign_type)
        return json.dumps(params)

    async def _unified_order(
        self, order: Order, trade_type: str, *, app_id: str | None = None, **extra: str
    ) -> dict[str, str]:
        """
        统一下单

        调用：POST /pay/unifiedorder
        返回：微信响应的扁平字典（return_code、result_code 均为 SUCCESS）
        """
        params = {
            "appid": app_id or self.options.app_id,
            "mch_id": self.options.mch_id,
            "nonce_str": nonce_str(),
            "sign_type": self.options.sign_type,
            "body": order.title[:127],
            "out_trade_no": order.id,
            "total_fee": str(order.amount),  # 单位：分
            "spbill_create_ip": order.ip,
            "notify_url": self.options.notify_url,
            "trade_type": trade_type,
            **extra,
        }
        params = {k: v for k, v in params.items() if v}
        params["sign"] = make_sign(params, self.options.api_key, self.options.sign_type)

        log = logger.bind(out_trade_no=order.id, trade_type=trade_type)
        try:
            response = await self.http_client.post(
                f"{self.api_domain}/pay/unifiedorder",
                content=to_xml(params).encode("utf-8"),
                headers={"Content-Type": "application/xml"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("微信支付统一下单请求失败", error=str(exc))
            raise ProviderTransportError(
                f"微信支付统一下单请求失败：{exc}", details={"order_id": order.id}
            ) from exc

        try:
            resp = body_to_values(response.content)
        except MalformedPayloadError as exc:
            raise ProviderTransportError("微信支付响应无法解析") from exc

        if resp.get("return_code") != WECHAT_SUCCESS:
            log.warning("微信支付统一下单失败", return_msg=resp.get("return_msg"))
            raise ProviderBusinessError(
                f"微信支付统一下单失败：{resp.get('return_msg')}",
                provider_code=resp.get("return_code"),
                provider_message=resp.get("return_msg"),
            )

        sign = resp.get("sign")
        if sign and not sign_matches(
            make_sign(resp, self.options.api_key, self.options.sign_type), sign
        ):
            log.warning("微信支付响应验签失败")
            raise SignatureVerificationError("微信支付响应验签失败")

        if resp.get("result_code") != WECHAT_SUCCESS:
            log.warning(
                "微信支付统一下单业务失败",
                err_code=resp.get("err_code"),
                err_code_des=resp.get("err_code_des"),
            )
            raise ProviderBusinessError(
                f"微信支付统一下单失败：{resp.get('err_code')}:{resp.get('err_code_des')}",
                provider_code=resp.get("err_code"),
                provider_message=resp.get("err_code_des"),
            )

        log.info(f"[{self.__class__.__name__}] 统一下单成功：{resp.get('prepay_id')=}")
        return resp


def notice_params(values: Mapping[str, str]) -> NoticeParams:
    """回调参数 -> NoticeParams"""
    if values.get("trade_state"):
        status = parse_trade_status(values["trade_state"], WECHAT_TRADE_STATE)
    elif values.get("result_code") == WECHAT_SUCCESS:
        status = TradeStatus.success
    else:
        status = parse_trade_status(values.get("trade_status"))

    if values.get("total_fee"):
        amount = parse_fen(values["total_fee"])
    else:
        amount = yuan_to_fen(values.get("total_amount"))

    return NoticeParams(
        order_id=values.get("out_trade_no", ""),
        payment_id=values.get("transaction_id", ""),  # 微信支付订单号
        trade_status=status,
        amount=amount,
    )


# 延迟初始化单例实例（只在首次访问时创建）
_wechatpay_adapter_instance = None


def get_wechatpay_adapter() -> WeChatPayAdapter:
    """获取微信支付适配器单例（配置来自环境变量）"""
    global _wechatpay_adapter_instance
    if _wechatpay_adapter_instance is None:
        _wechatpay_adapter_instance = WeChatPayAdapter(
            WeChatPayOptions.from_settings(get_settings())
        )
    return _wechatpay_adapter_instance
