"""Pytest configuration and fixtures"""
import base64
import json
import time

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from unipay.core.settings import get_settings
from unipay.providers import alipay as alipay_module
from unipay.providers import wechatpay as wechatpay_module
from unipay.providers.alipay import AlipayAdapter, AlipayOptions, sign_content
from unipay.providers.wechatpay import WeChatPayAdapter, WeChatPayOptions, make_sign, to_xml
from unipay.schemas import Order


WECHAT_API_KEY = "192006250b4c09247ec02edce69f6a2d"
WECHAT_APPID = "wxd678efh567hg6787"
WECHAT_MCHID = "1230000109"


class FakeAlipayClient:
    """替代 DefaultAlipayClient，记录请求并返回预设结果"""

    def __init__(self, response=None, error=None, delay: float = 0):
        self.response = response or json.dumps(
            {
                "alipay_trade_precreate_response": {
                    "code": "10000",
                    "msg": "Success",
                    "out_trade_no": "order-001",
                    "qr_code": "https://qr.alipay.com/bax03206ug0kulveltqc80a8",
                },
                "sign": "ignored",
            }
        )
        self.error = error
        self.delay = delay
        self.calls = []

    def page_execute(self, request, http_method="POST"):
        self.calls.append(("page_execute", request, http_method))
        if http_method == "GET":
            return "https://openapi-sandbox.dl.alipaydev.com/gateway.do?app_id=2021000000000000&sign=xxx"
        return '<form name="punchout_form" method="post" action="https://openapi.alipay.com/gateway.do"></form>'

    def sdk_execute(self, request):
        self.calls.append(("sdk_execute", request, None))
        return "app_id=2021000000000000&method=alipay.trade.app.pay&sign=xxx"

    def execute(self, request):
        self.calls.append(("execute", request, None))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def alipay_keys(rsa_key):
    """(应用私钥, 支付宝公钥) 裸 base64 格式"""
    private_der = rsa_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    public_der = rsa_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(private_der).decode(), base64.b64encode(public_der).decode()


@pytest.fixture
def alipay_options(alipay_keys):
    private_key, public_key = alipay_keys
    return AlipayOptions(
        app_id="2021000000000000",
        alipay_public_key=public_key,
        app_private_key=private_key,
        notify_url="https://example.com/callbacks/alipay",
        return_url="https://example.com/return",
    )


@pytest.fixture
def fake_alipay_client():
    return FakeAlipayClient()


@pytest.fixture
def alipay_adapter(alipay_options, fake_alipay_client):
    return AlipayAdapter(alipay_options, client=fake_alipay_client)


@pytest.fixture
def make_alipay_adapter(alipay_options):
    def _make(options=None, **client_kwargs):
        client = FakeAlipayClient(**client_kwargs)
        return AlipayAdapter(options or alipay_options, client=client), client

    return _make


@pytest.fixture
def alipay_sign(rsa_key):
    """模拟支付宝对回调参数签名"""

    def _sign(values, sign_type="RSA2"):
        algorithm = hashes.SHA1() if sign_type == "RSA" else hashes.SHA256()
        signature = rsa_key.sign(
            sign_content(values).encode("utf-8"), padding.PKCS1v15(), algorithm
        )
        return {**values, "sign_type": sign_type, "sign": base64.b64encode(signature).decode()}

    return _sign


@pytest.fixture
def wechat_options():
    return WeChatPayOptions(
        app_id=WECHAT_APPID,
        mch_id=WECHAT_MCHID,
        api_key=WECHAT_API_KEY,
        notify_url="https://example.com/callbacks/wechatpay",
        mini_app_id="wxmini0000000001",
    )


class WeChatServer:
    """httpx.MockTransport 处理函数：模拟统一下单接口"""

    def __init__(self, **fields):
        self.fields = fields
        self.status_code = 200
        self.raw_body = None
        self.bad_sign = False
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)

        values = {
            "return_code": "SUCCESS",
            "return_msg": "OK",
            "appid": WECHAT_APPID,
            "mch_id": WECHAT_MCHID,
            "nonce_str": "IITRi8Iabbblz1Jc",
            "result_code": "SUCCESS",
            "prepay_id": "wx201410272009395522657a690389285100",
            "trade_type": "NATIVE",
            "code_url": "weixin://wxpay/bizpayurl?pr=qnu8GBtzz",
            "mweb_url": "https://wx.tenpay.com/cgi-bin/mmpayweb-bin/checkmweb?prepay_id=wx2016",
        }
        values.update(self.fields)
        values = {k: v for k, v in values.items() if v is not None}
        if "sign" not in self.fields:
            values["sign"] = make_sign(values, WECHAT_API_KEY)
        if self.bad_sign:
            values["sign"] = "0" * 32
        return httpx.Response(self.status_code, content=to_xml(values))


@pytest.fixture
def wechat_server():
    return WeChatServer()


@pytest.fixture
def wechat_adapter(wechat_options, wechat_server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(wechat_server))
    return WeChatPayAdapter(wechat_options, http_client=client)


@pytest.fixture
def order():
    return Order(id="order-001", title="测试商品", amount=1234, ip="127.0.0.1", open_id="oUpF8uMuAJO_M2pxb1Q9zNjWeS6o")


@pytest.fixture(autouse=True)
def reset_singletons():
    get_settings.cache_clear()
    alipay_module._alipay_adapter_instance = None
    wechatpay_module._wechatpay_adapter_instance = None
    yield
    get_settings.cache_clear()
    alipay_module._alipay_adapter_instance = None
    wechatpay_module._wechatpay_adapter_instance = None
