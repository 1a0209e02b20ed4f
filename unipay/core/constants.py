import enum


class Provider(str, enum.Enum):
    alipay = "alipay"
    wechatpay = "wechatpay"


class Way(str, enum.Enum):
    """调起支付的渠道方式"""

    form = "form"  # 电脑网站支付（跳转/表单）
    qrcode = "qrcode"  # 扫码支付
    app = "app"  # App 支付
    wap = "wap"  # 手机网站支付（H5）
    jsapi = "jsapi"  # 微信公众号 JSAPI
    mini_program = "mini_program"  # 微信小程序


class TradeStatus(str, enum.Enum):
    """交易状态（wait 为默认值）"""

    wait = "wait"  # 等待付款
    success = "success"  # 支付成功
    closed = "closed"  # 交易关闭
    finished = "finished"  # 交易完结（不可退款）


# 支付宝 trade_status -> TradeStatus
ALIPAY_TRADE_STATUS = {
    "WAIT_BUYER_PAY": TradeStatus.wait,
    "TRADE_CLOSED": TradeStatus.closed,
    "TRADE_SUCCESS": TradeStatus.success,
    "TRADE_FINISHED": TradeStatus.finished,
}

# 微信 trade_state -> TradeStatus
WECHAT_TRADE_STATE = {
    "NOTPAY": TradeStatus.wait,
    "USERPAYING": TradeStatus.wait,
    "SUCCESS": TradeStatus.success,
    "CLOSED": TradeStatus.closed,
    "REVOKED": TradeStatus.closed,
    "PAYERROR": TradeStatus.closed,
}

# 微信返回码
WECHAT_SUCCESS = "SUCCESS"
