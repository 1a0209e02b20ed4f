"""
下单 / 回调 数据结构
"""

from pydantic import BaseModel, ConfigDict, Field

from unipay.core.constants import TradeStatus


class Order(BaseModel):
    """商户订单（调起支付用）"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=64, description="商户订单号")
    title: str = Field(..., max_length=256, description="订单标题/商品描述")
    amount: int = Field(..., gt=0, description="支付金额（最小货币单位，如分）")
    ip: str = Field("", description="用户端 IP")
    open_id: str = Field("", description="用户在渠道侧的标识（如微信 openid）")


class NoticeParams(BaseModel):
    """标准化回调结果（verify 输出）"""

    model_config = ConfigDict(frozen=True)

    order_id: str  # 商户订单号
    payment_id: str  # 渠道交易号
    trade_status: TradeStatus = TradeStatus.wait
    amount: int = 0  # 单位：分
