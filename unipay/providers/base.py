"""
Payer 基类（定义统一接口）
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping

from unipay.core.constants import Provider, Way
from unipay.core.exceptions import ProviderTransportError, UnsupportedChannelError
from unipay.schemas import NoticeParams, Order


class Payer(ABC):
    """
    支付渠道适配器基类

    - verify: 回调验签，成功返回标准化的回调参数
    - success: 回调处理成功后应答渠道的内容
    - call: 调起支付用到的数据（跳转地址/二维码/客户端参数）
    """

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """渠道标识"""

    @property
    @abstractmethod
    def supported_ways(self) -> tuple[Way, ...]:
        """当前渠道支持的支付方式"""

    @abstractmethod
    async def verify(self, values: Mapping[str, str]) -> NoticeParams:
        """
        支付回调验签

        参数：
            values: 回调的原始键值对（form 表单或 XML 转换后的扁平字典）

        验签失败抛出 SignatureVerificationError
        """

    @abstractmethod
    def success(self) -> str:
        """回调成功应答内容（原样作为 HTTP 响应体返回给渠道）"""

    @abstractmethod
    async def _dispatch(self, way: Way, order: Order) -> str:
        """按支付方式调用渠道，子类实现"""

    async def call(self, way: Way, order: Order, *, timeout: float | None = None) -> str:
        """
        调起支付用到的数据

        参数：
            way: 支付方式
            order: 商户订单
            timeout: 本次调用的截止时间（秒），超时抛出 ProviderTransportError

        返回：
            跳转 URL / 表单 HTML / 二维码内容 / 客户端调起参数
        """
        requested = getattr(way, "value", way)
        if requested not in {w.value for w in self.supported_ways}:
            raise UnsupportedChannelError(
                f"{self.provider.value} 不支持支付方式 {requested}",
                details={"provider": self.provider.value, "way": requested},
            )
        way = Way(requested)

        try:
            async with asyncio.timeout(timeout):
                return await self._dispatch(way, order)
        except TimeoutError as exc:
            raise ProviderTransportError(
                f"{self.provider.value} 调用超时（{timeout}s）",
                details={"order_id": order.id, "way": way.value},
            ) from exc
