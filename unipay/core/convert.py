"""
金额换算与交易状态映射
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from unipay.core.constants import ALIPAY_TRADE_STATUS, TradeStatus
from unipay.core.logging import get_logger


logger = get_logger(__name__)


def fen_to_yuan(amount: int) -> str:
    """分 -> 元字符串（两位小数），如 1234 -> "12.34" """
    return f"{amount / 100:.2f}"


def yuan_to_fen(value: str | None) -> int:
    """
    元字符串 -> 分（截断取整），如 "12.34" -> 1234

    无法解析时记录告警并返回 0
    """
    try:
        return int(Decimal((value or "").strip()) * 100)
    except (InvalidOperation, ValueError, OverflowError):
        logger.warning("金额无法解析，按 0 处理", raw_amount=value)
        return 0


def parse_fen(value: str | None) -> int:
    """分字符串 -> 分（微信 total_fee），无法解析时记录告警并返回 0"""
    try:
        return int((value or "").strip())
    except ValueError:
        logger.warning("金额无法解析，按 0 处理", raw_amount=value)
        return 0


def parse_trade_status(
    status: str | None, table: Mapping[str, TradeStatus] = ALIPAY_TRADE_STATUS
) -> TradeStatus:
    """渠道状态字符串 -> TradeStatus，未知状态返回 wait"""
    return table.get(status or "", TradeStatus.wait)
