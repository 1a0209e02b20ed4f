"""
本地调试入口：调起支付 / 回调验签
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from unipay.core.constants import Provider, Way
from unipay.core.exceptions import PayException
from unipay.core.logging import configure_logging, get_logger
from unipay.core.settings import get_settings
from unipay.providers import create_adapter
from unipay.providers.alipay import form_to_values
from unipay.providers.wechatpay import WeChatPayAdapter, body_to_values
from unipay.schemas import Order


logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="unipay", description="统一支付接入调试工具")
    p.add_argument("--log-level", default=None, help="日志级别（默认取 LOG_LEVEL）")
    sub = p.add_subparsers(dest="command", required=True)

    providers = [item.value for item in Provider]

    call = sub.add_parser("call", help="调起支付，输出跳转地址/二维码/客户端参数")
    call.add_argument("provider", choices=providers)
    call.add_argument("way", choices=[item.value for item in Way])
    call.add_argument("--id", required=True, help="商户订单号")
    call.add_argument("--title", required=True, help="订单标题")
    call.add_argument("--amount", type=int, required=True, help="金额（分）")
    call.add_argument("--ip", default="", help="用户端 IP")
    call.add_argument("--open-id", default="", help="用户 openid（JSAPI/小程序）")
    call.add_argument("--timeout", type=float, default=None, help="本次调用超时（秒）")

    verify = sub.add_parser("verify", help="验证回调内容，输出 NoticeParams")
    verify.add_argument("provider", choices=providers)
    verify.add_argument("payload", type=Path, help="回调内容文件（form 表单或 xml）")

    return p.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    adapter = create_adapter(args.provider)
    try:
        if args.command == "call":
            order = Order(
                id=args.id,
                title=args.title,
                amount=args.amount,
                ip=args.ip,
                open_id=args.open_id,
            )
            print(await adapter.call(args.way, order, timeout=args.timeout))
            return 0

        body = args.payload.read_bytes()
        if adapter.provider == Provider.wechatpay:
            values = body_to_values(body)
        else:
            values = form_to_values(body)
        notice = await adapter.verify(values)
        print(notice.model_dump_json())
        return 0
    finally:
        if isinstance(adapter, WeChatPayAdapter):
            await adapter.aclose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level, json_output=False)

    try:
        return asyncio.run(run(args))
    except PayException as exc:
        logger.error("执行失败", error=exc.message, code=exc.code, details=exc.details)
        return 1
    except ValueError as exc:
        # 含 pydantic ValidationError
        logger.error("参数错误", error=str(exc))
        return 2


if __name__ == "__main__":
    sys.exit(main())
