import json
from urllib.parse import urlencode

import pytest
import structlog

from unipay import cli


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_parse_args_call():
    args = cli.parse_args(
        ["call", "alipay", "qrcode", "--id", "order-001", "--title", "测试商品", "--amount", "1234"]
    )

    assert args.command == "call"
    assert args.provider == "alipay"
    assert args.way == "qrcode"
    assert args.amount == 1234
    assert args.timeout is None


def test_parse_args_rejects_unknown_way():
    with pytest.raises(SystemExit):
        cli.parse_args(["call", "alipay", "bank", "--id", "1", "--title", "t", "--amount", "1"])


def test_call_prints_artifact(monkeypatch, capsys, wechat_adapter):
    monkeypatch.setattr(cli, "create_adapter", lambda provider: wechat_adapter)

    code = cli.main(
        ["call", "wechatpay", "qrcode", "--id", "order-001", "--title", "测试商品", "--amount", "1234"]
    )

    assert code == 0
    assert capsys.readouterr().out.strip() == "weixin://wxpay/bizpayurl?pr=qnu8GBtzz"


def test_call_unsupported_way_exits_with_error(monkeypatch, capsys, wechat_adapter):
    monkeypatch.setattr(cli, "create_adapter", lambda provider: wechat_adapter)

    code = cli.main(
        ["call", "wechatpay", "form", "--id", "order-001", "--title", "测试商品", "--amount", "1234"]
    )

    assert code == 1
    assert capsys.readouterr().out == ""


def test_call_invalid_order(monkeypatch, alipay_adapter):
    monkeypatch.setattr(cli, "create_adapter", lambda provider: alipay_adapter)

    code = cli.main(["call", "alipay", "qrcode", "--id", "order-001", "--title", "t", "--amount", "0"])

    assert code == 2


def test_verify_alipay_payload(monkeypatch, capsys, tmp_path, alipay_adapter, alipay_sign):
    monkeypatch.setattr(cli, "create_adapter", lambda provider: alipay_adapter)
    payload = tmp_path / "notify.txt"
    payload.write_text(
        urlencode(
            alipay_sign(
                {
                    "out_trade_no": "order-001",
                    "trade_no": "2024052022001400000000000001",
                    "trade_status": "TRADE_FINISHED",
                    "total_amount": "12.34",
                }
            )
        )
    )

    code = cli.main(["verify", "alipay", str(payload)])

    assert code == 0
    notice = json.loads(capsys.readouterr().out)
    assert notice == {
        "order_id": "order-001",
        "payment_id": "2024052022001400000000000001",
        "trade_status": "finished",
        "amount": 1234,
    }


def test_verify_bad_signature(monkeypatch, tmp_path, alipay_adapter):
    monkeypatch.setattr(cli, "create_adapter", lambda provider: alipay_adapter)
    payload = tmp_path / "notify.txt"
    payload.write_text("out_trade_no=order-001&trade_status=TRADE_SUCCESS&sign=AAAA")

    assert cli.main(["verify", "alipay", str(payload)]) == 1
