"""
配置管理（pydantic-settings）
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """渠道配置（从环境变量 / .env 加载，均为可选，使用时才校验）"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    ## alipay
    alipay_app_id: str = ""
    alipay_private_key: str = ""  # 应用私钥内容
    alipay_public_key: str = ""  # 支付宝公钥内容
    alipay_sandbox: bool = False
    alipay_notify_url: str = ""  # 异步回调地址
    alipay_return_url: str = ""  # 同步回调地址

    ## wechatpay (v2)
    wechatpay_appid: str = ""
    wechatpay_mchid: str = ""
    wechatpay_api_key: str = ""  # 商户 API 密钥
    wechatpay_sandbox: bool = False
    wechatpay_notify_url: str = ""
    wechatpay_mini_appid: str = ""  # 小程序 appid（可选）

    log_level: str = "INFO"
    provider_timeout: float = Field(default=15.0, gt=0)  # 请求渠道超时（秒）


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
