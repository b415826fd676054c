from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from veronika.content import IMAGE_COST_CREDITS, INITIAL_CREDITS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    # Database
    database_url: str = Field('sqlite+aiosqlite:///./veronika.db', alias='DATABASE_URL')
    auto_create_tables: bool = Field(True, alias='AUTO_CREATE_TABLES')

    # Web
    web_host: str = Field('127.0.0.1', alias='WEB_HOST')
    web_port: int = Field(3000, alias='WEB_PORT')
    cors_origins: str = Field('*', alias='CORS_ORIGINS')

    # Image provider (A4F)
    a4f_api_key: str = Field('', alias='A4F_API_KEY')
    a4f_model: str = Field('provider-4/imagen-3.5', alias='A4F_MODEL')
    a4f_base_url: str = Field('https://api.a4f.co/v1/images/generations', alias='A4F_BASE_URL')
    image_size: str = Field('1024x1024', alias='IMAGE_SIZE')
    proxy_image_hosts: str = Field('api.a4f.co,a4f.co', alias='PROXY_IMAGE_HOSTS')

    # Credits
    image_cost_credits: int = Field(IMAGE_COST_CREDITS, alias='IMAGE_COST_CREDITS')
    initial_credits: int = Field(INITIAL_CREDITS, alias='INITIAL_CREDITS')
    max_images_per_request: int = Field(6, alias='MAX_IMAGES_PER_REQUEST')
    generation_topup_attempts: int = Field(3, alias='GENERATION_TOPUP_ATTEMPTS')
    generation_pad_duplicates: bool = Field(True, alias='GENERATION_PAD_DUPLICATES')
    max_prompt_length: int = Field(4000, alias='MAX_PROMPT_LENGTH')

    # Cashfree (UPI)
    cashfree_app_id: str = Field('', alias='CASHFREE_APP_ID')
    cashfree_secret_key: str = Field('', alias='CASHFREE_SECRET_KEY')
    cashfree_env: str = Field('production', alias='CASHFREE_ENV')
    cashfree_api_version: str = Field('2022-09-01', alias='CASHFREE_API_VERSION')
    default_customer_phone: str = Field('9999999999', alias='DEFAULT_CUSTOMER_PHONE')

    # OXAPAY (crypto)
    oxapay_merchant_id: str = Field('', alias='OXAPAY_MERCHANT_ID')
    oxapay_base_url: str = Field('https://api.oxapay.com', alias='OXAPAY_BASE_URL')
    oxapay_currency: str = Field('USD', alias='OXAPAY_CURRENCY')
    oxapay_lifetime_minutes: int = Field(30, alias='OXAPAY_LIFETIME_MINUTES')

    # Admin bootstrap
    admin_email: str = Field('', alias='ADMIN_EMAIL')
    admin_password: str = Field('', alias='ADMIN_PASSWORD')
    admin_initial_credits: int = Field(999999, alias='ADMIN_INITIAL_CREDITS')

    # Logging
    log_level: str = Field('INFO', alias='LOG_LEVEL')

    def a4f_endpoint(self) -> str:
        url = self.a4f_base_url.strip()
        if 'api.a4f.ai' in url:
            url = url.replace('api.a4f.ai', 'api.a4f.co')
        if url.endswith('/images/generate'):
            url = url[: -len('/images/generate')] + '/images/generations'
        return url

    def cashfree_base_url(self) -> str:
        if self.cashfree_env.strip().lower() in ('sandbox', 'test'):
            return 'https://sandbox.cashfree.com/pg'
        return 'https://api.cashfree.com/pg'

    def proxy_hosts(self) -> List[str]:
        return [x.strip().lower() for x in self.proxy_image_hosts.split(',') if x.strip()]

    def cors_origin_list(self) -> List[str]:
        return [x.strip() for x in self.cors_origins.split(',') if x.strip()]

    def is_cashfree_enabled(self) -> bool:
        return bool(self.cashfree_app_id.strip() and self.cashfree_secret_key.strip())

    def is_oxapay_enabled(self) -> bool:
        return bool(self.oxapay_merchant_id.strip())


@lru_cache

def get_settings() -> Settings:
    return Settings()
