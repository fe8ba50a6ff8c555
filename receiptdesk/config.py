from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    APP_NAME: str = "Receipt Desk API"
    BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "receiptdesk"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    # full SQLAlchemy URL, wins over the postgres_* parts when set
    sqlalchemy_url: Optional[str] = None

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # receipts
    RECEIPT_PREFIX: str = "AKRX"
    STORE_NAME: str = "Akrix Solutions"

    # gateways
    DEFAULT_GATEWAY: str = "cashfree"
    GATEWAY_TIMEOUT_SECONDS: float = 30
    GATEWAY_MAX_RETRIES: int = 3
    GATEWAY_RETRY_BACKOFF_SECONDS: float = 1.0

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""

    PHONEPE_MERCHANT_ID: str = ""
    PHONEPE_SALT_KEY: str = ""
    PHONEPE_SALT_INDEX: str = "1"
    PHONEPE_BASE_URL: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"

    CASHFREE_APP_ID: str = ""
    CASHFREE_SECRET_KEY: str = ""
    CASHFREE_ENV: str = "sandbox"
    CASHFREE_API_VERSION: str = "2023-08-01"

    QR_UPI_VPA: str = ""

    # email (Brevo)
    BREVO_API_KEY: str = ""
    MAIL_FROM: str = "payments@example.com"
    OPERATOR_EMAIL: str = ""
    EMAIL_MAX_RETRIES: int = 3

    # whatsapp (Twilio)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_FROM: str = ""

    @property
    def database_url(self):
        if self.sqlalchemy_url:
            return self.sqlalchemy_url
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cashfree_base_url(self):
        if self.CASHFREE_ENV == "production":
            return "https://api.cashfree.com/pg"
        return "https://sandbox.cashfree.com/pg"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


settings = Settings()
