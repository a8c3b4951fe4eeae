from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Email: Resend
    resend_api_key: str = Field(default="", description="Resend API key")
    resend_from: str = Field(
        default="no-reply@mkmentertainmentllc.com",
        description="Sender address for booking emails",
    )
    resend_from_name: str = Field(default="MKM Website", description="Sender display name")
    resend_base_url: str = Field(
        default="https://api.resend.com",
        description="Resend API base URL",
    )
    email_transport: Literal["resend", "smtp"] = Field(
        default="resend",
        description="Which provider dispatches booking emails",
    )

    # Email: SMTP, only used when email_transport == "smtp"
    smtp_host: str = Field(default="smtp.gmail.com", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_user: str = Field(default="", description="SMTP username")
    smtp_password: str = Field(default="", description="SMTP password")

    # Routing
    mkm_inbox: str = Field(
        default="michaelkylemusic@icloud.com",
        description="MKM inbox, receives every booking",
    )
    pizza_records_inbox: str = Field(
        default="pizzarecords@aol.com",
        description="Pizza Records inbox, copied on Pizza Records bookings",
    )
    list_unsubscribe: str = Field(
        default="<mailto:no-reply@mkmentertainmentllc.com>",
        description="List-Unsubscribe header value",
    )

    # Abuse mitigation
    rate_limit_window_seconds: float = Field(
        default=60.0,
        description="Cooldown between accepted submissions from one address",
    )
    rate_limit_redis_url: str = Field(
        default="",
        description="Redis URL for a shared rate-limit store (in-memory when empty)",
    )

    api_version: str = Field(default="route-dual-005", description="Version echoed by the endpoint")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
