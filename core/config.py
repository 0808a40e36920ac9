from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Permits API"
    ENV: str = "development"
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")

    # Frontend base URL (redirects, notification action links)
    APP_URL: str = Field("http://localhost:3000", env="APP_URL")

    FRONTEND_DOMAINS: List[str] = [
        "https://permitsonthego.com",
        "https://www.permitsonthego.com",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB & Auth)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # SMTP Email Notifications
    # -------------------------------------------------
    SMTP_HOST: Optional[str] = Field(None, env="SMTP_HOST")
    SMTP_PORT: Optional[int] = Field(None, env="SMTP_PORT")
    SMTP_USER: Optional[str] = Field(None, env="SMTP_USER")
    SMTP_PASS: Optional[str] = Field(None, env="SMTP_PASS")
    EMAIL_FROM: Optional[str] = Field(None, env="EMAIL_FROM")

    # -------------------------------------------------
    # Push notifications (Expo)
    # -------------------------------------------------
    EXPO_PUSH_URL: str = Field("https://exp.host/--/api/v2/push/send", env="EXPO_PUSH_URL")

    # -------------------------------------------------
    # Stripe Payment Processing
    # -------------------------------------------------
    STRIPE_SECRET_KEY: Optional[str] = Field(None, env="STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(None, env="STRIPE_WEBHOOK_SECRET")
    STRIPE_CONNECT_WEBHOOK_SECRET: Optional[str] = Field(None, env="STRIPE_CONNECT_WEBHOOK_SECRET")
    STRIPE_ANNUAL_PRICE_ID: Optional[str] = Field(None, env="STRIPE_ANNUAL_PRICE_ID")

    # -------------------------------------------------
    # Plans
    # -------------------------------------------------
    FREE_PLAN_PROPERTY_LIMIT: int = Field(1, env="FREE_PLAN_PROPERTY_LIMIT")
    FREE_PLAN_AI_CREDITS: int = Field(5, env="FREE_PLAN_AI_CREDITS")
    PAID_PLAN_AI_CREDITS: int = Field(999999, env="PAID_PLAN_AI_CREDITS")
    PLATFORM_FEE_PERCENT: float = Field(3, env="PLATFORM_FEE_PERCENT", description="Marketplace fee withheld from vendor payments")

    # -------------------------------------------------
    # AI assistant
    # -------------------------------------------------
    ANTHROPIC_API_KEY: Optional[str] = Field(None, env="ANTHROPIC_API_KEY")
    CHAT_MODEL: str = Field("claude-sonnet-4-5-20250929", env="CHAT_MODEL")
    CHAT_MAX_TOKENS: int = Field(2048, env="CHAT_MAX_TOKENS")
    CHAT_RATE_LIMIT_PER_MINUTE: int = Field(20, env="CHAT_RATE_LIMIT_PER_MINUTE")

    # Knowledge base embeddings
    OPENAI_API_KEY: Optional[str] = Field(None, env="OPENAI_API_KEY")
    EMBEDDING_MODEL: str = Field("text-embedding-3-small", env="EMBEDDING_MODEL")

    # -------------------------------------------------
    # Background jobs
    # -------------------------------------------------
    ENABLE_SCHEDULER: bool = Field(False, env="ENABLE_SCHEDULER")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

# 1) frontend app URL
app_url = settings.APP_URL
if app_url:
    if not app_url.startswith("http"):
        app_url = f"https://{app_url}"
    cors_origins.append(app_url.rstrip("/"))

# 2) public marketing domains
cors_origins.extend([d.rstrip("/") for d in settings.FRONTEND_DOMAINS])

# 3) remove duplicates
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
