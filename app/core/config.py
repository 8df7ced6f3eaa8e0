from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    # Environment configuration
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Supabase configuration (service role key, never exposed to the browser)
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_service_role_key: str = os.getenv(
        "SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_KEY", "")
    )

    # Frontend URL (default return/cancel targets)
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Billing configuration
    default_provider: str = os.getenv("DEFAULT_PROVIDER", "paypal")
    billing_simulated: bool = os.getenv("BILLING_SIMULATED", "false").lower() == "true"
    provider_timeout: float = float(os.getenv("PROVIDER_TIMEOUT", "30"))
    brand_name: str = os.getenv("BRAND_NAME", "Smart Review SaaS")

    # Stripe configuration
    stripe_secret_key: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
    stripe_price_starter: str = os.getenv("STRIPE_PRICE_STARTER", "price_1RkpmOCx4JpdOBsxz4r7xmNH")
    stripe_price_professional: str = os.getenv("STRIPE_PRICE_PROFESSIONAL", "price_1RkpoRCx4JpdOBsxDFVGHIuy")
    stripe_price_enterprise: str = os.getenv("STRIPE_PRICE_ENTERPRISE", "price_1RkpptCx4JpdOBsxKCPooLQg")

    # PayPal configuration
    paypal_client_id: Optional[str] = os.getenv("PAYPAL_CLIENT_ID")
    paypal_client_secret: Optional[str] = os.getenv("PAYPAL_CLIENT_SECRET")
    paypal_environment: str = os.getenv("PAYPAL_ENVIRONMENT", "sandbox")
    paypal_plan_starter: str = os.getenv("PAYPAL_PLAN_STARTER", "P-5ML4271244454362WXNWU5NQ")
    paypal_plan_professional: str = os.getenv("PAYPAL_PLAN_PROFESSIONAL", "P-1GJ4271244454362WXNWU5NQ")
    paypal_plan_enterprise: str = os.getenv("PAYPAL_PLAN_ENTERPRISE", "P-8RX4271244454362WXNWU5NQ")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
