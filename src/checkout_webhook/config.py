from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Webhook signature
    # Verification only runs in production with a secret configured.
    # Anywhere else every request is accepted as authentic (local development).
    webhook_secret: str | None = None
    signature_tolerance: int = 300

    # Environment
    environment: str = "development"

    # Mercado Pago API
    mp_access_token: str = ""
    mp_api_base: str = "https://api.mercadopago.com"
    request_timeout: float = 5.0

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def verification_enabled(self) -> bool:
        return self.is_production and bool(self.webhook_secret)

    @property
    def effective_webhook_secret(self) -> str | None:
        """The secret the verifier should use, or None when verification is off."""
        return self.webhook_secret if self.verification_enabled else None
