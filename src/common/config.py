from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    ENVIRONMENT: str = "development"

    # Pricing
    currency: str = "EUR"
    quote_validity_hours: int = 72
    express_window_hours: int = 24

    # Jobs ("local" runs an in-process worker, "service_bus" uses Azure Service Bus)
    job_backend: str = "local"
    job_max_attempts: int = 3
    retry_delay: int = 2
    retry_multiplier: int = 2
    retry_max: int = 20

    # Azure Service Bus
    SERVICE_BUS_NAMESPACE: str = ""
    SERVICE_BUS_TOPIC_NAME: str = "transport-requests"
    SERVICE_BUS_SUBSCRIPTION_NAME: str = "matching-engine"
    SERVICE_BUS_MAX_CONCURRENT: int = 5
    SERVICE_BUS_USE_WEBSOCKET: bool = False
    AZURE_TENANT_ID: str = ""
    AZURE_CLIENT_ID: str = ""
    AZURE_CLIENT_SECRET: SecretStr = SecretStr("")

    # Notifications (published as events, delivered by the mailer service)
    notifications_enabled: bool = False

    # Development data
    seed_file: str = "data/seed.json"

    # Logging
    log_level: str = "INFO"
    log_format: str = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


config = Config()
