from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend selection
    STORAGE_BACKEND: str = "direct"  # direct | functions

    # Level of the retail_storage logger (DEBUG, INFO, WARNING, ...)
    LOG_LEVEL: str = "INFO"

    # Direct backend: entity tables and message queues
    DATABASE_URL: str = "sqlite+aiosqlite:///./retail_storage.db"

    # Direct backend: blob storage account
    # "UseDevelopmentStorage=true" targets the Azurite emulator
    AZURE_STORAGE_CONNECTION_STRING: str = "UseDevelopmentStorage=true"

    # Direct backend: mount point of the contracts file share
    FILE_SHARE_ROOT: str = "storage/fileshares"

    # Remote Functions API settings
    FUNCTIONS_BASE_URL: str | None = None
    FUNCTIONS_API_KEY: str | None = None
    FUNCTIONS_TIMEOUT_SECONDS: float = 30.0

    # Blob containers
    PRODUCT_IMAGES_CONTAINER: str = "product-images"
    PAYMENT_PROOFS_CONTAINER: str = "payment-proofs"

    # Queues
    ORDER_NOTIFICATIONS_QUEUE: str = "order-notifications"
    STOCK_UPDATES_QUEUE: str = "stock-updates"

    # File share
    CONTRACTS_SHARE: str = "contracts"
    PAYMENTS_DIRECTORY: str = "payments"

    # "env_file": read overrides from a local .env file
    # "extra": "ignore": unknown environment variables are ignored on purpose
    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
