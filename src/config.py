from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    kv_table_name: str = "kv_store"
    webhook_processing_mode: str = "background"  # background | sync
    provider_timeout_seconds: float | None = None
    background_flush_timeout_seconds: float = 5.0
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60
    admin_email: str | None = None
    admin_password_hash: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
