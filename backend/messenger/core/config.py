from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "messenger"
    app_env: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./messenger.db"

    # JWT
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60
    PROFILE_TOKEN_EXPIRE_MINUTES: int = 15

    # One-time verification codes
    VERIFICATION_CODE_TTL_MINUTES: int = 10
    VERIFICATION_CODE_LENGTH: int = 6

    MAX_MESSAGE_LENGTH: int = 5000
    LOGIN_MAX_ATTEMPTS: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
