from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./handoff.db"
    store_backend: str = "sql"  # sql, memory
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: str = "*"

    business_name: str = "Acme Retail"
    crm_name: str = "The Simple CRM (Acme Retail)"
    bot_handoff_message: str = "You are now speaking with the Echo Bot"

    messaging_api_base: str = "https://businessmessages.googleapis.com/v1"
    messaging_api_token: str = ""
    messaging_timeout_seconds: float = 30.0

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
