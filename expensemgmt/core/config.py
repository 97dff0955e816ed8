from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_COMMAND_TIMEOUT: float = 30.0

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    MANAGER_ROLE: str = "Manager"

    # Chat is disabled unless an endpoint is configured
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT: str = "gpt-4o"
    AZURE_OPENAI_API_VERSION: str = "2024-06-01"
    MANAGED_IDENTITY_CLIENT_ID: Optional[str] = None
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_TOKENS: int = 1000
    CHAT_MAX_TOOL_ROUNDS: int = 5
    CHAT_TIMEOUT: float = 60.0

    # Serve the in-memory demo data instead of the database
    DEMO_MODE: bool = False

    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
