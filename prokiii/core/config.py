from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Prokiii API"
    # Directory holding one JSON file per collection. Empty keeps everything in memory.
    DATA_DIR: str = "data"
    STORE_TIMEOUT_SECONDS: float = 5.0
    GOOGLE_CLIENT_ID: str = "YOUR_GOOGLE_CLIENT_ID_HERE"
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
