import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    APP_ENV: str = os.getenv("APP_ENV", "local")
    APP_NAME: str = os.getenv("APP_NAME", "micaa")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./micaa.db")
    BULK_OPERATION_TIMEOUT_SECONDS: float = float(
        os.getenv("BULK_OPERATION_TIMEOUT_SECONDS", "30")
    )
    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]


settings = Settings()
