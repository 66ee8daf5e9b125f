import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")

    # Auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Payment gateway
    PAYMENT_GATEWAY_BASE_URL: str = os.getenv("PAYMENT_GATEWAY_BASE_URL", "https://api.razorpay.com/v1")
    PAYMENT_GATEWAY_KEY_ID: str = os.getenv("PAYMENT_GATEWAY_KEY_ID", "")
    PAYMENT_GATEWAY_KEY_SECRET: str = os.getenv("PAYMENT_GATEWAY_KEY_SECRET", "")
    PAYMENT_GATEWAY_NAME: str = os.getenv("PAYMENT_GATEWAY_NAME", "Razorpay")

    # Files
    UPLOADS_DIR: str = os.getenv("UPLOADS_DIR", "public/uploads")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if self.POSTGRES_CONNECTION_STRING:
            return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")
        return self.SQLITE_DATABASE_URL


settings = Settings()
