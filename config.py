import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    DATABASE_URL = os.getenv("DATABASE_URL") or "mongodb://localhost:27017"
    DATABASE_NAME = os.getenv("DATABASE_NAME") or "assetverse"
    CORS_ORIGINS = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]
    TOKEN_TTL_HOURS = int(os.getenv("TOKEN_TTL_HOURS") or 1)
    LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD") or 10)
    PENDING_PREVIEW_LIMIT = int(os.getenv("PENDING_PREVIEW_LIMIT") or 5)
    LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
    PORT = int(os.getenv("PORT") or 8000)
