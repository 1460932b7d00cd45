# broker/config.py
import os


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./broker.db")

DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))

# The one CURRENCY instrument every cash leg is booked against
CURRENCY_TICKER = os.getenv("CURRENCY_TICKER", "ARS")
CURRENCY_NAME = os.getenv("CURRENCY_NAME", "PESOS")

API_PREFIX = os.getenv("API_PREFIX", "/api/v1")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
