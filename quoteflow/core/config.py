import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# -----------------------
# Database Config
# -----------------------
DB_TYPE = os.getenv("DB_TYPE", "sqlite").lower()

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres setup")
elif DB_TYPE == "sqlite":
    SQLITE_PATH = os.getenv("SQLITE_PATH", "./quoteflow.db")
    DATABASE_URL = f"sqlite+aiosqlite:///{SQLITE_PATH}"
else:
    raise ValueError(f"Unsupported DB_TYPE: {DB_TYPE}")

# -----------------------
# JWT Config
# -----------------------
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise ValueError("JWT_SECRET environment variable must be set")

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# -----------------------
# Quotes & rendering
# -----------------------
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
VAT_RATE = Decimal(os.getenv("VAT_RATE", "0.17"))
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₪")
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Jerusalem")
QUOTE_NUMBER_RETRIES = int(os.getenv("QUOTE_NUMBER_RETRIES", "3"))
SIGNATURE_MAX_LENGTH = int(os.getenv("SIGNATURE_MAX_LENGTH", str(2 * 1024 * 1024)))

# -----------------------
# Public access cookie
# -----------------------
VERIFICATION_COOKIE_DAYS = int(os.getenv("VERIFICATION_COOKIE_DAYS", "7"))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

# -----------------------
# PDF generation
# -----------------------
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PDF_FONT_PATH = os.getenv("PDF_FONT_PATH", os.path.join(BASE_DIR, "assets", "fonts", "Heebo-Regular.ttf"))
PDF_TIMEOUT_SECONDS = float(os.getenv("PDF_TIMEOUT_SECONDS", "30"))
PDF_MAX_WORKERS = int(os.getenv("PDF_MAX_WORKERS", "2"))
ASSET_FETCH_TIMEOUT_SECONDS = float(os.getenv("ASSET_FETCH_TIMEOUT_SECONDS", "10"))

# -----------------------
# Logging & HTTP
# -----------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
