import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ------------------ Security ------------------
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# ------------------ Database ------------------
raw_db_url = os.getenv("DATABASE_URL")
# Enforce SSL connection to hosted Postgres
if raw_db_url and raw_db_url.startswith("postgres") and "sslmode=" not in raw_db_url:
    DATABASE_URL = raw_db_url + ("&" if "?" in raw_db_url else "?") + "sslmode=require"
else:
    DATABASE_URL = raw_db_url

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", 5000))

# ------------------ OTP ------------------
OTP_LENGTH = int(os.getenv("OTP_LENGTH", 6))
OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", 5))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", 3))
OTP_CLEANUP_INTERVAL_SECONDS = int(os.getenv("OTP_CLEANUP_INTERVAL_SECONDS", 60))  # 0 disables the timer

# ------------------ Bootstrap admin ------------------
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@domain.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "AdminPass123!")  # use env var in production

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
