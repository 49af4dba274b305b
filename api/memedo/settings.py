# api/memedo/settings.py
import os
from pathlib import Path
from dotenv import load_dotenv

# Always load the repo-root .env (…/memedo/.env), regardless of CWD
ROOT_ENV = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ROOT_ENV)


def _csv(value: str) -> list[str]:
    return [s.strip() for s in value.split(",") if s.strip()]


class Settings:
    # ----------------------------------------------------------------------
    # Runtime
    # ----------------------------------------------------------------------
    ENV = os.getenv("ENV", "local")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    CORS_ORIGINS = _csv(os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,"
        "https://meme-do.com,https://www.meme-do.com,"
        "https://meme-go.com,https://www.meme-go.com",
    ))
    FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "https://meme-do.com")

    # ----------------------------------------------------------------------
    # Database
    # ----------------------------------------------------------------------
    DATABASE_URL = os.getenv("DATABASE_URL")
    PGHOST = os.getenv("PGHOST", "localhost")
    PGPORT = int(os.getenv("PGPORT", "5432"))
    PGUSER = os.getenv("PGUSER", "memedo")
    PGPASSWORD = os.getenv("PGPASSWORD", "memedo_dev")
    PGDATABASE = os.getenv("PGDATABASE", "memedo")

    # ----------------------------------------------------------------------
    # Whop (subscriptions)
    # ----------------------------------------------------------------------
    WHOP_API_KEY = os.getenv("WHOP_API_KEY", "")
    WHOP_API_BASE = os.getenv("WHOP_API_BASE", "https://api.whop.com/api/v2")
    WHOP_PLAN_ID_MONTHLY = os.getenv("WHOP_PLAN_ID_MONTHLY", "")
    WHOP_PLAN_ID_YEARLY = os.getenv("WHOP_PLAN_ID_YEARLY", "")
    WHOP_WEBHOOK_SECRET = os.getenv("WHOP_WEBHOOK_SECRET", "")
    WHOP_PORTAL_URL = os.getenv("WHOP_PORTAL_URL", "https://whop.com/hub/manage")
    WHOP_TIMEOUT = float(os.getenv("WHOP_TIMEOUT", "10"))

    # FastSpring only pushes webhooks to us; we never call its API
    FASTSPRING_WEBHOOK_SECRET = os.getenv("FASTSPRING_WEBHOOK_SECRET", "")

    # ----------------------------------------------------------------------
    # Firebase (ID token verification)
    # ----------------------------------------------------------------------
    FIREBASE_SERVICE_ACCOUNT_JSON = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON", "")

    # ----------------------------------------------------------------------
    # Token security data
    # ----------------------------------------------------------------------
    GOPLUS_API_BASE = os.getenv("GOPLUS_API_BASE", "https://api.gopluslabs.io/api/v1")
    GOPLUS_TIMEOUT = float(os.getenv("GOPLUS_TIMEOUT", "5"))

    # market data; unset key disables it
    BIRDEYE_API_KEY = os.getenv("BIRDEYE_API_KEY", "")
    BIRDEYE_API_BASE = os.getenv("BIRDEYE_API_BASE", "https://public-api.birdeye.so")
    BIRDEYE_TIMEOUT = float(os.getenv("BIRDEYE_TIMEOUT", "10"))

    # ----------------------------------------------------------------------
    # Quotas (analyses per calendar month)
    # ----------------------------------------------------------------------
    FREE_MONTHLY_ANALYSES = int(os.getenv("FREE_MONTHLY_ANALYSES", "5"))
    PREMIUM_MONTHLY_ANALYSES = int(os.getenv("PREMIUM_MONTHLY_ANALYSES", "100"))

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
