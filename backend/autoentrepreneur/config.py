import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql://postgres:postgres@db:5432/postgres")

SECRET_KEY = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY") or "dev_secret_change_me"
ALGO = "HS256"
ACCESS_TOKEN_TTL = int(os.getenv("ACCESS_TOKEN_TTL", str(60 * 60 * 24)))

# accès base : timeout par requête, relectures en cas d'erreur réseau
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))
DB_READ_RETRIES = int(os.getenv("DB_READ_RETRIES", "3"))
DB_RETRY_BACKOFF = float(os.getenv("DB_RETRY_BACKOFF", "0.2"))

URSSAF_ESTIMATE_RATE = os.getenv("URSSAF_ESTIMATE_RATE", "0.22")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
