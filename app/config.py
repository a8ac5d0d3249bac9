import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./personalization.db")

# Redis is optional - the listing config cache is skipped when unset
REDIS_URL = os.getenv("REDIS_URL")

# Seconds a listing's enabled configs stay cached
PERSONALIZATION_CONFIG_CACHE_TTL = int(os.getenv("PERSONALIZATION_CONFIG_CACHE_TTL", "300"))

# Stage recorded on submissions frozen by a snapshot when the caller does not name one
DEFAULT_LOCK_STAGE = os.getenv("DEFAULT_LOCK_STAGE", "add_to_cart")

# Frontend origins allowed by CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:8081,http://localhost:19006,http://localhost:3000",
).split(",")
