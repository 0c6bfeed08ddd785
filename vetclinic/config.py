from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'vetclinic.sqlite'}")

# In production: set it in the environment
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# Shared secret for the external scheduler hitting /api/cron/*; unset disables the endpoint
CRON_SECRET = os.getenv("CRON_SECRET") or None

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

CLINIC_TAX_PERCENT = Decimal(os.getenv("CLINIC_TAX_PERCENT", "12"))
NO_SHOW_GRACE_MINUTES = int(os.getenv("NO_SHOW_GRACE_MINUTES", "15"))
REMINDER_WINDOW_HOURS = 24
LOW_STOCK_DEFAULT_THRESHOLD = 5

SEED_ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@vetclinic.local")
SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "Admin#2024")
SEED_VET_EMAIL = os.getenv("SEED_VET_EMAIL", "vet@vetclinic.local")
SEED_VET_PASSWORD = os.getenv("SEED_VET_PASSWORD", "Vet#2024pass")

# Streamlit dashboard -> API
API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
HTTP_TIMEOUT_SECONDS = 10
