import os
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

# Load variables from .env (robust to run from project root or /backend)
env_path = find_dotenv(filename=".env") or str(Path(__file__).resolve().parents[2] / ".env")
load_dotenv(env_path)

PACKAGE_DIR = Path(__file__).resolve().parent      # backend/hrflow
BACKEND_DIR = PACKAGE_DIR.parent                   # backend

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BACKEND_DIR / 'hrflow.db'}")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

COMPANY_NAME = os.getenv("COMPANY_NAME", "Your Company")

# Stage timing
OFFER_VALIDITY_HOURS = int(os.getenv("OFFER_VALIDITY_HOURS", "72"))
CONTRACT_VALIDITY_DAYS = int(os.getenv("CONTRACT_VALIDITY_DAYS", "14"))

# Defaults copied onto contracts created from an approved form
DEFAULT_EMPLOYMENT_TYPE = os.getenv("DEFAULT_EMPLOYMENT_TYPE", "full_time")
DEFAULT_PROBATION_MONTHS = int(os.getenv("DEFAULT_PROBATION_MONTHS", "3"))

MIN_REQUEST_REASON_LENGTH = int(os.getenv("MIN_REQUEST_REASON_LENGTH", "10"))
MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
ACCOUNT_TOKEN_TTL_HOURS = int(os.getenv("ACCOUNT_TOKEN_TTL_HOURS", "72"))

TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", str(PACKAGE_DIR / "templates")))
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(BACKEND_DIR / "generated")))
STORAGE_BASE_URL = os.getenv("STORAGE_BASE_URL", "/files")

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USERNAME") or os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASSWORD") or os.getenv("SMTP_PASS")
FROM_NAME = os.getenv("FROM_NAME", "HR Team")
FROM_EMAIL = os.getenv("FROM_EMAIL") or SMTP_USER
PORTAL_URL = os.getenv("PORTAL_URL", "http://127.0.0.1:8000/portal")
