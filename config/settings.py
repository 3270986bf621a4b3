"""
AHSO Store - Centralized Configuration
========================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL", "")

if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME")

    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ==========================================
# 🔐 Security
# ==========================================
JWT_SECRET = os.getenv("JWT_SECRET")

if not JWT_SECRET:
    print("[ERROR] Critical: JWT_SECRET missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days
AUTH_COOKIE = "auth_token"
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS") or "12")
PASSWORD_RESET_EXPIRE_MINUTES = 15

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


# ==========================================
# 🛒 Cart
# ==========================================
CART_COOKIE = "cart_id"
CART_COOKIE_MAX_AGE = 60 * 60 * 24 * 30  # 30 days
GUEST_CART_TTL_DAYS = int(os.getenv("GUEST_CART_TTL_DAYS") or "30")


# ==========================================
# 💳 Checkout
# ==========================================
VAT_RATE = Decimal(os.getenv("VAT_RATE") or "0.10")
FLAT_SHIPPING_FEE = Decimal(os.getenv("FLAT_SHIPPING_FEE") or "30000")
DEFAULT_CURRENCY = "VND"

# code -> rule config; parsed by modules.checkout.promotions.build_promo_table
PROMO_CODES = {
    "GIAM10": {"kind": "percent", "value": 10},
    "GIAM50K": {"kind": "fixed", "value": 50_000},
    "FREESHIP": {"kind": "free_shipping"},
}

BANK_INFO = {
    "bank_id": os.getenv("BANK_ID", "tpbank"),
    "bank_name": os.getenv("BANK_NAME", "TPBank - Chi nhánh Bình Chánh"),
    "account_name": os.getenv("BANK_ACCOUNT_NAME", "CÔNG TY TNHH AHSO"),
    "account_number": os.getenv("BANK_ACCOUNT_NUMBER", "03168969399"),
}


# ==========================================
# 🔧 App
# ==========================================
APP_VERSION = "1.0.0"
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
