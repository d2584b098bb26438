"""
Brew & Leaf - Centralized Configuration
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
DATABASE_URL = os.getenv("DATABASE_URL")

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
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")
CART_SESSION_COOKIE = "cart_session"
CART_SESSION_MAX_AGE = 60 * 60 * 24 * 30  # 30 days


# ==========================================
# 💰 Pricing
# ==========================================
FREE_COURIER_THRESHOLD = Decimal(os.getenv("FREE_COURIER_THRESHOLD", "2000.00"))
COURIER_COST = Decimal(os.getenv("COURIER_COST", "300.00"))
POST_COST = Decimal(os.getenv("POST_COST", "400.00"))
DISCOUNT_THRESHOLD = Decimal(os.getenv("DISCOUNT_THRESHOLD", "3000.00"))
DISCOUNT_RATE = Decimal(os.getenv("DISCOUNT_RATE", "0.05"))


# ==========================================
# 🛒 Cart / Orders
# ==========================================
CART_MAX_QUANTITY = 100
PRICE_SYNC_EPSILON = Decimal("0.01")
ORDER_NUMBER_MAX_ATTEMPTS = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "5"))
STORE_PICKUP_ADDRESS = os.getenv(
    "STORE_PICKUP_ADDRESS",
    "Store pickup: 1 Roastery Lane, Main Street",
)


# ==========================================
# 📧 Notifications
# ==========================================
MAIL_API_URL = os.getenv("MAIL_API_URL", "")
MAIL_API_KEY = os.getenv("MAIL_API_KEY", "")
MAIL_FROM = os.getenv("MAIL_FROM", "orders@brewleaf.shop")


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Base URL for payment redirects
BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000")


# ==========================================
# 💳 Payment
# ==========================================
# Shared with the payment page; callbacks without it are rejected.
PAYMENT_CALLBACK_SECRET = os.getenv("PAYMENT_CALLBACK_SECRET", "")
PAYMENT_CALLBACK_HEADER = "X-Payment-Secret"
PAYMENT_TOKEN_EXPIRE_MINUTES = int(os.getenv("PAYMENT_TOKEN_EXPIRE_MINUTES", "60"))


# ==========================================
# ⭐ Reviews
# ==========================================
REVIEWS_PER_PAGE = 10
LATEST_REVIEWS_LIMIT = 5
