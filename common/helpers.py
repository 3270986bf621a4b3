"""
AHSO Store - Shared Helpers
=============================
Pure utility functions with NO database or module dependencies.
"""

import re
import secrets
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_int(value: Optional[str]) -> Optional[int]:
    """Safely convert a string to int. Returns None on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date/datetime string. Returns None on failure."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


# ==========================================
# Money
# ==========================================

_CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def money(value):
    """JSON-friendly amount: int when whole, float otherwise."""
    d = quantize_money(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


# ==========================================
# Text
# ==========================================

def normalize_text(value: Optional[str]) -> str:
    """Lower-case and strip diacritics (Vietnamese đ folded to d)."""
    if not value:
        return ""
    text = unicodedata.normalize("NFD", value.lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return text.replace("đ", "d").strip()


def slugify(value: str) -> str:
    text = normalize_text(value)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-") or secrets.token_hex(4)


# ==========================================
# Contact validation
# ==========================================

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
E164_RE = re.compile(r"^\+[1-9]\d{7,14}$")
TAX_CODE_RE = re.compile(r"^\d{10}(\d{3})?$")
_PHONE_VN_RE = re.compile(r"^(?:\+?84|0)(\d{9})$")


def to_e164_vn(value: str) -> str:
    """Normalise a Vietnamese local/international number to +84XXXXXXXXX."""
    s = re.sub(r"[\s\-.()]", "", value or "")
    m = _PHONE_VN_RE.match(s)
    if m:
        return f"+84{m.group(1)}"
    return s


def is_valid_email(value: str) -> bool:
    return bool(value and EMAIL_RE.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(value and E164_RE.match(value))


def is_valid_tax_code(value: str) -> bool:
    return bool(TAX_CODE_RE.match(value or ""))


# ==========================================
# Paging
# ==========================================

def parse_paging(page: Optional[int], page_size: Optional[int],
                 default_size: int = 20, max_size: int = 100) -> Tuple[int, int, int]:
    """Normalise paging input. Returns (page, page_size, offset)."""
    page = max(1, page or 1)
    page_size = max(1, min(max_size, page_size or default_size))
    return page, page_size, (page - 1) * page_size


# ==========================================
# Codes
# ==========================================

def generate_order_code() -> str:
    """Human-readable order code: AH<yymmdd>-<4 digits>."""
    now = now_utc()
    rand = secrets.randbelow(9000) + 1000
    return f"AH{now:%y%m%d}-{rand}"


def generate_cart_token() -> str:
    return secrets.token_urlsafe(24)
