"""
Checkout Module - Promotions
==============================
Promo code rules and the code -> rule table.
The table is built from configuration and handed to CheckoutService.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional, Union

from common.helpers import to_decimal


@dataclass(frozen=True)
class PercentDiscount:
    pct: Decimal
    kind: str = "percent"


@dataclass(frozen=True)
class FixedDiscount:
    amount: Decimal
    kind: str = "fixed"


@dataclass(frozen=True)
class FreeShipping:
    kind: str = "free_shipping"


PromoRule = Union[PercentDiscount, FixedDiscount, FreeShipping]
PromoTable = Mapping[str, PromoRule]


def build_promo_table(config: Mapping[str, dict]) -> Dict[str, PromoRule]:
    """
    Parse {"CODE": {"kind": ..., "value": ...}} into rule objects.
    Raises ValueError on an unknown kind.
    """
    table = {}
    for code, entry in config.items():
        kind = entry.get("kind")
        if kind == "percent":
            rule = PercentDiscount(pct=to_decimal(entry["value"]))
        elif kind == "fixed":
            rule = FixedDiscount(amount=to_decimal(entry["value"]))
        elif kind == "free_shipping":
            rule = FreeShipping()
        else:
            raise ValueError(f"Unknown promo kind for {code}: {kind!r}")
        table[code.strip().upper()] = rule
    return table


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def lookup(table: PromoTable, code: Optional[str]) -> Optional[PromoRule]:
    """Exact match on the trimmed, upper-cased code."""
    key = normalize_code(code)
    if not key:
        return None
    return table.get(key)
