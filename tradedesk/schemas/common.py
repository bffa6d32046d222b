"""
Shared schema pieces
"""
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel

CENT = Decimal("0.01")


def round2(value) -> Decimal:
    """Round a money value to cents, half-up"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class Pagination(BaseModel):
    total: int
    page: int
    pages: int


def normalize_currency(v):
    """Uppercase a 3-letter currency code, None passes through"""
    if v is None:
        return v
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("currency must be a 3-letter code")
    return v
