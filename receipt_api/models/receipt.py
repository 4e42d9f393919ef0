"""
Receipt domain models.

ExtractionResult is the validated output of the vision model; Receipt is the
persisted record. Both share the same field validators so the date, currency
and money invariants hold at persistence time, not only at extraction time.
"""

import math
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATE_PATTERN = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
NUMERIC_STRING = re.compile(r"^-?\d+(\.\d+)?$")


def coerce_money(value) -> float:
    """Accept numbers or plain numeric strings; reject everything else"""
    if isinstance(value, bool):
        raise ValueError("monetary value must be a number, got a boolean")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and NUMERIC_STRING.match(value.strip()):
        number = float(value.strip())
    else:
        raise ValueError(f"monetary value must be numeric, got {value!r}")
    if not math.isfinite(number):
        raise ValueError("monetary value must be finite")
    return number


class ReceiptItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    item_name: str
    item_cost: float

    @field_validator("item_cost", mode="before")
    @classmethod
    def _numeric_cost(cls, v):
        return coerce_money(v)


class ExtractionResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: str
    currency: str
    vendor_name: str = Field(min_length=1)
    receipt_items: list[ReceiptItem]
    tax: float = Field(ge=0)
    total: float = Field(ge=0)

    @field_validator("date")
    @classmethod
    def _dd_mm_yyyy(cls, v: str) -> str:
        v = v.strip()
        match = DATE_PATTERN.match(v)
        if not match:
            raise ValueError(f"date must be DD/MM/YYYY, got {v!r}")
        day, month, year = (int(part) for part in match.groups())
        datetime(year, month, day)  # raises ValueError for impossible dates
        return v

    @field_validator("currency")
    @classmethod
    def _iso_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if not CURRENCY_PATTERN.match(v):
            raise ValueError(f"currency must be a 3-letter code, got {v!r}")
        return v

    @field_validator("vendor_name")
    @classmethod
    def _strip_vendor(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("vendor_name must not be empty")
        return v

    @field_validator("tax", "total", mode="before")
    @classmethod
    def _numeric_money(cls, v):
        return coerce_money(v)


class Receipt(ExtractionResult):
    id: str
    owner_id: str = Field(min_length=1)
    image_url: str = Field(min_length=1)
    storage_ref: str = Field(min_length=1)
    created_at: datetime
    updated_at: datetime
