"""
Validation of normalized trade records from the import collaborator.

Broker-specific parsing happens upstream; records arriving here already
use the event field names. Each row is checked for shape and domain values
and converted into a WheelEvent. Invalid rows are collected, not raised,
so one bad line does not block a whole import.
"""

import csv
import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from src.constants import SHARES_PER_CONTRACT

from .assignment import ASSIGNMENT_EVENTS, assignment_cash_flow
from .models import EntryMeta, WheelEvent
from .state import EventType

logger = logging.getLogger(__name__)

META_FIELDS = ("delta", "iv_rank", "iv_percentile", "commission")
_SALE_EVENTS = (EventType.CSP_SOLD, EventType.CC_SOLD)
_BUYBACK_EVENTS = (EventType.CSP_CLOSED, EventType.CC_CLOSED)


class TradeRecordIn(BaseModel):
    """Schema for one normalized trade record.

    Attributes:
        symbol: Ticker symbol
        event_type: One of the wheel event types (case-insensitive)
        event_date: Date of the event
        amount: Signed cash flow; derived from the other fields when omitted
        strike: Strike price (option events)
        expiration: Expiration date (option events)
        premium_per_share: Premium per share (sales and buybacks)
        contracts: Number of contracts
        shares: Share count (share events)
        price: Price per share (share events)
        fees: Fees and commissions
        description: Free-form note
        meta: Optional entry context (delta, IV rank, ...)
    """

    symbol: str = Field(..., min_length=1, max_length=10)
    event_type: EventType
    event_date: date
    amount: Optional[float] = None
    strike: Optional[float] = Field(None, gt=0)
    expiration: Optional[date] = None
    premium_per_share: Optional[float] = Field(None, ge=0)
    contracts: int = Field(1, gt=0)
    shares: int = Field(0, ge=0)
    price: Optional[float] = Field(None, gt=0)
    fees: float = Field(0.0, ge=0)
    description: str = ""
    meta: Optional[EntryMeta] = None

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Uppercase and strip the symbol."""
        v = v.upper().strip()
        if not v:
            raise ValueError("Symbol cannot be empty")
        return v

    @field_validator("event_type", mode="before")
    @classmethod
    def parse_event_type(cls, v: Any) -> Any:
        """Accept event types in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode="after")
    def check_required_fields(self) -> "TradeRecordIn":
        """Require the fields each event type needs to be replayed."""
        if self.event_type in _SALE_EVENTS:
            if self.strike is None or self.expiration is None:
                raise ValueError(f"{self.event_type.value} requires strike and expiration")
            if self.premium_per_share is None and self.amount is None:
                raise ValueError(f"{self.event_type.value} requires premium_per_share or amount")
        if self.event_type in _BUYBACK_EVENTS:
            if self.premium_per_share is None and self.amount is None:
                raise ValueError(f"{self.event_type.value} requires premium_per_share or amount")
        if self.event_type in ASSIGNMENT_EVENTS and self.strike is None:
            raise ValueError(f"{self.event_type.value} requires strike")
        if self.event_type in (EventType.SHARES_BOUGHT, EventType.SHARES_SOLD):
            if self.shares <= 0 or self.price is None:
                raise ValueError(f"{self.event_type.value} requires shares and price")
        return self

    def _derived_amount(self) -> float:
        multiplier = SHARES_PER_CONTRACT * self.contracts
        if self.event_type in _SALE_EVENTS:
            return (self.premium_per_share or 0.0) * multiplier
        if self.event_type in _BUYBACK_EVENTS:
            return -(self.premium_per_share or 0.0) * multiplier
        if self.event_type in ASSIGNMENT_EVENTS:
            return assignment_cash_flow(self.event_type, self.strike, self.contracts)
        if self.event_type == EventType.SHARES_BOUGHT:
            return -self.price * self.shares
        if self.event_type == EventType.SHARES_SOLD:
            return self.price * self.shares
        if self.event_type == EventType.POSITION_CLOSED and self.price and self.shares:
            return self.price * self.shares
        return 0.0

    def to_event(self) -> WheelEvent:
        """Convert to an unsaved WheelEvent."""
        return WheelEvent(
            symbol=self.symbol,
            event_type=self.event_type,
            event_date=self.event_date,
            amount=self.amount if self.amount is not None else self._derived_amount(),
            strike=self.strike,
            expiration=self.expiration,
            premium_per_share=self.premium_per_share,
            contracts=self.contracts,
            shares=self.shares,
            price=self.price,
            fees=self.fees,
            description=self.description or f"Imported {self.event_type.value}",
            meta=self.meta,
        )


@dataclass
class RowError:
    """A rejected import row."""

    row: int
    message: str


def normalize_row(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Drop blank cells and nest flat meta columns under ``meta``.

    CSV rows arrive with every column present; empty strings mean absent.
    """
    row = {
        key.strip(): value.strip() if isinstance(value, str) else value
        for key, value in raw.items()
        if key is not None
    }
    row = {key: value for key, value in row.items() if value not in ("", None)}
    meta = {key: row.pop(key) for key in META_FIELDS if key in row}
    if meta and "meta" not in row:
        row["meta"] = meta
    return row


def _format_errors(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def validate_records(
    rows: Iterable[dict[str, Any]],
) -> tuple[list[WheelEvent], list[RowError]]:
    """
    Validate normalized records.

    Args:
        rows: Raw records (dicts), e.g. from a CSV or JSON file

    Returns:
        (events for valid rows, errors for rejected rows). Row numbers are 1-based.
    """
    events: list[WheelEvent] = []
    errors: list[RowError] = []
    for index, raw in enumerate(rows, start=1):
        try:
            record = TradeRecordIn.model_validate(normalize_row(raw))
        except PydanticValidationError as e:
            errors.append(RowError(index, _format_errors(e)))
            continue
        events.append(record.to_event())

    if errors:
        logger.warning(f"Import rejected {len(errors)} of {len(errors) + len(events)} row(s)")
    logger.debug(f"Import validated {len(events)} row(s)")
    return events, errors


def read_records(path: str) -> list[dict[str, Any]]:
    """
    Read normalized records from a ``.json`` (list of objects) or ``.csv`` file.

    Raises:
        ValueError: If the file type is unsupported or the JSON is not a list.
    """
    file_path = Path(path).expanduser()
    suffix = file_path.suffix.lower()
    if suffix == ".json":
        with open(file_path) as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError("JSON import must be a list of records")
        return data
    if suffix == ".csv":
        with open(file_path, newline="") as f:
            return list(csv.DictReader(f))
    raise ValueError(f"Unsupported import file type: {suffix or '(none)'}")
