from __future__ import annotations

import io
import logging
import math
import numbers
import re
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import pandas as pd

from core.config import PERIOD_COUNT


logger = logging.getLogger(__name__)

ID_COLUMN = "ID"
NAME_COLUMN = "Product Name"
OPENING_INVENTORY_COLUMN = "Opening Inventory"
PROCUREMENT_QTY_COLUMN = "Procurement Qty (Day {day})"
PROCUREMENT_PRICE_COLUMN = "Procurement Price (Day {day})"
SALES_QTY_COLUMN = "Sales Qty (Day {day})"
SALES_PRICE_COLUMN = "Sales Price (Day {day})"

REQUIRED_COLUMNS = [ID_COLUMN, NAME_COLUMN]
SPREADSHEET_SUFFIXES = (".xlsx", ".xlsm")

DAY_COLUMN_RE = re.compile(r"^(Procurement|Sales)\s+(Qty|Price)\s*\(\s*Day\s*(\d+)\s*\)$", re.IGNORECASE)
LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

RawRecord = Mapping[str, object]


class SpreadsheetDecodeError(ValueError):
    """Raised when an upload cannot be turned into raw product records."""


@dataclass(frozen=True)
class Observation:
    product_id: str
    product_name: str
    period: int
    inventory: float
    procurement_amount: float
    sales_amount: float


@dataclass(frozen=True)
class CellIssue:
    """A non-blank cell that could not be read as a number and was counted as 0."""

    row: int
    product_id: str
    column: str
    value: str


@dataclass(frozen=True)
class Dataset:
    observations: Tuple[Observation, ...] = ()
    issues: Tuple[CellIssue, ...] = ()

    def __iter__(self) -> Iterator[Observation]:
        return iter(self.observations)

    def __len__(self) -> int:
        return len(self.observations)

    def __getitem__(self, idx: int) -> Observation:
        return self.observations[idx]

    @property
    def empty(self) -> bool:
        return not self.observations


OBSERVATION_COLUMNS = [f.name for f in fields(Observation)]


def _is_missing(value: object) -> bool:
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, str):
        return not value.strip()
    return False


def _coerce_number(value: object, *, currency: bool) -> Tuple[float, bool]:
    """Return ``(number, ok)``; blanks are a clean 0, garbage is 0 with ``ok=False``."""
    if _is_missing(value):
        return 0, True
    if isinstance(value, bool):
        return 0, False
    if isinstance(value, (int, float)):
        return value, True
    if isinstance(value, numbers.Real):
        return float(value), True

    text = str(value).strip()
    if currency:
        text = text.replace("$", "")
    text = text.replace(",", "").strip()
    match = LEADING_NUMBER_RE.match(text)
    if not match:
        return 0, False
    return float(match.group(0)), True


def parse_currency(value: object) -> float:
    """Normalize a price cell such as ``"$1,234.50"`` or ``12`` into a number.

    Numbers pass through unchanged. Blank, missing or unparsable values are 0.
    """
    return _coerce_number(value, currency=True)[0]


def parse_quantity(value: object) -> float:
    return _coerce_number(value, currency=False)[0]


def _cell_text(value: object) -> str:
    if _is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def day_columns(record: RawRecord) -> Dict[Tuple[str, str, int], str]:
    """Map ``(kind, field, day)`` to the record's own header, e.g.
    ``("procurement", "qty", 4) -> "procurement qty (Day4)"``.

    The first header seen wins when two spellings name the same cell.
    """
    out: Dict[Tuple[str, str, int], str] = {}
    for key in record.keys():
        match = DAY_COLUMN_RE.match(str(key).strip())
        if match:
            slot = (match.group(1).lower(), match.group(2).lower(), int(match.group(3)))
            out.setdefault(slot, key)
    return out


def record_periods(record: RawRecord) -> int:
    days = [day for _, _, day in day_columns(record)]
    return max(days) if days else PERIOD_COUNT


def expand_record(
    record: RawRecord,
    row: int = 0,
    issues: Optional[List[CellIssue]] = None,
) -> List[Observation]:
    """Expand one wide product row into one observation per day.

    Inventory is carried forward day by day, so days are walked in order:
    ``inventory(d) = opening + procured(1..d) - sold(1..d)``.
    """
    product_id = _cell_text(record.get(ID_COLUMN))
    product_name = _cell_text(record.get(NAME_COLUMN))
    columns = day_columns(record)

    def read(column: str, *, currency: bool = False) -> float:
        value = record.get(column)
        number, ok = _coerce_number(value, currency=currency)
        if not ok:
            logger.debug("Row %s (%s): %s=%r is not numeric, using 0", row, product_id, column, value)
            if issues is not None:
                issues.append(CellIssue(row=row, product_id=product_id, column=str(column), value=str(value)))
        return number

    def read_day(kind: str, field: str, day: int, template: str) -> float:
        column = columns.get((kind, field, day), template.format(day=day))
        return read(column, currency=(field == "price"))

    opening_inventory = read(OPENING_INVENTORY_COLUMN)
    cumulative_procurement = 0
    cumulative_sales = 0

    out: List[Observation] = []
    for day in range(1, record_periods(record) + 1):
        procurement_qty = read_day("procurement", "qty", day, PROCUREMENT_QTY_COLUMN)
        procurement_price = read_day("procurement", "price", day, PROCUREMENT_PRICE_COLUMN)
        sales_qty = read_day("sales", "qty", day, SALES_QTY_COLUMN)
        sales_price = read_day("sales", "price", day, SALES_PRICE_COLUMN)

        cumulative_procurement += procurement_qty
        cumulative_sales += sales_qty

        out.append(
            Observation(
                product_id=product_id,
                product_name=product_name,
                period=day,
                inventory=opening_inventory + cumulative_procurement - cumulative_sales,
                procurement_amount=procurement_qty * procurement_price,
                sales_amount=sales_qty * sales_price,
            )
        )
    return out


def normalize_dataset(records: Iterable[RawRecord]) -> Dataset:
    observations: List[Observation] = []
    issues: List[CellIssue] = []
    count = 0
    for row, record in enumerate(records, start=1):
        observations.extend(expand_record(record, row=row, issues=issues))
        count += 1
    logger.info(
        "Normalized %d records into %d observations (%d unreadable cells)",
        count,
        len(observations),
        len(issues),
    )
    return Dataset(observations=tuple(observations), issues=tuple(issues))


def _norm_cols(columns: List[object]) -> List[str]:
    return [str(c).replace("\ufeff", "").strip() for c in columns]


def read_spreadsheet(file_name: str, file_bytes: bytes) -> List[Dict[str, object]]:
    """Decode an uploaded workbook (first sheet) or CSV into column-keyed records."""
    lower_name = str(file_name or "").lower()
    try:
        if lower_name.endswith(".csv"):
            # CSV has no cell types; keep text so IDs like "007" survive.
            try:
                raw = pd.read_csv(io.BytesIO(file_bytes), encoding="utf-8-sig", dtype=str)
            except UnicodeDecodeError:
                raw = pd.read_csv(io.BytesIO(file_bytes), encoding="latin1", dtype=str)
        elif lower_name.endswith(SPREADSHEET_SUFFIXES):
            raw = pd.read_excel(io.BytesIO(file_bytes), sheet_name=0)
        else:
            raise SpreadsheetDecodeError("Unsupported file type. Use .xlsx or .csv")
    except SpreadsheetDecodeError:
        raise
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Could not read {file_name}: {exc}") from exc

    raw.columns = _norm_cols(raw.columns.tolist())
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing:
        raise SpreadsheetDecodeError(f"Spreadsheet missing required columns: {', '.join(missing)}")

    raw = raw.dropna(how="all")
    raw = raw.astype(object).where(pd.notna(raw), None)
    return raw.to_dict(orient="records")


def dataset_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    return pd.DataFrame([asdict(o) for o in observations], columns=OBSERVATION_COLUMNS)
