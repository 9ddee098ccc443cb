from __future__ import annotations

import io
from typing import Dict, List

import pandas as pd
import pytest

from core.config import Settings


@pytest.fixture
def scenario_record() -> Dict[str, object]:
    return {
        "ID": "P1",
        "Product Name": "Widget",
        "Opening Inventory": 100,
        "Procurement Qty (Day 1)": 10,
        "Procurement Price (Day 1)": "$2.00",
        "Sales Qty (Day 1)": 5,
        "Sales Price (Day 1)": "$3.00",
        "Procurement Qty (Day 2)": 0,
        "Procurement Price (Day 2)": "$0",
        "Sales Qty (Day 2)": 20,
        "Sales Price (Day 2)": "$3.50",
        "Procurement Qty (Day 3)": 15,
        "Procurement Price (Day 3)": "$2.50",
        "Sales Qty (Day 3)": 10,
        "Sales Price (Day 3)": "$4.00",
    }


@pytest.fixture
def second_record() -> Dict[str, object]:
    return {
        "ID": "P2",
        "Product Name": "Gadget",
        "Opening Inventory": 5,
        "Procurement Qty (Day 1)": 0,
        "Procurement Price (Day 1)": "$9.99",
        "Sales Qty (Day 1)": 8,
        "Sales Price (Day 1)": "$1,000.00",
        "Procurement Qty (Day 2)": 4,
        "Procurement Price (Day 2)": 10,
        "Sales Qty (Day 2)": 0,
        "Sales Price (Day 2)": "",
        "Procurement Qty (Day 3)": None,
        "Procurement Price (Day 3)": None,
        "Sales Qty (Day 3)": 1,
        "Sales Price (Day 3)": "$12",
    }


@pytest.fixture
def records(scenario_record, second_record) -> List[Dict[str, object]]:
    return [scenario_record, second_record]


@pytest.fixture
def xlsx_bytes(records) -> bytes:
    buf = io.BytesIO()
    pd.DataFrame(records).to_excel(buf, index=False)
    return buf.getvalue()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(db_path=tmp_path / "dashboard.db", jwt_secret="test-secret", jwt_expires_hours=1)
