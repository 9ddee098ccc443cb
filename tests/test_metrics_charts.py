from __future__ import annotations

import pytest

from core.data import Observation, normalize_dataset
from core.filters import Selection
from core.metrics_charts import (
    MultiProductRow,
    SingleProductRow,
    build_chart_matrix,
    chart_rows,
    compute_trends,
    series_for,
)


@pytest.fixture
def dataset(records):
    return normalize_dataset(records)


def test_single_product_uses_bare_keys(dataset):
    matrix = build_chart_matrix(dataset, ["Widget"], [1, 2, 3])
    assert matrix.kind == "single"
    assert all(isinstance(r, SingleProductRow) for r in matrix.rows)

    rows = chart_rows(matrix)
    assert rows[0] == {"day": "Day 1", "period": 1, "inventory": 105, "procurementAmount": 20.0, "salesAmount": 15.0}
    assert "Widget_inventory" not in rows[0]


def test_multiple_products_use_namespaced_keys(dataset):
    matrix = build_chart_matrix(dataset, ["Widget", "Gadget"], [2])
    assert matrix.kind == "multi"
    assert all(isinstance(r, MultiProductRow) for r in matrix.rows)

    (row,) = chart_rows(matrix)
    assert row["Widget_inventory"] == 85
    assert row["Gadget_inventory"] == 1
    assert row["Gadget_procurementAmount"] == 40
    assert "inventory" not in row


def test_rows_are_in_ascending_period_order(dataset):
    matrix = build_chart_matrix(dataset, ["Widget"], [3, 1, 2])
    assert [r.period for r in matrix.rows] == [1, 2, 3]


def test_missing_product_day_leaves_row_sparse():
    obs = [
        Observation("A", "Alpha", 1, 10, 1, 2),
        Observation("A", "Alpha", 2, 11, 0, 0),
        Observation("B", "Beta", 2, 5, 0, 0),
    ]
    rows = chart_rows(build_chart_matrix(obs, ["Alpha", "Beta"], [1, 2]))
    assert rows[0] == {"day": "Day 1", "period": 1, "Alpha_inventory": 10, "Alpha_procurementAmount": 1, "Alpha_salesAmount": 2}
    assert rows[1]["Alpha_salesAmount"] == 0
    assert rows[1]["Beta_inventory"] == 5


def test_empty_selection_builds_empty_matrix(dataset):
    matrix = build_chart_matrix(dataset, [], [1, 2, 3])
    assert matrix.rows == ()
    assert chart_rows(matrix) == []


def test_hidden_series_are_left_out(dataset):
    matrix = build_chart_matrix(dataset, ["Widget", "Gadget"], [1])
    (row,) = chart_rows(matrix, hidden={"Gadget_salesAmount"})
    assert "Gadget_salesAmount" not in row
    assert "Gadget_inventory" in row


def test_series_for_matches_row_keys(dataset):
    single = build_chart_matrix(dataset, ["Gadget"], [1])
    assert [s["key"] for s in series_for(single)] == ["inventory", "procurementAmount", "salesAmount"]
    multi = build_chart_matrix(dataset, ["Gadget", "Widget"], [1])
    assert [s["key"] for s in series_for(multi)][:3] == [
        "Gadget_inventory",
        "Gadget_procurementAmount",
        "Gadget_salesAmount",
    ]
    assert series_for(multi)[3]["label"] == "Widget - Inventory"


def test_compute_trends_payload(dataset):
    payload = compute_trends(Selection(products=("Widget", "Gadget"), periods=(1, 2, 3)), dataset, hidden=["Widget_salesAmount"])
    assert payload["kind"] == "multi"
    assert [r["day"] for r in payload["rows"]] == ["Day 1", "Day 2", "Day 3"]
    assert "Widget_salesAmount" not in {s["key"] for s in payload["series"]}
    assert len(payload["series"]) == 5
    assert "layer" in payload["chart"]


def test_compute_trends_without_selection_has_no_chart(dataset):
    payload = compute_trends(Selection(products=(), periods=(1, 2, 3)), dataset)
    assert payload["rows"] == []
    assert payload["chart"] is None
