from __future__ import annotations

import pytest

from core.data import Observation, normalize_dataset
from core.filters import Selection
from core.metrics_summary import (
    SummaryStats,
    aggregate,
    compute_summary,
    filter_observations,
    unique_periods,
    unique_products,
)


@pytest.fixture
def dataset(records):
    return normalize_dataset(records)


def test_filter_is_subset_of_dataset(dataset):
    subset = filter_observations(dataset, ["Gadget"], [1, 3])
    assert [(o.product_name, o.period) for o in subset] == [("Gadget", 1), ("Gadget", 3)]
    assert all(o in dataset.observations for o in subset)


def test_filter_with_empty_products_or_periods_is_empty(dataset):
    assert filter_observations(dataset, [], [1, 2, 3]) == []
    assert filter_observations(dataset, ["Widget"], []) == []


def test_aggregate_of_empty_subset():
    stats = aggregate([])
    assert stats == SummaryStats()
    assert stats.avg_procurement == 0
    assert stats.net_margin_pct is None


def test_aggregate_widget(dataset):
    stats = aggregate(filter_observations(dataset, ["Widget"], [1, 2, 3]))
    assert stats.count == 3
    assert stats.total_procurement == pytest.approx(57.5)
    assert stats.total_sales == pytest.approx(125.0)
    assert stats.total_inventory == 280
    assert stats.avg_procurement == pytest.approx(57.5 / 3)
    assert stats.avg_sales == pytest.approx(125.0 / 3)
    assert stats.avg_inventory == pytest.approx(280 / 3)
    assert stats.net_revenue == pytest.approx(67.5)
    assert stats.net_margin_pct == pytest.approx(67.5 / 125.0)


def test_unique_products_first_seen_order():
    obs = [
        Observation("B", "Beta", 1, 0, 0, 0),
        Observation("A", "Alpha", 1, 0, 0, 0),
        Observation("B", "Beta", 2, 0, 0, 0),
    ]
    assert unique_products(obs) == ["Beta", "Alpha"]
    assert unique_periods(reversed(obs)) == [1, 2]


def test_compute_summary_breaks_down_by_product(dataset):
    payload = compute_summary(Selection(products=("Gadget", "Widget"), periods=(1,)), dataset)
    assert payload["selection"] == {"products": ("Gadget", "Widget"), "periods": (1,)}
    assert payload["stats"]["count"] == 2
    assert payload["stats"]["total_sales"] == pytest.approx(8015.0)
    assert [p["product_name"] for p in payload["by_product"]] == ["Gadget", "Widget"]
    assert payload["by_product"][0]["total_inventory"] == -3
    assert payload["by_product"][1]["total_procurement"] == pytest.approx(20.0)
