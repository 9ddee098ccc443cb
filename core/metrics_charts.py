from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import altair as alt
import pandas as pd

from core.data import Observation
from core.metrics_summary import filter_observations

if TYPE_CHECKING:
    from core.filters import Selection

alt.data_transformers.disable_max_rows()


METRIC_LABELS = {
    "inventory": "Inventory",
    "procurementAmount": "Procurement",
    "salesAmount": "Sales",
}


@dataclass(frozen=True)
class MetricValues:
    inventory: float
    procurement_amount: float
    sales_amount: float

    @classmethod
    def of(cls, obs: Observation) -> "MetricValues":
        return cls(inventory=obs.inventory, procurement_amount=obs.procurement_amount, sales_amount=obs.sales_amount)

    def keyed(self, prefix: str = "") -> Dict[str, float]:
        return {
            f"{prefix}inventory": self.inventory,
            f"{prefix}procurementAmount": self.procurement_amount,
            f"{prefix}salesAmount": self.sales_amount,
        }


@dataclass(frozen=True)
class SingleProductRow:
    period: int
    values: MetricValues


@dataclass(frozen=True)
class MultiProductRow:
    period: int
    per_product: Mapping[str, MetricValues]


ChartRow = Union[SingleProductRow, MultiProductRow]


@dataclass(frozen=True)
class ChartMatrix:
    """Period-ordered rows for one selection.

    ``kind`` is ``"single"`` when exactly one product is selected (bare metric
    keys) and ``"multi"`` otherwise (``<product>_<metric>`` keys).
    """

    kind: str
    products: Tuple[str, ...]
    rows: Tuple[ChartRow, ...] = ()


def build_chart_matrix(
    observations: Iterable[Observation],
    products: Sequence[str],
    periods: Sequence[int],
) -> ChartMatrix:
    selected = tuple(dict.fromkeys(products))
    subset = filter_observations(observations, selected, periods)

    grouped: Dict[int, List[Observation]] = {}
    for obs in subset:
        grouped.setdefault(obs.period, []).append(obs)

    if len(selected) == 1:
        rows: List[ChartRow] = [SingleProductRow(period=p, values=MetricValues.of(grouped[p][-1])) for p in sorted(grouped)]
        return ChartMatrix(kind="single", products=selected, rows=tuple(rows))

    rows = []
    for period in sorted(grouped):
        per_product: Dict[str, MetricValues] = {}
        for obs in grouped[period]:
            per_product[obs.product_name] = MetricValues.of(obs)
        ordered = {p: per_product[p] for p in selected if p in per_product}
        rows.append(MultiProductRow(period=period, per_product=ordered))
    return ChartMatrix(kind="multi", products=selected, rows=tuple(rows))


def chart_rows(matrix: ChartMatrix, hidden: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """Flatten a matrix into the keyed rows a charting library consumes.

    Products without data for a day contribute no keys to that day's row.
    """
    hidden_keys = set(hidden)
    out: List[Dict[str, Any]] = []
    for row in matrix.rows:
        flat: Dict[str, Any] = {"day": f"Day {row.period}", "period": row.period}
        if isinstance(row, SingleProductRow):
            values = row.values.keyed()
        else:
            values = {}
            for product, metrics in row.per_product.items():
                values.update(metrics.keyed(prefix=f"{product}_"))
        flat.update({k: v for k, v in values.items() if k not in hidden_keys})
        out.append(flat)
    return out


def series_for(matrix: ChartMatrix) -> List[Dict[str, str]]:
    out = []
    for product in matrix.products:
        for metric, label in METRIC_LABELS.items():
            key = metric if matrix.kind == "single" else f"{product}_{metric}"
            out.append({"key": key, "product": product, "metric": metric, "label": f"{product} - {label}"})
    return out


def _trend_chart(long_df: pd.DataFrame) -> Dict[str, Any]:
    base = alt.Chart(long_df).encode(
        x=alt.X("day:N", title="Day", sort=None),
        color=alt.Color("product:N", title="Product"),
        tooltip=["product", "day", "label", alt.Tooltip("value:Q", format=",.2f")],
    )
    inventory = (
        base.transform_filter(alt.datum.metric == "inventory")
        .mark_line(point=True)
        .encode(y=alt.Y("value:Q", title="Inventory (units)"))
    )
    amounts = (
        base.transform_filter(alt.datum.metric != "inventory")
        .mark_line(point=True)
        .encode(
            y=alt.Y("value:Q", title="Amount ($)", axis=alt.Axis(format="$,.0f")),
            strokeDash=alt.StrokeDash("metric:N", title="Metric"),
        )
    )
    return alt.layer(inventory, amounts).resolve_scale(y="independent").to_dict()


def compute_trends(
    selection: "Selection",
    observations: Iterable[Observation],
    hidden: Iterable[str] = (),
) -> Dict[str, Any]:
    hidden_keys = set(hidden)
    matrix = build_chart_matrix(observations, selection.products, selection.periods)
    rows = chart_rows(matrix, hidden=hidden_keys)
    series = [s for s in series_for(matrix) if s["key"] not in hidden_keys]

    chart: Optional[Dict[str, Any]] = None
    long_rows = [
        {"day": row["day"], "product": s["product"], "metric": s["metric"], "label": s["label"], "value": row[s["key"]]}
        for row in rows
        for s in series
        if s["key"] in row
    ]
    if long_rows:
        chart = _trend_chart(pd.DataFrame(long_rows))

    return {
        "selection": asdict(selection),
        "kind": matrix.kind,
        "rows": rows,
        "series": series,
        "chart": chart,
    }
