from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from core.data import Observation

if TYPE_CHECKING:
    from core.filters import Selection


@dataclass(frozen=True)
class SummaryStats:
    count: int = 0
    total_procurement: float = 0.0
    total_sales: float = 0.0
    total_inventory: float = 0.0
    avg_procurement: float = 0.0
    avg_sales: float = 0.0
    avg_inventory: float = 0.0
    net_revenue: float = 0.0
    net_margin_pct: Optional[float] = None


def filter_observations(
    observations: Iterable[Observation],
    products: Iterable[str],
    periods: Iterable[int],
) -> List[Observation]:
    product_set = set(products)
    period_set = set(periods)
    if not product_set or not period_set:
        return []
    return [o for o in observations if o.product_name in product_set and o.period in period_set]


def aggregate(subset: Sequence[Observation]) -> SummaryStats:
    count = len(subset)
    total_procurement = sum(o.procurement_amount for o in subset)
    total_sales = sum(o.sales_amount for o in subset)
    total_inventory = sum(o.inventory for o in subset)
    net_revenue = total_sales - total_procurement
    return SummaryStats(
        count=count,
        total_procurement=total_procurement,
        total_sales=total_sales,
        total_inventory=total_inventory,
        avg_procurement=total_procurement / count if count else 0.0,
        avg_sales=total_sales / count if count else 0.0,
        avg_inventory=total_inventory / count if count else 0.0,
        net_revenue=net_revenue,
        net_margin_pct=(net_revenue / total_sales) if total_sales else None,
    )


def unique_products(observations: Iterable[Observation]) -> List[str]:
    return list(dict.fromkeys(o.product_name for o in observations))


def unique_periods(observations: Iterable[Observation]) -> List[int]:
    return sorted({o.period for o in observations})


def compute_summary(selection: "Selection", observations: Iterable[Observation]) -> Dict[str, Any]:
    subset = filter_observations(observations, selection.products, selection.periods)
    by_product = []
    for product in selection.products:
        rows = [o for o in subset if o.product_name == product]
        by_product.append({"product_name": product, **asdict(aggregate(rows))})
    return {
        "selection": asdict(selection),
        "stats": asdict(aggregate(subset)),
        "by_product": by_product,
    }
