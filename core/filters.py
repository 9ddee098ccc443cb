from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from core.data import Dataset
from core.metrics_summary import unique_periods, unique_products


METRIC_KEYS = ("inventory", "procurementAmount", "salesAmount")


@dataclass(frozen=True)
class Selection:
    products: Tuple[str, ...] = ()
    periods: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ViewState:
    selection: Selection = field(default_factory=Selection)
    search: str = ""
    hidden_series: FrozenSet[str] = frozenset()


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if not values:
        return []
    out: List[int] = []
    for v in values:
        try:
            out.append(int(v))
        except Exception:
            continue
    return out


def _dedupe(values: Iterable) -> tuple:
    return tuple(dict.fromkeys(values))


def normalize_selection(
    raw: dict,
    *,
    available_products: Sequence[str],
    available_periods: Sequence[int],
) -> Selection:
    """Coerce a request payload into a Selection over what the dataset actually holds.

    Unknown products and periods are dropped. A payload without ``periods``
    selects every available period; an explicit empty list selects none.
    """
    known_products = set(available_products)
    products = _dedupe(str(p) for p in (raw.get("products") or []) if p is not None and str(p) in known_products)

    if raw.get("periods") is None:
        periods = tuple(sorted(set(available_periods)))
    else:
        known_periods = set(available_periods)
        periods = _dedupe(p for p in _as_int_list(raw.get("periods")) if p in known_periods)
    return Selection(products=products, periods=periods)


def search_products(products: Sequence[str], query: str) -> List[str]:
    q = (query or "").strip().lower()
    if not q:
        return list(products)
    return [p for p in products if q in p.lower()]


def series_keys(product: str) -> Tuple[str, ...]:
    return tuple(f"{product}_{metric}" for metric in METRIC_KEYS)


# ---------- reducers: (state, event) -> new state ----------

def reset_for_dataset(dataset: Dataset) -> ViewState:
    """Fresh view for a newly uploaded dataset: nothing selected, every day in range."""
    return ViewState(selection=Selection(products=(), periods=tuple(unique_periods(dataset))))


def _forget_series(state: ViewState, products: Tuple[str, ...], product: str) -> ViewState:
    # Bare metric keys only name series in the one-product view.
    forget = set(series_keys(product))
    if (len(products) == 1) != (len(state.selection.products) == 1):
        forget.update(METRIC_KEYS)
    selection = replace(state.selection, products=products)
    return replace(state, selection=selection, hidden_series=state.hidden_series - forget)


def toggle_product(state: ViewState, product: str) -> ViewState:
    products = state.selection.products
    if product in products:
        return remove_product(state, product)
    return _forget_series(state, products + (product,), product)


def remove_product(state: ViewState, product: str) -> ViewState:
    return _forget_series(state, tuple(p for p in state.selection.products if p != product), product)


def set_periods(state: ViewState, periods: Iterable[int]) -> ViewState:
    return replace(state, selection=replace(state.selection, periods=_dedupe(sorted(_as_int_list(periods)))))


def toggle_series(state: ViewState, key: str) -> ViewState:
    hidden = state.hidden_series
    hidden = hidden - {key} if key in hidden else hidden | {key}
    return replace(state, hidden_series=frozenset(hidden))


def set_search(state: ViewState, query: str) -> ViewState:
    return replace(state, search=query or "")


def visible_products(state: ViewState, dataset: Dataset) -> List[str]:
    return search_products(unique_products(dataset), state.search)
