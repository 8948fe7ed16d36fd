from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import logging
import pandas as pd

from states.productState import Product
from states.productGroup import GroupKey, ProductGroup
from states.optimizationState import OptimizationState
from agents.compatibilityChecker import normalize, parse_date

logger = logging.getLogger("CPO.Grouping")

UNKNOWN_DESTINATION = "unknown"


def destination_key(product: Product) -> str:
    return normalize(product.destination) or UNKNOWN_DESTINATION


# ------------- step 1: destination buckets -------------
def group_by_destination(products: List[Product]) -> Dict[str, ProductGroup]:
    """Buckets in order of first appearance; the display destination is the first product's."""
    buckets: Dict[str, ProductGroup] = {}
    for p in products:
        dest = destination_key(p)
        if dest not in buckets:
            buckets[dest] = ProductGroup(key=GroupKey(dest), destination=p.destination or "")
        buckets[dest].products.append(p)
    return buckets


# ------------- step 2: shipping-date buckets inside one destination -------------
def split_by_shipping_date(group: ProductGroup, range_days: int) -> List[ProductGroup]:
    """
    Cluster by shipping_available_by: a cluster grows while a product is within
    `range_days` of the cluster's EARLIEST date; the first product past that opens
    the next cluster. Products without a parsable date end up in one trailing
    group (date_bucket=None).
    """
    dated: List[Tuple[object, Product]] = []
    undated: List[Product] = []
    for p in group.products:
        d = parse_date(p.shipping_available_by)
        if d is None:
            undated.append(p)
        else:
            dated.append((d, p))

    # stable: equal dates keep input order
    dated.sort(key=lambda t: t[0])

    out: List[ProductGroup] = []
    cluster: List[Product] = []
    cluster_min = None

    def close_cluster():
        if cluster:
            out.append(ProductGroup(
                key=GroupKey(group.key.destination, cluster_min.date().isoformat(), len(out)),
                destination=group.destination,
                products=list(cluster),
            ))

    for d, p in dated:
        if cluster_min is None:
            cluster_min = d
        elif (d - cluster_min) / pd.Timedelta(days=1) > range_days:
            close_cluster()
            cluster = []
            cluster_min = d
        cluster.append(p)
    close_cluster()

    if undated:
        out.append(ProductGroup(
            key=GroupKey(group.key.destination, None, len(out)),
            destination=group.destination,
            products=undated,
        ))
    return out


def group_products(products: List[Product], range_days: Optional[int] = None) -> Dict[GroupKey, ProductGroup]:
    by_dest = group_by_destination(products)
    if range_days is None:
        return {g.key: g for g in by_dest.values()}

    out: Dict[GroupKey, ProductGroup] = {}
    for g in by_dest.values():
        for sub in split_by_shipping_date(g, range_days):
            out[sub.key] = sub
    return out


def groupingAgent(state: OptimizationState) -> OptimizationState:
    groups = group_products(state.pending_products, state.settings.shipping_date_grouping_range_days)
    state.groups = list(groups.values())
    logger.debug(f"[Grouping] {len(state.pending_products)} products -> {len(state.groups)} groups: "
                 f"{[tuple(g.key) for g in state.groups]}")
    return state
