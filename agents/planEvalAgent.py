
from __future__ import annotations
from typing import Dict, List, Tuple, Any, Union
import logging
import pandas as pd
import numpy as np

from states.loadedContainerState import LoadedContainer
from states.productState import Product
from states.countryTables import CountryTables
from states.PlanMetrics import PlanMetrics
from states.optimizationState import OptimizationState

logger = logging.getLogger("CPO.PlanEval")

FULL_THRESHOLD = 95.0
ALMOST_FULL_MIN = 70.0
VERY_LOW_UTIL = 20.0

#simple aid functions
def _safe_div(a: float, b: float) -> float:
    return float(a) / float(b) if b not in (0, None) else 0.0

def _clamp01(x: float) -> float:
    return float(np.clip(float(x), 0.0, 1.0))

def container_cost(a: LoadedContainer, country_tables: CountryTables) -> float:
    # country of the first product on board decides the price
    country = a.assigned_products[0].country if a.assigned_products else a.container.country
    return country_tables.cost_for(a.container.template, country)

def _destination_label(a: LoadedContainer) -> str:
    if a.container.template.destination:
        return a.container.template.destination
    if a.assigned_products and a.assigned_products[0].destination:
        return a.assigned_products[0].destination
    return "Unspecified"

def _container_status(u: float) -> str:
        # Order matters; ties go to the "more full" bucket unless specified.
        if u >= FULL_THRESHOLD:
            return "FULL"
        if u >= ALMOST_FULL_MIN:
            return "NOT_QUITE_FULL"
        if u <= VERY_LOW_UTIL:
            return "LOW_UTIL"
        return "PARTIAL_UTIL"

def _generate_container_utilization_status_info(df: pd.DataFrame) -> str:
    """
    Build a message about container fullness and name the containers that are not full.
    Expects columns: ['destination', 'instance_id', 'status', 'util'] with util in percent.
    """
    if df is None or df.empty:
        return "no containers present"

    needed = {"destination", "instance_id", "status", "util"}
    missing = needed - set(df.columns)
    if missing:
        raise ValueError(f"DataFrame is missing required columns: {sorted(missing)}")

    non_full = df[df["status"] != "FULL"]
    count = len(non_full)
    if count == 0:
        return "all containers are full"

    # Build labels like "DE / T1-instance-2 (PARTIAL_UTIL, 43.00% utilized)"
    labels = [
        f"{r['destination']} / {r['instance_id']} ({r['status']}, {float(r['util']):.2f}% utilized)"
        for _, r in non_full.iterrows()
    ]
    label_str = ", ".join(labels)

    vc = non_full["status"].value_counts()
    counts_bits = []
    for status in ("NOT_QUITE_FULL", "PARTIAL_UTIL", "LOW_UTIL"):
        n = int(vc.get(status, 0))
        if n > 0:
            counts_bits.append(f"{n} {status}")
    counts_suffix = f" (including {', '.join(counts_bits)})" if counts_bits else ""

    if count == 1:
        return f"there is only one container that is not full: {label_str}{counts_suffix}"
    return f"there are {count} containers that are not full: {label_str}{counts_suffix}"


def evaluate_plan(
    assignments: List[LoadedContainer],
    unassigned: List[Product],
    country_tables: CountryTables,
    low_util_threshold: float = 85.0,
) -> Tuple[PlanMetrics, float]:
    """Returns (metrics, total_cost)."""
    unassigned_items = int(sum(p.quantity for p in unassigned))

    if not assignments:
        metrics = PlanMetrics(
            low_util_threshold=float(low_util_threshold),
            unassigned_items=unassigned_items,
            container_utilization_status_info="no containers present",
        )
        return metrics, 0.0

    df = pd.DataFrame.from_records([
        {
            "instance_id": a.container.instance_id,
            "destination": _destination_label(a),
            "util": float(a.total_utilization),
            "cost": container_cost(a, country_tables),
            "weight": float(a.total_weight),
            "items": int(a.total_quantity),
            "invalid": bool(a.validation_issues),
        }
        for a in assignments
    ])
    df["status"] = df["util"].apply(_container_status)

    df_products = pd.DataFrame.from_records([
        {"product_name": p.name, "quantity": int(p.quantity)}
        for a in assignments for p in a.assigned_products
    ], columns=["product_name", "quantity"])

    containers = len(df)
    total_cost = float(df["cost"].sum())
    total_items = int(df["items"].sum())
    avg_util = float(df["util"].mean())
    low_util_count = int((df["util"] < low_util_threshold).sum())

    by_dest = df.groupby("destination", sort=False).agg(containers=("instance_id", "count"), products=("items", "sum"))
    destination_stats: Dict[str, Dict[str, Union[int, float]]] = {
        str(dest): {"containers": int(r["containers"]), "products": int(r["products"])}
        for dest, r in by_dest.iterrows()
    }
    product_stats = {
        str(k): int(v) for k, v in df_products.groupby("product_name", sort=False)["quantity"].sum().items()
    }

    # Utilization score: 0 at 75%, 1 at 100%; penalize low-util containers up to -50%
    util_core = _clamp01((avg_util / 100.0 - 0.75) / (1.0 - 0.75))
    low_frac = _safe_div(low_util_count, containers)
    util_score = _clamp01(util_core * (1.0 - 0.5 * low_frac))
    placed_share = _safe_div(total_items, total_items + unassigned_items)
    overall = 100.0 * (0.5 * util_score + 0.5 * placed_share)

    metrics = PlanMetrics(
        containers=containers,
        total_cost=total_cost,
        total_items=total_items,
        total_weight=float(df["weight"].sum()),
        avg_utilization=avg_util,
        low_util_count=low_util_count,
        low_util_threshold=float(low_util_threshold),
        invalid_count=int(df["invalid"].sum()),
        unassigned_items=unassigned_items,
        destination_stats=destination_stats,
        product_stats=product_stats,
        utilization_by_container=df[["instance_id", "destination", "util", "status"]].to_dict(orient="records"),
        container_utilization_status_info=_generate_container_utilization_status_info(df),
        overall_score=float(overall),
    )
    return metrics, total_cost


def summarize(metrics: PlanMetrics, unassigned_lines: int) -> str:
    return (
        f"Optimization complete.\n{metrics.containers} containers used "
        f"(avg {metrics.avg_utilization:.1f}% full). {unassigned_lines} items unassigned."
    )


def planEvalAgent(state: OptimizationState) -> OptimizationState:
    metrics, total_cost = evaluate_plan(state.assignments, state.unassigned, state.country_tables, state.low_util_threshold)
    state.metrics = metrics
    state.total_cost = total_cost
    state.reasoning = summarize(metrics, len(state.unassigned))
    logger.info(f"[PlanEval] {metrics.containers} containers, cost {total_cost:.2f}, "
                f"avg util {metrics.avg_utilization:.1f}%, {metrics.unassigned_items} units unassigned")
    logger.debug(f"[PlanEval] {metrics.container_utilization_status_info}")
    return state
