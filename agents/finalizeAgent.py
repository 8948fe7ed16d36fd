from __future__ import annotations
from typing import List, Optional
import logging

from states.productState import Product
from states.containerInstanceState import ContainerInstance
from states.loadedContainerState import LoadedContainer
from states.optimizationState import OptimizationState
from agents.compatibilityChecker import check_compatibility, parse_date, FULL_UTILIZATION

logger = logging.getLogger("CPO.Finalize")


def _shipping_span_days(products: List[Product]) -> Optional[float]:
    dates = [d for d in (parse_date(p.shipping_available_by) for p in products) if d is not None]
    if len(dates) < 2:
        return None
    return (max(dates) - min(dates)).total_seconds() / 86400.0


def finalize_container(
    container: ContainerInstance,
    products: List[Product],
    weight_limit: Optional[float] = None,
    shipping_date_grouping_range_days: Optional[int] = None,
) -> LoadedContainer:
    """
    Recompute utilization, weight and the issue list for one container.
    Same function for the optimizer's last step and for manual re-planning.
    """
    template = container.template
    total_utilization = 0.0
    total_weight = 0.0
    issues: List[str] = []

    for p in products:
        cap = template.capacity_for(p.form_factor_id)
        if cap <= 0:
            issues.append(f"{p.name}: Container does not support form factor {p.form_factor_id}")
        else:
            total_utilization += (p.quantity / cap) * 100.0
        total_weight += float(p.weight or 0.0)

        # form factor already reported above; weight is checked for the container as a whole
        product_issues = [
            i for i in check_compatibility(p, template)
            if not i.startswith("Container cannot hold form factor")
        ]
        if product_issues:
            issues.append(f"{p.name}: {', '.join(product_issues)}")

    if total_utilization > FULL_UTILIZATION:
        issues.append(f"Overfilled: {total_utilization:.1f}%")

    if weight_limit is not None and total_weight > weight_limit:
        issues.append(f"Weight limit exceeded: {total_weight:.1f}kg > {float(weight_limit):.1f}kg")

    if shipping_date_grouping_range_days is not None:
        span = _shipping_span_days(products)
        if span is not None and span > shipping_date_grouping_range_days:
            issues.append(f"Shipping dates span {span:g} days (max {shipping_date_grouping_range_days})")

    return LoadedContainer(
        container=container,
        assigned_products=list(products),
        total_utilization=total_utilization,
        total_weight=total_weight,
        validation_issues=issues,
    )


def finalizeAgent(state: OptimizationState) -> OptimizationState:
    range_days = state.settings.shipping_date_grouping_range_days
    assignments: List[LoadedContainer] = []
    for inst in state.instances:
        if not inst.assigned:
            continue
        limit = state.country_tables.weight_limit_for(inst.template, inst.container.country)
        assignments.append(finalize_container(inst.container, inst.assigned, limit, range_days))

    state.assignments = assignments
    invalid = sum(1 for a in assignments if a.validation_issues)
    if invalid:
        logger.warning(f"[Finalize] {invalid} of {len(assignments)} containers carry validation issues")
    return state
