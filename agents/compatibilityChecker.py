from __future__ import annotations
from typing import List, Optional, Iterable, Any
import pandas as pd

from states.productState import Product
from states.containerTemplateState import ContainerTemplate

# Allow a small tolerance (0.1%) for floating-point rounding in utilization sums
UTILIZATION_TOLERANCE = 0.1
FULL_UTILIZATION = 100.0 + UTILIZATION_TOLERANCE


#simple aid functions
def normalize(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Lenient date parse; blanks and garbage come back as None."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def check_compatibility(
    product: Product,
    container: ContainerTemplate,
    existing_weight: float = 0.0,
    weight_limit: Optional[float] = None,
) -> List[str]:
    """
    Every check runs (no short-circuit) so the caller gets the full list:
      1. form factor supported (positive capacity)
      2. restrictions covered by the container's capabilities
      3. destination match (empty container destination = any)
      4. weight limit, when one is given and the product has a weight
      5. ready / ship-deadline / arrival-deadline against departure and arrival
    """
    issues: List[str] = []

    # 1. Form factor capacity
    if container.capacity_for(product.form_factor_id) <= 0:
        issues.append(f"Container cannot hold form factor: {product.form_factor_id}")

    # 2. Restrictions
    if product.restrictions:
        container_caps = {normalize(r) for r in container.restrictions}
        missing = [r for r in product.restrictions if normalize(r) not in container_caps]
        if missing:
            issues.append(f"Missing capabilities: {', '.join(missing)}")

    # 3. Destination
    c_dest = normalize(container.destination)
    if c_dest and c_dest != normalize(product.destination):
        issues.append(
            f"Destination mismatch: Product to {product.destination or 'unknown'}, "
            f"Container to {container.destination}"
        )

    # 4. Weight
    if weight_limit is not None and product.weight is not None:
        total = float(existing_weight) + float(product.weight)
        if total > weight_limit:
            issues.append(f"Weight limit exceeded: {total:.1f}kg > {float(weight_limit):.1f}kg")

    # 5. Dates
    departs = parse_date(container.available_from)
    if departs is not None:
        arrives = departs + pd.Timedelta(days=float(container.transit_time_days or 0))

        ready = parse_date(product.ready_date)
        if ready is not None and ready > departs:
            issues.append(f"Container departs ({container.available_from}) before product is ready ({product.ready_date})")

        ship_deadline = parse_date(product.ship_deadline)
        if ship_deadline is not None and ship_deadline < departs:
            issues.append(f"Ships after deadline ({product.ship_deadline})")

        arrival_deadline = parse_date(product.arrival_deadline)
        if arrival_deadline is not None and arrival_deadline < arrives:
            issues.append(f"Arrives after deadline ({product.arrival_deadline})")

    return issues


def _passes_static_checks(product: Product, container: ContainerTemplate) -> bool:
    # checks 1-3 only
    if container.capacity_for(product.form_factor_id) <= 0:
        return False
    if product.restrictions:
        container_caps = {normalize(r) for r in container.restrictions}
        if any(normalize(r) not in container_caps for r in product.restrictions):
            return False
    c_dest = normalize(container.destination)
    if c_dest and c_dest != normalize(product.destination):
        return False
    return True


def can_fit(products: Iterable[Product], container: ContainerTemplate, weight_limit: Optional[float] = None) -> bool:
    """Whole-container feasibility: used when swapping an instance onto another template."""
    total_util = 0.0
    total_weight = 0.0
    for p in products:
        if not _passes_static_checks(p, container):
            return False
        total_util += (p.quantity / container.capacity_for(p.form_factor_id)) * 100.0
        total_weight += float(p.weight or 0.0)

    if total_util > FULL_UTILIZATION:
        return False
    if weight_limit is not None and total_weight > weight_limit:
        return False
    return True
