from __future__ import annotations
from typing import List, Optional, Tuple
import re
import logging

from states.productState import Product
from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import IdSequence, ContainerInstance
from states.loadedContainerState import LoadedContainer
from states.countryTables import CountryTables
from states.optimizationSettings import OptimizationSettings
from states.optimizationResult import OptimizationResult, UNASSIGNED
from agents.finalizeAgent import finalize_container
from agents.groupingAgent import destination_key
from agents.compatibilityChecker import normalize
from agents.planEvalAgent import evaluate_plan, summarize

logger = logging.getLogger("CPO.ManualPlanning")

_INSTANCE_RE = re.compile(r"-instance-(\d+)$")
_FRAGMENT_RE = re.compile(r"~(\d+)$")


# ---------------------------- helpers ---------------------------- #

def sequence_after(result: OptimizationResult) -> IdSequence:
    """An IdSequence that will not hand out ids already present in `result`."""
    max_inst = 0
    max_frag = 0
    products: List[Product] = list(result.unassigned)
    for a in result.assignments:
        m = _INSTANCE_RE.search(a.container.instance_id)
        if m:
            max_inst = max(max_inst, int(m.group(1)))
        products.extend(a.assigned_products)
    for p in products:
        m = _FRAGMENT_RE.search(p.id)
        if m:
            max_frag = max(max_frag, int(m.group(1)))
    return IdSequence(instance_counter=max_inst, fragment_counter=max_frag)


def _refinalize(
    container: ContainerInstance,
    products: List[Product],
    country_tables: CountryTables,
    settings: OptimizationSettings,
) -> LoadedContainer:
    country = container.country or (products[0].country if products else None)
    limit = country_tables.weight_limit_for(container.template, country)
    return finalize_container(container, products, limit, settings.shipping_date_grouping_range_days)


def _rebuild(
    assignments: List[LoadedContainer],
    unassigned: List[Product],
    country_tables: CountryTables,
    low_util_threshold: float,
) -> OptimizationResult:
    metrics, total_cost = evaluate_plan(assignments, unassigned, country_tables, low_util_threshold)
    return OptimizationResult(
        assignments=assignments,
        unassigned=unassigned,
        total_cost=total_cost,
        metrics=metrics,
        reasoning=summarize(metrics, len(unassigned)),
    )


def _take_from(
    items: List[Product],
    product_id: str,
    quantity: Optional[int],
    sequence: IdSequence,
) -> Tuple[List[Product], List[Product]]:
    """
    Remove `quantity` units of `product_id` and its lineage siblings (same name and
    form factor) from `items`. The named fragment is drained first. A partially taken
    fragment stays behind with its id; the moved part gets a fresh one.
    Returns (remaining_items, moved).
    """
    primary = next((p for p in items if p.id == product_id), None)
    if primary is None:
        raise KeyError(f"product {product_id} not found in source")

    wanted = primary.quantity if quantity is None else int(quantity)
    if wanted <= 0:
        raise ValueError(f"quantity must be positive (got {quantity})")

    siblings = [
        i for i, p in enumerate(items)
        if p.id == product_id or (p.name == primary.name and p.form_factor_id == primary.form_factor_id)
    ]
    siblings.sort(key=lambda i: 0 if items[i].id == product_id else 1)

    remaining_items: List[Optional[Product]] = list(items)
    moved: List[Product] = []
    for i in siblings:
        if wanted <= 0:
            break
        cand = items[i]
        if cand.quantity <= wanted:
            moved.append(cand)
            remaining_items[i] = None
            wanted -= cand.quantity
        else:
            moved.append(cand.fragment(wanted, sequence.next_fragment_id(cand.lineage_id)))
            remaining_items[i] = cand.fragment(cand.quantity - wanted, cand.id)
            wanted = 0

    return [p for p in remaining_items if p is not None], moved


# ---------------------------- operations ---------------------------- #

def move_products(
    result: OptimizationResult,
    product_id: str,
    source_id: str,
    target_id: str,
    quantity: Optional[int] = None,
    *,
    templates: Optional[List[ContainerTemplate]] = None,
    country_tables: Optional[CountryTables] = None,
    settings: Optional[OptimizationSettings] = None,
    sequence: Optional[IdSequence] = None,
    low_util_threshold: float = 85.0,
) -> OptimizationResult:
    """
    Move units between containers / the unassigned list and re-finalize both ends.

    source_id: "unassigned" or an instance id.
    target_id: "unassigned", an instance id, or a template id (opens a fresh instance).
    """
    if source_id == target_id:
        return result

    country_tables = country_tables or CountryTables()
    settings = settings or OptimizationSettings()
    sequence = sequence or sequence_after(result)

    assignments: List[Optional[LoadedContainer]] = list(result.assignments)
    unassigned: List[Product] = list(result.unassigned)

    # --- take from source ---
    if source_id == UNASSIGNED:
        unassigned, moved = _take_from(unassigned, product_id, quantity, sequence)
    else:
        src_idx = next((i for i, a in enumerate(assignments) if a.container.instance_id == source_id), None)
        if src_idx is None:
            raise KeyError(f"container {source_id} not found")
        src = assignments[src_idx]
        left, moved = _take_from(list(src.assigned_products), product_id, quantity, sequence)
        if left:
            assignments[src_idx] = _refinalize(src.container, left, country_tables, settings)
        else:
            assignments[src_idx] = None

    # --- put into target ---
    if target_id == UNASSIGNED:
        unassigned.extend(moved)
    else:
        tgt_idx = next(
            (i for i, a in enumerate(assignments) if a is not None and a.container.instance_id == target_id),
            None,
        )
        if tgt_idx is not None:
            tgt = assignments[tgt_idx]
            assignments[tgt_idx] = _refinalize(
                tgt.container, list(tgt.assigned_products) + moved, country_tables, settings
            )
        else:
            template = next((t for t in (templates or []) if t.id == target_id), None)
            if template is None:
                raise KeyError(f"target {target_id} is neither a container nor a template")
            container = ContainerInstance(
                instance_id=sequence.next_instance_id(template.id),
                template=template,
                destination=destination_key(moved[0]),
                country=moved[0].country,
            )
            assignments.append(_refinalize(container, moved, country_tables, settings))

    kept = [a for a in assignments if a is not None]
    logger.info(f"[ManualPlanning] moved {sum(p.quantity for p in moved)} units of {product_id} "
                f"from {source_id} to {target_id}")
    return _rebuild(kept, unassigned, country_tables, low_util_threshold)


def add_container(
    result: OptimizationResult,
    template: ContainerTemplate,
    *,
    country_tables: Optional[CountryTables] = None,
    settings: Optional[OptimizationSettings] = None,
    sequence: Optional[IdSequence] = None,
    low_util_threshold: float = 85.0,
) -> OptimizationResult:
    """Append an empty instance of `template` to the plan."""
    country_tables = country_tables or CountryTables()
    settings = settings or OptimizationSettings()
    sequence = sequence or sequence_after(result)

    container = ContainerInstance(
        instance_id=sequence.next_instance_id(template.id),
        template=template,
        destination=normalize(template.destination),
    )
    assignments = list(result.assignments) + [_refinalize(container, [], country_tables, settings)]
    return _rebuild(assignments, list(result.unassigned), country_tables, low_util_threshold)


def delete_container(
    result: OptimizationResult,
    instance_id: str,
    *,
    country_tables: Optional[CountryTables] = None,
    low_util_threshold: float = 85.0,
) -> OptimizationResult:
    """Drop a container; everything it carried goes back to unassigned."""
    target = result.find_container(instance_id)
    if target is None:
        raise KeyError(f"container {instance_id} not found")

    country_tables = country_tables or CountryTables()
    assignments = [a for a in result.assignments if a.container.instance_id != instance_id]
    unassigned = list(result.unassigned) + list(target.assigned_products)
    return _rebuild(assignments, unassigned, country_tables, low_util_threshold)
