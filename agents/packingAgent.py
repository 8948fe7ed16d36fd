from __future__ import annotations
from typing import Callable, List, Optional, Tuple
from math import floor
import logging

from states.productState import Product
from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import IdSequence, ContainerInstance, PackedInstance
from states.optimizationState import OptimizationState
from agents.compatibilityChecker import check_compatibility, normalize, UTILIZATION_TOLERANCE
from agents.groupingAgent import destination_key

logger = logging.getLogger("CPO.Packer")

# (template, country) -> weight limit in kg, None = unlimited
WeightLimitResolver = Callable[[ContainerTemplate, Optional[str]], Optional[float]]


class OptimizationCancelled(RuntimeError):
    """Raised between groups when the caller sets the cancel event."""


# ---------------------------- helpers ---------------------------- #

def _floor_units(x: float) -> int:
    # tolerate float noise, e.g. 0.3 / 0.1 units
    return max(0, int(floor(x + 1e-9)))


def eligible_templates(templates: List[ContainerTemplate], dest_key: str) -> List[ContainerTemplate]:
    return [t for t in templates if not normalize(t.destination) or normalize(t.destination) == dest_key]


def sort_templates(templates: List[ContainerTemplate]) -> List[ContainerTemplate]:
    """Largest capacity first, cheaper first on ties; sorted() is stable so input order breaks the rest."""
    return sorted(templates, key=lambda t: (-t.capacity_score, t.cost))


def _unit_share(product: Product, templates: List[ContainerTemplate]) -> float:
    # share of the largest template that supports the form factor taken by ONE unit
    for t in templates:
        cap = t.capacity_for(product.form_factor_id)
        if cap > 0:
            return 1.0 / cap
    return 0.0


def sort_products(products: List[Product], templates: List[ContainerTemplate]) -> List[Product]:
    """Restricted lines first, then physically larger units first (FFD), then bigger batches."""
    return sorted(
        products,
        key=lambda p: (0 if p.restrictions else 1, -_unit_share(p, templates), -p.quantity),
    )


def _max_units_in_instance(
    inst: PackedInstance,
    product: Product,
    max_utilization: float,
    weight_limit_for: WeightLimitResolver,
) -> int:
    cap = inst.template.capacity_for(product.form_factor_id)
    if cap <= 0:
        return 0
    by_capacity = _floor_units((max_utilization - inst.current_util) / 100.0 * cap)

    unit_weight = product.unit_weight
    limit = weight_limit_for(inst.template, inst.container.country)
    if limit is not None and unit_weight > 0:
        by_weight = _floor_units((limit - inst.current_weight) / unit_weight)
        return min(by_capacity, by_weight)
    return by_capacity


def _max_units_in_new(
    template: ContainerTemplate,
    product: Product,
    max_utilization: float,
    weight_limit_for: WeightLimitResolver,
) -> int:
    cap = template.capacity_for(product.form_factor_id)
    if cap <= 0:
        return 0
    by_capacity = _floor_units(cap * max_utilization / 100.0)

    unit_weight = product.unit_weight
    limit = weight_limit_for(template, product.country)
    if limit is not None and unit_weight > 0:
        by_weight = _floor_units(limit / unit_weight)
        if by_weight < 1:
            return 0
        return min(by_capacity, by_weight)
    return by_capacity


# ------------- FFD packing for ONE group -------------
def pack_products(
    products: List[Product],
    templates: List[ContainerTemplate],
    max_utilization: float,
    weight_limit_for: WeightLimitResolver,
    allow_unit_splitting: bool,
    existing_instances: List[PackedInstance],
    sequence: IdSequence,
) -> Tuple[List[PackedInstance], List[Product]]:
    """
    First-fit-decreasing packing with top-up of existing instances.

    Args:
        products: lines to place (any order; they are sorted here).
        templates: eligible templates, already sorted by sort_templates().
        max_utilization: packing ceiling in percent.
        weight_limit_for: resolves the weight limit for (template, country).
        allow_unit_splitting: if False a line is placed whole into one container or not at all.
        existing_instances: instances to top up first (seeded or earlier in this group).
        sequence: id source for new instances and split fragments.

    Returns:
        (instances, unassigned): `existing_instances` followed by any newly opened
        instances, and the fragments that could not be placed.
    """
    instances: List[PackedInstance] = list(existing_instances)
    unassigned: List[Product] = []
    max_utilization = float(max_utilization)
    # the tolerance only decides whether an instance still has room; units are counted against max_utilization
    ceiling = max_utilization + UTILIZATION_TOLERANCE

    for product in sort_products(products, templates):
        remaining = int(product.quantity)
        dest = destination_key(product)
        placements: List[Tuple[PackedInstance, int]] = []

        # Phase A: top up existing instances, most utilized first
        candidates = [
            inst for inst in instances
            if inst.container.destination == dest
            and inst.current_util < ceiling
            and not check_compatibility(product, inst.template)
        ]
        candidates.sort(key=lambda i: -i.current_util)

        for inst in candidates:
            if remaining <= 0:
                break
            fits = _max_units_in_instance(inst, product, max_utilization, weight_limit_for)
            if allow_unit_splitting:
                take = min(fits, remaining)
            else:
                take = remaining if fits >= remaining else 0
            if take > 0:
                placements.append((inst, take))
                remaining -= take

        # Phase B: open new instances from the first template that qualifies
        while remaining > 0:
            chosen: Optional[Tuple[ContainerTemplate, int]] = None
            for t in templates:
                if t.capacity_for(product.form_factor_id) <= 0:
                    continue
                if check_compatibility(product, t):
                    continue
                max_units = _max_units_in_new(t, product, max_utilization, weight_limit_for)
                if max_units < 1:
                    continue
                if not allow_unit_splitting and max_units < remaining:
                    continue
                chosen = (t, max_units)
                break

            if chosen is None:
                break

            template, max_units = chosen
            take = min(max_units, remaining)
            inst = PackedInstance(container=ContainerInstance(
                instance_id=sequence.next_instance_id(template.id),
                template=template,
                destination=dest,
                country=product.country,
            ))
            instances.append(inst)
            placements.append((inst, take))
            remaining -= take

        # materialize fragments; a line placed whole in one spot keeps its id
        whole = len(placements) == 1 and remaining == 0
        for inst, qty in placements:
            frag_id = product.id if whole else sequence.next_fragment_id(product.id)
            inst.add(product.fragment(qty, frag_id))

        if remaining > 0:
            left_id = product.id if not placements else sequence.next_fragment_id(product.id)
            unassigned.append(product.fragment(remaining, left_id))
            logger.warning(f"[Packer] {product.name} ({product.id}): {remaining} of {product.quantity} units unassigned")

    return instances, unassigned


def packingAgent(state: OptimizationState) -> OptimizationState:
    settings = state.settings
    weight_limit_for = state.country_tables.weight_limit_for

    instances: List[PackedInstance] = list(state.seeded_instances)
    unassigned: List[Product] = list(state.unassigned)

    for group in state.groups:
        if state.cancel_event is not None and state.cancel_event.is_set():
            raise OptimizationCancelled(f"cancelled before group {tuple(group.key)}")

        templates = sort_templates(eligible_templates(state.templates, group.key.destination))
        if not templates:
            logger.warning(f"[Packer] no template serves destination {group.destination or group.key.destination!r}; "
                           f"{len(group.products)} lines unassigned")
            unassigned.extend(p.fragment(p.quantity, p.id) for p in group.products)
            continue

        seeded = [i for i in state.seeded_instances if i.container.destination == group.key.destination]
        group_instances, group_unassigned = pack_products(
            group.products,
            templates,
            settings.max_utilization,
            weight_limit_for,
            settings.allow_unit_splitting,
            seeded,
            state.sequence,
        )
        new_instances = group_instances[len(seeded):]
        instances.extend(new_instances)
        unassigned.extend(group_unassigned)
        logger.debug(f"[Packer] group {tuple(group.key)}: {len(group.products)} lines -> "
                     f"{len(new_instances)} new containers, {len(group_unassigned)} unassigned")

    state.instances = instances
    state.unassigned = unassigned
    return state
