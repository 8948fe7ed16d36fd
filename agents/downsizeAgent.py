from __future__ import annotations
from typing import List, Optional
import logging

from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import PackedInstance
from states.countryTables import CountryTables
from states.optimizationState import OptimizationState
from agents.compatibilityChecker import can_fit, normalize

logger = logging.getLogger("CPO.Downsize")


def cheapest_replacement(
    inst: PackedInstance,
    templates: List[ContainerTemplate],
    country_tables: CountryTables,
) -> Optional[ContainerTemplate]:
    """
    Cheapest template (country-aware cost) that serves the same destination as the
    instance's current template and can take its whole contents. None if nothing is
    strictly cheaper. Ties keep the first template in input order.
    """
    country = inst.container.country
    current = inst.template
    best: Optional[ContainerTemplate] = None
    best_cost = country_tables.cost_for(current, country)
    current_dest = normalize(current.destination)

    for t in templates:
        if t.id == current.id or normalize(t.destination) != current_dest:
            continue
        cost = country_tables.cost_for(t, country)
        if cost >= best_cost:
            continue
        if not can_fit(inst.assigned, t, country_tables.weight_limit_for(t, country)):
            continue
        best, best_cost = t, cost
    return best


def downsize_instances(
    instances: List[PackedInstance],
    templates: List[ContainerTemplate],
    country_tables: CountryTables,
) -> int:
    """One substitution pass over all instances (no fixed-point iteration). Returns # of swaps."""
    swaps = 0
    for inst in instances:
        # hard bookings keep the template they were booked on
        if inst.container.locked or not inst.assigned:
            continue
        replacement = cheapest_replacement(inst, templates, country_tables)
        if replacement is None:
            continue
        logger.debug(f"[Downsize] {inst.container.instance_id}: {inst.template.id} -> {replacement.id}")
        inst.container = inst.container.with_template(replacement)
        inst.current_util = sum(
            (p.quantity / replacement.capacity_for(p.form_factor_id)) * 100.0 for p in inst.assigned
        )
        swaps += 1
    return swaps


def downsizeAgent(state: OptimizationState) -> OptimizationState:
    swaps = downsize_instances(state.instances, state.templates, state.country_tables)
    logger.info(f"[Downsize] {swaps} of {len(state.instances)} containers moved to a cheaper template")
    return state
