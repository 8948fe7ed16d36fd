from __future__ import annotations
from typing import Dict, List, NamedTuple, Optional, Tuple
from difflib import get_close_matches
import logging

from states.productState import Product
from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import IdSequence, ContainerInstance, PackedInstance
from states.optimizationState import OptimizationState
from agents.compatibilityChecker import normalize
from agents.groupingAgent import destination_key

logger = logging.getLogger("CPO.Seed")


class SeedKey(NamedTuple):
    container_description: str
    destination: str
    reference: str


def match_template(description: str, templates: List[ContainerTemplate]) -> Optional[ContainerTemplate]:
    """
    Resolve free-text container description -> template. First hit wins:
      exact id, exact name, longest template name inside the description,
      description inside a template name, closest name (difflib, cutoff 0.6).
    """
    desc = normalize(description)
    if not desc:
        return None

    for t in templates:
        if normalize(t.id) == desc:
            return t
    for t in templates:
        if normalize(t.name) == desc:
            return t

    by_length = sorted(templates, key=lambda t: len(t.name), reverse=True)
    for t in by_length:
        name = normalize(t.name)
        if name and name in desc:
            return t
    for t in templates:
        if desc in normalize(t.name):
            return t

    names = [normalize(t.name) for t in templates]
    close = get_close_matches(desc, names, n=1, cutoff=0.6)
    if close:
        return templates[names.index(close[0])]
    return None


def split_hard_assignments(products: List[Product]) -> Tuple[Dict[SeedKey, List[Product]], List[Product]]:
    """Hard-assigned lines keyed by (description, destination, reference); everything else is free."""
    seeds: Dict[SeedKey, List[Product]] = {}
    free: List[Product] = []
    for p in products:
        if not p.is_hard_assigned:
            free.append(p)
            continue
        key = SeedKey(
            container_description=(p.current_container or "").strip(),
            destination=destination_key(p),
            reference=(p.assignment_reference or "").strip(),
        )
        seeds.setdefault(key, []).append(p)
    return seeds, free


def build_seeded_instances(
    products: List[Product],
    templates: List[ContainerTemplate],
    sequence: IdSequence,
) -> Tuple[List[PackedInstance], List[Product]]:
    """
    Rebuild one locked instance per distinct SeedKey. Lines whose description matches
    no template go back to the free pool.
    Returns (seeded_instances, free_products).
    """
    seeds, free = split_hard_assignments(products)
    instances: List[PackedInstance] = []

    for key, members in seeds.items():
        template = match_template(key.container_description, templates)
        if template is None:
            logger.warning(f"[Seed] no template matches {key.container_description!r} "
                           f"(ref {key.reference}); {len(members)} lines re-planned")
            free.extend(members)
            continue

        inst = PackedInstance(container=ContainerInstance(
            instance_id=sequence.next_instance_id(template.id),
            template=template,
            destination=key.destination,
            country=members[0].country,
            locked=True,
        ))
        for p in members:
            inst.add(p.fragment(p.quantity, p.id))
        instances.append(inst)

    return instances, free


def seedAssignmentsAgent(state: OptimizationState) -> OptimizationState:
    if not state.settings.respect_current_assignments:
        state.pending_products = list(state.products)
        state.seeded_instances = []
        return state

    seeded, free = build_seeded_instances(state.products, state.templates, state.sequence)
    state.seeded_instances = seeded
    state.pending_products = free
    logger.info(f"[Seed] {len(seeded)} containers rebuilt from current assignments, "
                f"{len(free)} lines left to plan")
    return state
