from __future__ import annotations
from typing import List, Optional, Set
import logging

from states.productState import Product
from states.formFactorState import FormFactor
from states.containerTemplateState import ContainerTemplate
from states.optimizationState import OptimizationState

logger = logging.getLogger("CPO.InputValidation")


class InputValidationError(ValueError):
    """Malformed input found before any packing ran. `issues` lists every problem."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__(f"{len(self.issues)} input problem(s): " + "; ".join(self.issues))


def collect_input_issues(
    products: List[Product],
    templates: List[ContainerTemplate],
    form_factors: Optional[List[FormFactor]] = None,
) -> List[str]:
    issues: List[str] = []

    known_ff: Set[str] = {ff.id for ff in (form_factors or [])}
    for t in templates:
        known_ff.update(t.capacities.keys())

    seen_templates: Set[str] = set()
    for t in templates:
        if not t.id:
            issues.append(f"Template {t.name!r} has no id")
        elif t.id in seen_templates:
            issues.append(f"Duplicate template id {t.id}")
        seen_templates.add(t.id)
        negative = [ff for ff, cap in t.capacities.items() if cap is None or cap < 0]
        if negative:
            issues.append(f"Template {t.id}: negative capacity for {', '.join(negative)}")

    seen_products: Set[str] = set()
    for p in products:
        label = p.id or p.name or "<unnamed>"
        if not p.id:
            issues.append(f"Product {p.name!r} has no id")
        elif p.id in seen_products:
            issues.append(f"Duplicate product id {p.id}")
        seen_products.add(p.id)

        if p.quantity is None or p.quantity <= 0:
            issues.append(f"Product {label}: quantity must be positive (got {p.quantity})")
        if p.weight is not None and p.weight < 0:
            issues.append(f"Product {label}: weight must not be negative (got {p.weight})")
        if not p.form_factor_id:
            issues.append(f"Product {label}: missing form factor")
        elif p.form_factor_id not in known_ff:
            issues.append(f"Product {label}: unknown form factor {p.form_factor_id}")

    return issues


def inputValidationAgent(state: OptimizationState) -> OptimizationState:
    issues = collect_input_issues(state.products, state.templates, state.form_factors)
    if issues:
        logger.error(f"[InputValidation] rejected input: {issues}")
        raise InputValidationError(issues)
    return state
