from __future__ import annotations
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from states.containerTemplateState import ContainerTemplate
from states.productState import Product


class IdSequence(BaseModel):
    """
    Synthetic id source for one optimize call (or one manual-planning session).
    Passed around explicitly so that two runs never share a counter.
    """
    instance_counter: int = 0
    fragment_counter: int = 0

    def next_instance_id(self, template_id: str) -> str:
        self.instance_counter += 1
        return f"{template_id}-instance-{self.instance_counter}"

    def next_fragment_id(self, product_id: str) -> str:
        self.fragment_counter += 1
        return f"{product_id}~{self.fragment_counter}"


class ContainerInstance(BaseModel):
    """One materialized copy of a template."""
    model_config = ConfigDict(frozen=True)

    instance_id: str
    template: ContainerTemplate
    destination: str = ""            # normalized destination of the cargo it was opened for
    country: Optional[str] = None    # country of the cargo it was opened for (cost / weight overrides)
    locked: bool = False             # rebuilt from a hard external assignment

    def with_template(self, template: ContainerTemplate) -> "ContainerInstance":
        return ContainerInstance(
            instance_id=self.instance_id,
            template=template,
            destination=self.destination,
            country=self.country,
            locked=self.locked,
        )


class PackedInstance(BaseModel):
    """Working record used while packing: the instance plus its running totals."""
    container: ContainerInstance
    assigned: List[Product] = Field(default_factory=list)
    current_util: float = 0.0
    current_weight: float = 0.0

    @property
    def template(self) -> ContainerTemplate:
        return self.container.template

    def add(self, fragment: Product) -> None:
        cap = self.template.capacity_for(fragment.form_factor_id)
        self.assigned.append(fragment)
        if cap > 0:
            self.current_util += (fragment.quantity / cap) * 100.0
        self.current_weight += float(fragment.weight or 0.0)
