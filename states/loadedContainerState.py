from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field, ConfigDict

from states.containerInstanceState import ContainerInstance
from states.productState import Product


class LoadedContainer(BaseModel):
    """Terminal, immutable view of one container. Only the finalizer builds these."""
    model_config = ConfigDict(frozen=True)

    container: ContainerInstance
    assigned_products: List[Product] = Field(default_factory=list)
    total_utilization: float = 0.0     # percent, sum over fragments
    total_weight: float = 0.0
    validation_issues: List[str] = Field(default_factory=list)

    @property
    def instance_id(self) -> str:
        return self.container.instance_id

    @property
    def is_valid(self) -> bool:
        return not self.validation_issues

    @property
    def total_quantity(self) -> int:
        return sum(p.quantity for p in self.assigned_products)
