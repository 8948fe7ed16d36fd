from __future__ import annotations
from typing import Optional, Dict, List
from pydantic import BaseModel, Field, ConfigDict


class ContainerTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    capacities: Dict[str, float] = Field(default_factory=dict, description="form factor id -> max units")
    cost: float = Field(0.0, ge=0)
    transit_time_days: float = Field(0.0, ge=0)
    available_from: Optional[str] = None       # departure date, YYYY-MM-DD
    destination: str = ""                      # empty = serves any destination
    restrictions: List[str] = Field(default_factory=list)   # capabilities offered
    max_weight_kg: Optional[float] = Field(None, gt=0)       # default limit, countries may override

    def capacity_for(self, form_factor_id: str) -> float:
        cap = self.capacities.get(form_factor_id)
        return float(cap) if cap else 0.0

    @property
    def capacity_score(self) -> float:
        # rough "size" of a template, used only for ordering
        return float(sum(self.capacities.values()))
