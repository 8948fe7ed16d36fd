from __future__ import annotations
from typing import Optional, Dict
from pydantic import BaseModel, Field

from states.containerTemplateState import ContainerTemplate


class CountryTables(BaseModel):
    """
    Country overrides keyed by country code (or name), then template id.
    A missing entry falls back to the template's own cost / weight limit.
    """
    costs: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    weight_limits: Dict[str, Dict[str, float]] = Field(default_factory=dict)

    @staticmethod
    def _lookup(table: Dict[str, Dict[str, float]], country: Optional[str], template_id: str) -> Optional[float]:
        if not country:
            return None
        row = table.get(country)
        if row is None:
            key = country.strip().lower()
            for k, v in table.items():
                if k.strip().lower() == key:
                    row = v
                    break
        if not row:
            return None
        val = row.get(template_id)
        return float(val) if val is not None else None

    def cost_for(self, template: ContainerTemplate, country: Optional[str]) -> float:
        override = self._lookup(self.costs, country, template.id)
        return override if override is not None else float(template.cost)

    def weight_limit_for(self, template: ContainerTemplate, country: Optional[str]) -> Optional[float]:
        override = self._lookup(self.weight_limits, country, template.id)
        return override if override is not None else template.max_weight_kg
