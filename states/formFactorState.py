from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class FormFactor(BaseModel):
    id: str
    name: str
    pallet_weight_kg: Optional[float] = Field(None, ge=0, description="Weight of one empty pallet")
    units_per_pallet: Optional[int] = Field(None, gt=0)

    @property
    def has_pallet_config(self) -> bool:
        return bool(self.pallet_weight_kg) and bool(self.units_per_pallet)
