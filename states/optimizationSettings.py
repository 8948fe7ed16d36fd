from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class OptimizationSettings(BaseModel):
    max_utilization: float = Field(default=100.0, gt=0, le=100, description="Packing ceiling in percent")
    allow_unit_splitting: bool = Field(default=True, description="Allow one line to be divided across containers")
    shipping_date_grouping_range_days: Optional[int] = Field(default=None, ge=0)
    respect_current_assignments: bool = False
    apply_pallet_weights: bool = False
