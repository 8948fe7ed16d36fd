from __future__ import annotations
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field


class PlanMetrics(BaseModel):
    containers: int = 0
    total_cost: float = 0.0
    total_items: int = 0
    total_weight: float = 0.0
    avg_utilization: float = 0.0          # percent, unweighted mean over containers
    low_util_count: int = 0               # # of containers below low_util_threshold
    low_util_threshold: float = 85.0
    invalid_count: int = 0                # # of containers carrying validation issues
    unassigned_items: int = 0

    # {destination: {"containers": n, "products": units}}
    destination_stats: Dict[str, Dict[str, Union[int, float]]] = Field(default_factory=dict)
    # units placed per product name
    product_stats: Dict[str, int] = Field(default_factory=dict)
    # one record per container: instance_id, destination, util, status
    utilization_by_container: List[Dict[str, Union[str, float]]] = Field(default_factory=list)
    container_utilization_status_info: Optional[str] = None

    # final score (0–100)
    overall_score: float = 0.0
