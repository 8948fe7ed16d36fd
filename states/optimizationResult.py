from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, Field
import pandas as pd

from states.loadedContainerState import LoadedContainer
from states.productState import Product
from states.PlanMetrics import PlanMetrics

UNASSIGNED = "unassigned"

_ROW_COLUMNS = [
    "instance_id", "template_id", "template_name", "destination",
    "product_id", "source_id", "product_name", "form_factor_id",
    "quantity", "weight", "container_utilization", "issue_count",
]


class OptimizationResult(BaseModel):
    assignments: List[LoadedContainer] = Field(default_factory=list)
    unassigned: List[Product] = Field(default_factory=list)
    total_cost: float = 0.0
    metrics: PlanMetrics = Field(default_factory=PlanMetrics)
    reasoning: str = ""

    def find_container(self, instance_id: str) -> Optional[LoadedContainer]:
        for a in self.assignments:
            if a.container.instance_id == instance_id:
                return a
        return None

    # --- flat view, one row per placed (or unplaced) fragment ---
    def to_df(self) -> pd.DataFrame:
        records = []
        for a in self.assignments:
            for p in a.assigned_products:
                records.append({
                    "instance_id": a.container.instance_id,
                    "template_id": a.container.template.id,
                    "template_name": a.container.template.name,
                    "destination": p.destination,
                    "product_id": p.id,
                    "source_id": p.lineage_id,
                    "product_name": p.name,
                    "form_factor_id": p.form_factor_id,
                    "quantity": p.quantity,
                    "weight": p.weight,
                    "container_utilization": a.total_utilization,
                    "issue_count": len(a.validation_issues),
                })
        for p in self.unassigned:
            records.append({
                "instance_id": UNASSIGNED,
                "template_id": None,
                "template_name": None,
                "destination": p.destination,
                "product_id": p.id,
                "source_id": p.lineage_id,
                "product_name": p.name,
                "form_factor_id": p.form_factor_id,
                "quantity": p.quantity,
                "weight": p.weight,
                "container_utilization": None,
                "issue_count": 0,
            })
        if not records:
            return pd.DataFrame(columns=_ROW_COLUMNS)
        return pd.DataFrame.from_records(records, columns=_ROW_COLUMNS)
