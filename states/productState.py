from __future__ import annotations
from typing import Optional, List, Any
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, field_validator


class AssignmentKind(str, Enum):
    HARD      = "hard"       # booked outside the planner, kept as-is when respecting current assignments
    SUGGESTED = "suggested"  # produced by an earlier planner run, free to be re-planned


# ---------- Core entity ----------
class Product(BaseModel):
    """
    One cargo line-item. Inputs are read-only; the planner never mutates a Product,
    it builds new fragments with `fragment()` when a line is divided.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    form_factor_id: str
    quantity: int = Field(..., gt=0)
    weight: Optional[float] = Field(None, ge=0, description="Total weight of the line (kg), not per unit")
    destination: str = ""
    country: Optional[str] = None
    restrictions: List[str] = Field(default_factory=list)

    # YYYY-MM-DD strings; anything unparseable is treated as "no constraint"
    ready_date: Optional[str] = None
    ship_deadline: Optional[str] = None
    arrival_deadline: Optional[str] = None
    shipping_available_by: Optional[str] = None

    # lineage: id of the original input line this fragment came from
    source_id: Optional[str] = None

    # pre-existing assignment set by the upstream import
    current_container: Optional[str] = None
    assignment_reference: Optional[str] = None
    assignment_kind: AssignmentKind = AssignmentKind.HARD

    @field_validator("ready_date", "ship_deadline", "arrival_deadline", "shipping_available_by", mode="before")
    @classmethod
    def _dates_to_str(cls, v: Any) -> Any:
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        return v

    @property
    def lineage_id(self) -> str:
        return self.source_id or self.id

    @property
    def unit_weight(self) -> float:
        if not self.weight:
            return 0.0
        return float(self.weight) / float(self.quantity)

    @property
    def is_hard_assigned(self) -> bool:
        return (
            bool((self.current_container or "").strip())
            and bool((self.assignment_reference or "").strip())
            and self.assignment_kind == AssignmentKind.HARD
        )

    def fragment(self, quantity: int, fragment_id: Optional[str] = None) -> "Product":
        """
        Build a new Product holding `quantity` units of this line.
        Weight is pro-rated by unit weight; lineage (source_id) is preserved.
        """
        data = self.model_dump()
        data.update({
            "id": fragment_id or self.id,
            "quantity": int(quantity),
            "weight": None if self.weight is None else self.unit_weight * quantity,
            "source_id": self.lineage_id,
        })
        return Product(**data)
