from __future__ import annotations
from typing import Optional, List, NamedTuple
from pydantic import BaseModel, Field

from states.productState import Product


class GroupKey(NamedTuple):
    destination: str                 # normalized, "unknown" when missing
    date_bucket: Optional[str] = None  # ISO date of the bucket's earliest product; None = no date bucketing / undated
    cluster: int = 0                   # ordinal within the destination, keeps same-day clusters apart


class ProductGroup(BaseModel):
    key: GroupKey
    destination: str = ""            # destination as written on the first product of the group
    products: List[Product] = Field(default_factory=list)
