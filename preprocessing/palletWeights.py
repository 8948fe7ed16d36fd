from __future__ import annotations
from typing import Dict, List
from math import ceil

from states.productState import Product
from states.formFactorState import FormFactor


def total_weight_with_pallets(product: Product, form_factors: Dict[str, FormFactor]) -> float:
    """
    product weight + ceil(quantity / units_per_pallet) * pallet weight.
    Form factors without a pallet configuration add nothing.
    """
    product_weight = float(product.weight or 0.0)
    ff = form_factors.get(product.form_factor_id)
    if ff is None or not ff.has_pallet_config:
        return product_weight

    pallet_count = ceil(product.quantity / ff.units_per_pallet)
    return product_weight + pallet_count * float(ff.pallet_weight_kg)


def apply_pallet_weights(products: List[Product], form_factors: List[FormFactor]) -> List[Product]:
    """New Product values with pallet weight folded in; lines without pallet config come back unchanged."""
    by_id = {ff.id: ff for ff in form_factors}
    out: List[Product] = []
    for p in products:
        ff = by_id.get(p.form_factor_id)
        if ff is None or not ff.has_pallet_config:
            out.append(p)
            continue
        data = p.model_dump()
        data["weight"] = total_weight_with_pallets(p, by_id)
        out.append(Product(**data))
    return out
