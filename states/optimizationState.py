from __future__ import annotations
from typing import Optional, List
from threading import Event
from pydantic import BaseModel, Field, ConfigDict

from states.productState import Product
from states.formFactorState import FormFactor
from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import IdSequence, PackedInstance
from states.loadedContainerState import LoadedContainer
from states.countryTables import CountryTables
from states.optimizationSettings import OptimizationSettings
from states.productGroup import ProductGroup
from states.PlanMetrics import PlanMetrics

"""
graph state for one optimize call:
1. read-only inputs (products, templates, settings, country tables, form factors)
2. intermediate results written by each node in turn
3. the final assignments / unassigned lists and metrics
"""
class OptimizationState(BaseModel):

    # instances are passed between nodes as-is; the cancel event is a plain threading.Event
    model_config = ConfigDict(
        revalidate_instances='never',
        arbitrary_types_allowed=True
    )

    # inputs
    products: List[Product] = Field(default_factory=list)
    templates: List[ContainerTemplate] = Field(default_factory=list)
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)
    country_tables: CountryTables = Field(default_factory=CountryTables)
    form_factors: List[FormFactor] = Field(default_factory=list)
    low_util_threshold: float = 85.0
    cancel_event: Optional[Event] = None

    sequence: IdSequence = Field(default_factory=IdSequence)

    # seedAssignmentsAgent
    pending_products: List[Product] = Field(default_factory=list)
    seeded_instances: List[PackedInstance] = Field(default_factory=list)

    # groupingAgent
    groups: List[ProductGroup] = Field(default_factory=list)

    # packingAgent / downsizeAgent
    instances: List[PackedInstance] = Field(default_factory=list)
    unassigned: List[Product] = Field(default_factory=list)

    # finalizeAgent / planEvalAgent
    assignments: List[LoadedContainer] = Field(default_factory=list)
    total_cost: float = 0.0
    metrics: PlanMetrics = Field(default_factory=PlanMetrics)
    reasoning: str = ""
