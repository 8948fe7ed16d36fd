#manage the optimize pipeline as a langgraph solution, one node per step

from __future__ import annotations
from typing import List, Optional
from threading import Event
import logging
from langgraph.graph import StateGraph, END, START

#agents
from agents.inputValidationAgent import inputValidationAgent, InputValidationError
from agents.seedAssignmentsAgent import seedAssignmentsAgent
from agents.groupingAgent import groupingAgent
from agents.packingAgent import packingAgent, OptimizationCancelled
from agents.downsizeAgent import downsizeAgent
from agents.finalizeAgent import finalizeAgent
from agents.planEvalAgent import planEvalAgent

#states
from states.productState import Product
from states.formFactorState import FormFactor
from states.containerTemplateState import ContainerTemplate
from states.countryTables import CountryTables
from states.optimizationSettings import OptimizationSettings
from states.optimizationState import OptimizationState
from states.optimizationResult import OptimizationResult
from states.engineConfig import EngineConfig, load_engine_config

from preprocessing.palletWeights import apply_pallet_weights

logger = logging.getLogger("CPO.Orchestrator")

__all__ = ["optimize", "build_graph", "compile_app", "InputValidationError", "OptimizationCancelled"]


def compile_app():
    # no checkpointer: nothing survives a call
    graph = build_graph()
    return graph.compile()

def build_graph() -> StateGraph:

    graph = StateGraph(OptimizationState)
    graph.add_node("inputValidationAgent", inputValidationAgent)
    graph.add_node("seedAssignmentsAgent", seedAssignmentsAgent)
    graph.add_node("groupingAgent", groupingAgent)
    graph.add_node("packingAgent", packingAgent)
    graph.add_node("downsizeAgent", downsizeAgent)
    graph.add_node("finalizeAgent", finalizeAgent)
    graph.add_node("planEvalAgent", planEvalAgent)

    graph.add_edge(START, "inputValidationAgent")
    graph.add_edge("inputValidationAgent", "seedAssignmentsAgent")
    graph.add_edge("seedAssignmentsAgent", "groupingAgent")
    graph.add_edge("groupingAgent", "packingAgent")
    graph.add_edge("packingAgent", "downsizeAgent")   # global pass, after every group is packed
    graph.add_edge("downsizeAgent", "finalizeAgent")
    graph.add_edge("finalizeAgent", "planEvalAgent")
    graph.add_edge("planEvalAgent", END)

    return graph


def optimize(
    products: List[Product],
    templates: List[ContainerTemplate],
    settings: Optional[OptimizationSettings] = None,
    country_tables: Optional[CountryTables] = None,
    form_factors: Optional[List[FormFactor]] = None,
    *,
    config: Optional[EngineConfig] = None,
    cancel_event: Optional[Event] = None,
) -> OptimizationResult:
    """
    Plan `products` into instances of `templates`.

    Inputs are never mutated. Unfitting demand comes back in `unassigned`;
    malformed input raises InputValidationError before anything is packed.
    """
    config = config or load_engine_config()
    logging.getLogger("CPO").setLevel(config.log_level)
    settings = settings or config.default_settings()
    country_tables = country_tables or CountryTables()
    form_factors = list(form_factors or [])

    products = list(products)
    if settings.apply_pallet_weights and form_factors:
        products = apply_pallet_weights(products, form_factors)

    state = OptimizationState(
        products=products,
        templates=list(templates),
        settings=settings,
        country_tables=country_tables,
        form_factors=form_factors,
        low_util_threshold=config.low_util_threshold,
        cancel_event=cancel_event,
    )

    app = compile_app()
    out = app.invoke(state)
    final = OptimizationState.model_validate(out)

    logger.info(f"[Orchestrator] {len(products)} lines -> {len(final.assignments)} containers, "
                f"{len(final.unassigned)} unassigned, total cost {final.total_cost:.2f}")

    return OptimizationResult(
        assignments=final.assignments,
        unassigned=final.unassigned,
        total_cost=final.total_cost,
        metrics=final.metrics,
        reasoning=final.reasoning,
    )
