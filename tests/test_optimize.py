"""
End-to-end runs through the langgraph pipeline.

Covers the three reference scenarios plus the plan-wide properties:
conservation of units, determinism, destination isolation and no
split lines when unit splitting is off.
"""
import threading
from collections import defaultdict

import pytest

from agents.ContainerPlanningOrchestrator import optimize, InputValidationError, OptimizationCancelled
from agents.groupingAgent import destination_key
from states.productState import Product
from states.countryTables import CountryTables
from states.optimizationSettings import OptimizationSettings
from states.optimizationResult import UNASSIGNED
from states.engineConfig import EngineConfig

from conftest import make_product, make_template


def _units_by_lineage(result):
    totals = defaultdict(int)
    for a in result.assignments:
        for p in a.assigned_products:
            totals[p.lineage_id] += p.quantity
    for p in result.unassigned:
        totals[p.lineage_id] += p.quantity
    return dict(totals)


@pytest.fixture
def mixed_products():
    return [
        make_product("de-1", qty=130, dest="DE", shipping_available_by="2024-01-01"),
        make_product("de-2", qty=45, ff="DRUM200", dest="DE", weight=900.0, country="DE"),
        make_product("fr-1", qty=80, dest="FR", shipping_available_by="2024-01-10"),
        make_product("fr-2", qty=30, dest="FR", restrictions=["Hazmat"]),
        make_product("nl-1", qty=500, ff="DRUM200", dest="NL"),
        make_product("xx-1", qty=5, ff="BAG25", dest="DE"),
    ]


@pytest.fixture
def mixed_templates():
    return [
        make_template("T40", {"IBC1000": 100, "DRUM200": 200}, cost=1000.0, max_weight_kg=20000.0),
        make_template("T20", {"IBC1000": 50, "DRUM200": 100}, cost=600.0),
        make_template("HAZ", {"IBC1000": 40}, cost=900.0, dest="FR", restrictions=["Hazmat"]),
        make_template("BAGS", {"BAG25": 10}, cost=50.0, dest="PL"),
    ]


# ---------------- reference scenarios ----------------

def test_scenario_split_over_two_instances(t1_de, engine_config):
    result = optimize([make_product("P", qty=120, dest="DE")], [t1_de], OptimizationSettings(), config=engine_config)
    assert len(result.assignments) == 2
    assert result.unassigned == []
    assert result.assignments[0].total_utilization == pytest.approx(100.0)
    assert result.assignments[1].total_utilization == pytest.approx(20.0)
    assert result.total_cost == pytest.approx(1000.0)
    assert all(a.is_valid for a in result.assignments)


def test_scenario_too_heavy_single_unit_is_unassigned(engine_config):
    template = make_template("T1", {"IBC1000": 100}, cost=500.0)
    tables = CountryTables(weight_limits={"DE": {"T1": 1000.0}})
    product = make_product("HEAVY", qty=1, weight=1200.0, country="DE")
    result = optimize([product], [template], country_tables=tables, config=engine_config)
    assert result.assignments == []
    assert [(p.id, p.quantity) for p in result.unassigned] == [("HEAVY", 1)]


def test_scenario_restricted_product_goes_to_capable_template_first(engine_config):
    plain = make_template("T1", {"IBC1000": 100}, cost=500.0)
    hazmat = make_template("T2", {"IBC1000": 100}, cost=800.0, restrictions=["Hazmat"])
    products = [make_product("plain", qty=50), make_product("haz", qty=30, restrictions=["Hazmat"])]

    result = optimize(products, [plain, hazmat], config=engine_config)
    assert len(result.assignments) == 1
    only = result.assignments[0]
    assert only.container.template.id == "T2"
    assert [p.id for p in only.assigned_products] == ["haz", "plain"]


def test_restricted_first_then_overflow_into_plain_template(engine_config):
    plain = make_template("T1", {"IBC1000": 100}, cost=500.0)
    hazmat = make_template("T2", {"IBC1000": 100}, cost=800.0, restrictions=["Hazmat"])
    products = [make_product("plain", qty=100), make_product("haz", qty=30, restrictions=["Hazmat"])]

    result = optimize(products, [plain, hazmat], config=engine_config)
    by_template = {a.container.template.id: a for a in result.assignments}
    assert set(by_template) == {"T1", "T2"}
    assert [p.lineage_id for p in by_template["T2"].assigned_products] == ["haz", "plain"]
    assert by_template["T2"].total_utilization == pytest.approx(100.0)
    assert by_template["T1"].total_quantity == 30


# ---------------- properties ----------------

def test_every_unit_is_accounted_for(mixed_products, mixed_templates, engine_config):
    result = optimize(mixed_products, mixed_templates, config=engine_config)
    assert _units_by_lineage(result) == {p.id: p.quantity for p in mixed_products}
    # BAG25 only exists on a PL-bound template
    assert [p.id for p in result.unassigned] == ["xx-1"]


def test_every_unit_is_accounted_for_with_date_buckets(mixed_products, mixed_templates, engine_config):
    settings = OptimizationSettings(shipping_date_grouping_range_days=3)
    result = optimize(mixed_products, mixed_templates, settings, config=engine_config)
    assert _units_by_lineage(result) == {p.id: p.quantity for p in mixed_products}


def test_same_day_shipments_all_accounted_for(t1_de, engine_config):
    products = [
        make_product("A", qty=1, shipping_available_by="2024-01-01T01:00"),
        make_product("B", qty=1, shipping_available_by="2024-01-01T10:00"),
    ]
    settings = OptimizationSettings(shipping_date_grouping_range_days=0)
    result = optimize(products, [t1_de], settings, config=engine_config)
    assert _units_by_lineage(result) == {"A": 1, "B": 1}
    assert len(result.assignments) == 2


def test_same_input_same_plan(mixed_products, mixed_templates, engine_config):
    first = optimize(mixed_products, mixed_templates, config=engine_config).to_df()
    second = optimize(mixed_products, mixed_templates, config=engine_config).to_df()
    cols = ["instance_id", "template_id", "product_id", "quantity"]
    assert first[cols].values.tolist() == second[cols].values.tolist()


def test_containers_never_mix_destinations(mixed_products, mixed_templates, engine_config):
    result = optimize(mixed_products, mixed_templates, config=engine_config)
    for a in result.assignments:
        assert len({destination_key(p) for p in a.assigned_products}) == 1


def test_no_split_lines_when_splitting_disabled(mixed_products, mixed_templates, engine_config):
    settings = OptimizationSettings(allow_unit_splitting=False)
    result = optimize(mixed_products, mixed_templates, settings, config=engine_config)
    df = result.to_df()
    assert df.groupby("source_id").size().max() == 1
    assert set(df["product_id"]) == {p.id for p in mixed_products}


def test_inputs_are_not_mutated(mixed_products, mixed_templates, engine_config):
    before = [p.model_dump() for p in mixed_products]
    optimize(mixed_products, mixed_templates, config=engine_config)
    assert [p.model_dump() for p in mixed_products] == before


def test_utilization_stays_under_ceiling(mixed_products, mixed_templates, engine_config):
    settings = OptimizationSettings(max_utilization=90)
    result = optimize(mixed_products, mixed_templates, settings, config=engine_config)
    for a in result.assignments:
        assert a.total_utilization <= 90.1 + 1e-6


# ---------------- orchestration ----------------

def test_settings_default_from_engine_config(t1_de):
    result = optimize([make_product("P", qty=120)], [t1_de], config=EngineConfig(max_utilization=50))
    assert [a.total_quantity for a in result.assignments] == [50, 50, 20]


def test_empty_input_gives_empty_plan(t1_de, engine_config):
    result = optimize([], [t1_de], config=engine_config)
    assert result.assignments == []
    assert result.unassigned == []
    assert result.total_cost == 0.0
    assert result.metrics.containers == 0


def test_malformed_input_raises_before_packing(t1_de, engine_config):
    bad = Product.model_construct(id="P1", name="bad", form_factor_id="IBC1000", quantity=0)
    with pytest.raises(InputValidationError) as exc:
        optimize([bad], [t1_de], config=engine_config)
    assert isinstance(exc.value, ValueError)
    assert any("quantity must be positive" in i for i in exc.value.issues)


def test_cancel_event_stops_the_run(t1_de, engine_config):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OptimizationCancelled):
        optimize([make_product("P", qty=10)], [t1_de], config=engine_config, cancel_event=cancel)


def test_destination_without_template_goes_unassigned(engine_config):
    template = make_template("FR", dest="FR")
    result = optimize([make_product("P", qty=10, dest="DE")], [template], config=engine_config)
    assert result.assignments == []
    assert [p.id for p in result.unassigned] == ["P"]


def test_reasoning_and_metrics(t1_de, engine_config):
    result = optimize([make_product("P", qty=120)], [t1_de], config=engine_config)
    assert result.reasoning == "Optimization complete.\n2 containers used (avg 60.0% full). 0 items unassigned."
    assert result.metrics.low_util_count == 1
    assert result.metrics.destination_stats == {"DE": {"containers": 2, "products": 120}}


def test_to_df_marks_unassigned_rows(engine_config):
    template = make_template("T1", {"IBC1000": 100})
    settings = OptimizationSettings(allow_unit_splitting=False)
    result = optimize([make_product("P", qty=150)], [template], settings, config=engine_config)
    df = result.to_df()
    assert df["instance_id"].tolist() == [UNASSIGNED]
    assert df["quantity"].tolist() == [150]
