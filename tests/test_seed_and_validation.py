import pytest

from agents.seedAssignmentsAgent import match_template, split_hard_assignments, build_seeded_instances, SeedKey
from agents.inputValidationAgent import collect_input_issues, InputValidationError
from agents.ContainerPlanningOrchestrator import optimize
from states.productState import Product, AssignmentKind
from states.formFactorState import FormFactor
from states.containerTemplateState import ContainerTemplate
from states.containerInstanceState import IdSequence
from states.optimizationSettings import OptimizationSettings

from conftest import make_product, make_template


@pytest.fixture
def fleet():
    return [
        make_template("T20", name="20ft Standard"),
        make_template("T40", name="40ft Standard Container"),
        make_template("T40HC", name="40ft High Cube"),
    ]


# ---------------- template matching ----------------

@pytest.mark.parametrize("description, expected", [
    ("T40HC", "T40HC"),
    ("20ft standard", "T20"),
    ("Booked: 40ft High Cube x1", "T40HC"),
    ("40ft standard", "T40"),
    ("40ft standrd container", "T40"),
])
def test_match_template(fleet, description, expected):
    assert match_template(description, fleet).id == expected


def test_match_template_gives_up_on_unrelated_text(fleet):
    assert match_template("reefer barge", fleet) is None
    assert match_template("   ", fleet) is None


# ---------------- seeding ----------------

def test_only_hard_assignments_are_seeded():
    hard = make_product("H", current_container="40ft Standard Container", assignment_reference="REF1")
    suggested = make_product("S", current_container="40ft Standard Container", assignment_reference="RUN-7",
                             assignment_kind=AssignmentKind.SUGGESTED)
    no_ref = make_product("N", current_container="40ft Standard Container")
    seeds, free = split_hard_assignments([hard, suggested, no_ref])
    assert list(seeds) == [SeedKey("40ft Standard Container", "de", "REF1")]
    assert [p.id for p in free] == ["S", "N"]


def test_seeded_instances_are_locked_and_unmatched_go_back(fleet):
    products = [
        make_product("H1", qty=30, current_container="40ft Standard Container", assignment_reference="REF1"),
        make_product("H2", qty=20, current_container="40ft Standard Container", assignment_reference="REF1"),
        make_product("H3", qty=10, current_container="Barge", assignment_reference="REF2"),
    ]
    instances, free = build_seeded_instances(products, fleet, IdSequence())
    assert len(instances) == 1
    seeded = instances[0]
    assert seeded.container.locked
    assert seeded.container.instance_id == "T40-instance-1"
    assert [p.id for p in seeded.assigned] == ["H1", "H2"]
    assert seeded.current_util == pytest.approx(50.0)
    assert [p.id for p in free] == ["H3"]


def test_free_cargo_tops_up_seeded_container(fleet, engine_config):
    products = [
        make_product("H1", qty=60, current_container="T40", assignment_reference="REF1"),
        make_product("F1", qty=30),
    ]
    settings = OptimizationSettings(respect_current_assignments=True)
    result = optimize(products, fleet, settings, config=engine_config)
    assert len(result.assignments) == 1
    loaded = result.assignments[0]
    assert loaded.container.template.id == "T40"
    assert [p.id for p in loaded.assigned_products] == ["H1", "F1"]


def test_current_assignments_ignored_by_default(fleet, engine_config):
    products = [make_product("H1", qty=10, current_container="T40HC", assignment_reference="REF1")]
    result = optimize(products, fleet, config=engine_config)
    # no seeding, so the cheapest-first ordering and downsizer decide freely
    assert not result.assignments[0].container.locked


# ---------------- input validation ----------------

def test_clean_input_has_no_issues(fleet):
    assert collect_input_issues([make_product("A"), make_product("B")], fleet) == []


def test_every_problem_is_listed():
    templates = [
        ContainerTemplate(id="T1", name="a", capacities={"IBC1000": 100}),
        ContainerTemplate(id="T1", name="b", capacities={"IBC1000": -5}),
    ]
    products = [
        Product.model_construct(id="A", name="a", form_factor_id="IBC1000", quantity=-1),
        Product.model_construct(id="A", name="a2", form_factor_id="IBC1000", quantity=1, weight=-3.0),
        Product.model_construct(id="", name="noid", form_factor_id="", quantity=1),
        Product.model_construct(id="C", name="c", form_factor_id="CRATE", quantity=1),
    ]
    issues = collect_input_issues(products, templates)
    assert issues == [
        "Duplicate template id T1",
        "Template T1: negative capacity for IBC1000",
        "Product A: quantity must be positive (got -1)",
        "Duplicate product id A",
        "Product A: weight must not be negative (got -3.0)",
        "Product 'noid' has no id",
        "Product noid: missing form factor",
        "Product C: unknown form factor CRATE",
    ]


def test_form_factor_catalog_counts_as_known():
    templates = [make_template()]
    products = [make_product("A", ff="CRATE")]
    assert collect_input_issues(products, templates, [FormFactor(id="CRATE", name="Crate")]) == []


def test_optimize_raises_with_issue_list(engine_config):
    product = make_product("A", ff="CRATE")
    with pytest.raises(InputValidationError) as exc:
        optimize([product], [make_template()], config=engine_config)
    assert exc.value.issues == ["Product A: unknown form factor CRATE"]
