import sys
from pathlib import Path

import pytest


def _add_repo_root_to_path() -> None:
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_add_repo_root_to_path()

from states.productState import Product  # noqa: E402
from states.containerTemplateState import ContainerTemplate  # noqa: E402
from states.engineConfig import EngineConfig  # noqa: E402


def make_product(id="P1", qty=10, ff="IBC1000", dest="DE", **kw) -> Product:
    kw.setdefault("name", f"Product {id}")
    return Product(id=id, form_factor_id=ff, quantity=qty, destination=dest, **kw)


def make_template(id="T1", caps=None, cost=500.0, dest="", **kw) -> ContainerTemplate:
    kw.setdefault("name", f"Template {id}")
    return ContainerTemplate(id=id, capacities=caps if caps is not None else {"IBC1000": 100}, cost=cost,
                             destination=dest, **kw)


@pytest.fixture
def engine_config():
    """Defaults, independent of whatever CPO_* variables the shell has set."""
    return EngineConfig()


@pytest.fixture
def t1_de():
    return make_template("T1", {"IBC1000": 100}, cost=500.0, dest="DE")
