import os
import sys

import pytest

# Add src and the shared test support module to the Python path
_ROOT = os.path.dirname(os.path.dirname(__file__))
sys.path.insert(0, os.path.join(_ROOT, "src"))
sys.path.insert(0, os.path.dirname(__file__))

from support import FakeGraph  # noqa: E402

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_graph():
    return FakeGraph()


@pytest.fixture
async def relational(tmp_path):
    from groove_graph.storage.relational import RelationalStore

    store = RelationalStore(str(tmp_path / "groove.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def service(fake_graph, relational):
    from groove_graph.services.relationship_service import RelationshipService

    svc = RelationshipService(fake_graph, relational)
    yield svc
