import pytest

from fakes import FakeCompletion, FakeEmbedder
from orchestrator.services.vector_store import InMemoryVectorIndex


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(dimension=3)
