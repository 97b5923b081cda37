import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo CLI logging setup so later tests don't log to a closed capture stream."""
    yield
    structlog.reset_defaults()
