from __future__ import annotations

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_loguru():
    # The CLI binds a handler to the captured stderr of the current test.
    yield
    logger.remove()
