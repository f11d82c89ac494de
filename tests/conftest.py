from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from sqlinclude.utils.logging import set_correlation_id

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def clear_correlation_id() -> Iterator[None]:
    yield
    set_correlation_id(None)
