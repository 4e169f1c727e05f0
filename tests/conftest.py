import os
import tempfile
import time
from typing import Optional

# Settings are cached on first use, so the environment has to be in place
# before any project module is imported.
os.environ.setdefault("EXPENSES_DATA_DIR", tempfile.mkdtemp(prefix="expenses-tests-"))
os.environ.setdefault("EXPENSES_ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("EXPENSES_REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("EXPENSES_BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402


class FakeClock:
    def __init__(self, start: Optional[float] = None) -> None:
        self.now = start if start is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
