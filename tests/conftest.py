import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import


@pytest.fixture(autouse=True)
def _clear_metricslive_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer METRICSLIVE_* variables out of config-sensitive tests."""

    for key in list(os.environ):
        if key.startswith("METRICSLIVE_"):
            monkeypatch.delenv(key, raising=False)
