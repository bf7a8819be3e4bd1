import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after the test has set its environment, and restore it afterwards.
    """
    import letterboxd_duel.config as config

    yield lambda: importlib.reload(config)

    monkeypatch.undo()
    importlib.reload(config)
