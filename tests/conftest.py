import sys
from pathlib import Path

import pytest

# Ensure the project root is on sys.path so `accounts`, `ocr` and `solver` are importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from accounts.storage import AccountStore


@pytest.fixture
def store(tmp_path: Path) -> AccountStore:
    return AccountStore(str(tmp_path / "data" / "accounts.json"))
