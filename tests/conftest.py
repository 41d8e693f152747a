import os
import sys
import tempfile
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests off the real data directory.
os.environ.setdefault("MANDALA_DATA_DIR", tempfile.mkdtemp(prefix="mandala-tests-"))

from core.config_manager import SystemConfig
from core.mandala_engine.engine import MandalaEngine
from core.mandala_engine.notifier import CelebrationNotifier
from core.mandala_engine.repository import MandalaRepository
from core.pl_ledger import PlLedger
from core.storage import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_engine(storage, tmp_path):
    def _make(**overrides):
        settings = SystemConfig(**overrides)
        return MandalaEngine(
            repository=MandalaRepository(storage, max_title_chars=settings.MAX_TITLE_CHARS),
            ledger=PlLedger(storage),
            notifier=CelebrationNotifier(queue_limit=settings.CELEBRATION_QUEUE_LIMIT),
            settings=settings,
            snapshot_dir=tmp_path / "snapshots",
        )
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()
