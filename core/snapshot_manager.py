"""
Snapshot Manager for Mandala Planner.

Timestamped backups of the whole chart, taken on demand (CLI / API) and
restorable into the live keyed storage. Old backups are cleaned up after
the retention period.
"""
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.exceptions import StateError
from core.logger import get_logger
from core.mandala_engine.repository import TREE_KEYS, MandalaRepository
from core.mandala_engine.store import GoalNodeStore
from core.paths import SNAPSHOT_DIR

SNAPSHOT_VERSION = "1.0"

# overridden by SNAPSHOT_RETENTION_DAYS in config/runtime.yaml
DEFAULT_RETENTION_DAYS = 30

logger = get_logger("snapshot")


def ensure_snapshot_dir(directory: Optional[Path] = None) -> Path:
    """Ensure the snapshot directory exists."""
    directory = Path(directory or SNAPSHOT_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def create_snapshot(store: GoalNodeStore, directory: Optional[Path] = None) -> Path:
    """
    Write the full chart to a new snapshot file.

    Args:
        store: chart to back up

    Returns:
        Path to the created snapshot.
    """
    directory = ensure_snapshot_dir(directory)

    payload = MandalaRepository.serialize(store)
    now = datetime.now()
    payload["_meta"] = {
        "created_at": now.isoformat(),
        "version": SNAPSHOT_VERSION,
    }

    stamp = now.strftime("%Y%m%d_%H%M%S_%f")
    snapshot_path = directory / f"snapshot_{stamp}.json"
    with open(snapshot_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)

    logger.info(f"Created snapshot {snapshot_path.name}")
    return snapshot_path


def _read_snapshot(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Unreadable snapshot {path.name}: {e}")
        return None
    return data if isinstance(data, dict) else None


def list_snapshots(directory: Optional[Path] = None) -> List[Dict[str, Any]]:
    """
    List all available snapshots with metadata, newest first.
    """
    directory = ensure_snapshot_dir(directory)

    snapshots = []
    for path in directory.glob("snapshot_*.json"):
        data = _read_snapshot(path)
        if data is None:
            continue
        meta = data.get("_meta", {})
        snapshots.append({
            "path": str(path),
            "filename": path.name,
            "created_at": meta.get("created_at"),
            "version": meta.get("version"),
            "size_bytes": path.stat().st_size,
        })

    snapshots.sort(key=lambda x: x.get("created_at") or "", reverse=True)
    return snapshots


def load_latest_snapshot(directory: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """
    Load the payloads of the most recent snapshot.

    Returns:
        Mapping of logical key -> payload, or None if no snapshot exists.
    """
    for info in list_snapshots(directory):
        data = _read_snapshot(Path(info["path"]))
        if data is not None:
            data.pop("_meta", None)
            return data
    return None


def restore_from_snapshot(
    repository: MandalaRepository,
    snapshot_path: Optional[str] = None,
    directory: Optional[Path] = None,
) -> GoalNodeStore:
    """
    Replace the stored chart with a snapshot.

    Args:
        repository: where the restored tree is written
        snapshot_path: path to a snapshot file. If None, uses latest.

    Returns:
        The restored store.
    """
    if snapshot_path:
        path = Path(snapshot_path)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot not found: {snapshot_path}")
        payloads = _read_snapshot(path)
        if payloads is None:
            raise StateError(f"Snapshot is not a valid chart: {snapshot_path}")
        payloads.pop("_meta", None)
    else:
        payloads = load_latest_snapshot(directory)
        if payloads is None:
            raise FileNotFoundError("No snapshot to restore")

    store = repository.deserialize({key: payloads.get(key) for key in TREE_KEYS})
    repository.save(store)
    logger.info(f"Restored chart from {snapshot_path or 'latest snapshot'}")
    return store


def cleanup_old_snapshots(
    retention_days: int = DEFAULT_RETENTION_DAYS,
    directory: Optional[Path] = None,
) -> int:
    """
    Remove snapshots older than retention period.

    Returns:
        Number of snapshots removed.
    """
    directory = ensure_snapshot_dir(directory)

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    removed = 0

    for path in directory.glob("snapshot_*.json"):
        try:
            mtime = datetime.fromtimestamp(path.stat().st_mtime)
            if mtime < cutoff_date:
                path.unlink()
                removed += 1
        except OSError:
            continue

    if removed:
        logger.info(f"Removed {removed} snapshot(s) older than {retention_days} days")
    return removed
