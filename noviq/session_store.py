import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SessionStore:
    """Client-local durable store for one in-progress workflow.

    One JSON file per browser-equivalent context (a directory). A single
    writer is assumed, so there is no locking.
    """

    def __init__(self, directory: str, key: str = "workflow") -> None:
        self.directory = Path(directory)
        self.path = self.directory / f"{key}.json"

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Discarding unreadable session file {self.path}: {e}")
            return None

    def save(self, snapshot: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(snapshot, indent=2))
        tmp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
