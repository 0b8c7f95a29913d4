from __future__ import annotations

import json
import threading
import time
import uuid
from pathlib import Path
from typing import Any


class RuntimeEventLogger:
    """Append-only JSONL event log for one offramp run.

    Rows are written for operators only; nothing in the package reads them back.
    """

    def __init__(self, data_dir: str, filename: str = "offramp_events.jsonl", *, enabled: bool = True):
        self.enabled = enabled
        self.run_id = uuid.uuid4().hex[:12]
        self.path = Path(data_dir) / filename
        if enabled:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        if not self.enabled:
            return
        payload = {
            "ts": time.time(),
            "run": self.run_id,
            "event": event,
            **fields,
        }
        row = json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(row + "\n")
