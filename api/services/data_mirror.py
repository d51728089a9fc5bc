"""File-backed mirror of comparisons, contenders and AI configuration.

Each collection is one JSON document under <data dir>/mirror/. The mirror is
a durability copy: pushes happen on a daemon thread, failures are logged and
never retried or reported to the caller.
"""

import itertools
import json
import logging
import threading
from pathlib import Path

from versus import VersusHelpers

log = logging.getLogger(f"versus.{__name__}")

DOCUMENTS = {
    "comparisons": "comparisons.json",
    "contenders": "contenders.json",
    "aiConfig": "ai-config.json",
}

FALLBACKS = {
    "comparisons": [],
    "contenders": [],
    "aiConfig": None,
}


class DataMirror:
    """JSON document store keyed by collection name."""

    _lock = threading.Lock()

    def __init__(self, directory: str | None = None) -> None:
        if directory is None:
            directory = str(Path(VersusHelpers.dataPath()) / "mirror")
        self.directory = Path(directory)
        # push order; an older snapshot never replaces a newer one
        self._sequence = itertools.count()
        self._written: dict[str, int] = {}

    def _path(self, key: str) -> Path:
        return self.directory / DOCUMENTS[key]

    def read(self, key: str):
        """Read one document, or its fallback if missing or unreadable."""
        try:
            return json.loads(self._path(key).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return FALLBACKS[key]

    def read_all(self) -> dict:
        return {key: self.read(key) for key in DOCUMENTS}

    def write(self, data: dict, seq: int | None = None) -> list:
        """Overwrite the documents named in data; unknown keys are ignored.

        Args:
            data: documents keyed by collection name
            seq: push sequence number; documents already written by a later push are
                skipped. A direct write counts as the newest push.

        Returns:
            list: keys written

        Raises:
            OSError: a document could not be written
        """
        written = []
        with self._lock:
            if seq is None:
                seq = next(self._sequence)
            self.directory.mkdir(parents=True, exist_ok=True)
            for key, value in data.items():
                if key not in DOCUMENTS:
                    continue
                if seq <= self._written.get(key, -1):
                    log.debug(f"Skipping stale mirror push {seq} for {key}")
                    continue
                self._written[key] = seq
                path = self._path(key)
                tmp = path.with_suffix(".tmp")
                tmp.write_text(json.dumps(value, indent=2), encoding="utf-8")
                tmp.replace(path)
                written.append(key)
        return written

    def push(self, data: dict, seq: int | None = None) -> None:
        """Best-effort write; failures are only logged."""
        try:
            self.write(data, seq)
        except Exception as e:
            log.warning(f"Mirror write failed for {sorted(data)}: {e}")

    def push_async(self, data: dict) -> threading.Thread:
        """Fire-and-forget push on a daemon thread."""
        with self._lock:
            seq = next(self._sequence)
        thread = threading.Thread(target=self.push, args=(data, seq), daemon=True)
        thread.start()
        return thread
