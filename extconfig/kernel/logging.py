"""Structured JSONL event log for extension validation.

One JSON object per line, keys sorted, secrets redacted. A log that reaches
``storage.log_rotate_max_bytes`` is moved to ``logs/archive/``; archives are
never deleted.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .paths import default_data_dir
from .redaction import redact_obj


DEFAULT_ROTATE_MAX_BYTES = 5_000_000
_ENVELOPE_KEYS = ("ts_utc", "level", "event", "kind", "ext_name")


class JsonlLogger:
    def __init__(self, path: Path, *, rotate_max_bytes: int = DEFAULT_ROTATE_MAX_BYTES) -> None:
        self._path = Path(path)
        self._rotate_max_bytes = rotate_max_bytes
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: dict[str, Any], *, name: str = "extensions") -> "JsonlLogger":
        """Log to ``<storage.data_dir>/logs/<name>.jsonl`` of a loaded config."""
        storage = config.get("storage") or {}
        data_dir = Path(storage.get("data_dir") or default_data_dir())
        rotate_max_bytes = storage.get("log_rotate_max_bytes") or DEFAULT_ROTATE_MAX_BYTES
        return cls(data_dir / "logs" / f"{name}.jsonl", rotate_max_bytes=rotate_max_bytes)

    @property
    def path(self) -> str:
        return str(self._path)

    def _archive_if_full(self) -> None:
        try:
            if self._path.stat().st_size < self._rotate_max_bytes:
                return
        except FileNotFoundError:
            return
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        archived = self._path.parent / "archive" / f"{self._path.stem}.{stamp}{self._path.suffix}"
        if archived.exists():
            return
        archived.parent.mkdir(parents=True, exist_ok=True)
        self._path.replace(archived)

    def event(
        self,
        *,
        event: str,
        kind: str | None = None,
        ext_name: str | None = None,
        level: str = "info",
        **fields: Any,
    ) -> None:
        """Append one event; ``fields`` never override the envelope keys."""
        record = {key: value for key, value in fields.items() if key not in _ENVELOPE_KEYS}
        record.update(
            ts_utc=datetime.now(timezone.utc).isoformat(),
            level=level,
            event=event,
            kind=kind or "",
            ext_name=ext_name or "",
        )
        line = json.dumps(redact_obj(record), sort_keys=True, default=str)
        try:
            self._archive_if_full()
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError:
            return
