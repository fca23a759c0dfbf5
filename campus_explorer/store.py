"""A JSON key-value state store persisted on disk.

Each service keeps its snapshot under its own namespace key. Writes go to a
JSON-lines journal first so a crash between two flushes loses nothing;
:meth:`JsonStateStore.flush` compacts everything into the snapshot file.

Snapshot layout::

    {"version": 1, "data": {"path": {...}, "achievements": [...], ...}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final

logger = logging.getLogger(__name__)

SCHEMA_VERSION: Final[int] = 1


class JsonStateStore:
    """Namespace -> JSON value store with a write-ahead journal."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        # explorer_state.json -> explorer_state.journal.jsonl
        self._journal_path = self._path.with_name(f"{self._path.stem}.journal.jsonl")
        self._data: dict[str, Any] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load snapshot and replay journal (no-op if already loaded).

        A corrupt snapshot (bad JSON or bad UTF-8) or one written with another
        schema version is kept as a ``.broken`` backup and the store starts
        empty.
        """

        if self._loaded:
            return
        self._data = {}
        if self._path.exists():
            try:
                raw = self._path.read_bytes()
            except OSError as exc:
                logger.warning("无法读取状态文件，使用默认值：%s（%s）", self._path, exc)
                raw = b""
            if raw.strip():
                self._data = self._decode_snapshot(raw)

        self._replay_journal()
        self._loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        self.load()
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.load()
        self._data[key] = value
        self._append_journal(key, value)

    def delete(self, key: str) -> None:
        self.load()
        if key in self._data:
            del self._data[key]
            self._append_journal(key, None, deleted=True)

    def keys(self) -> list[str]:
        self.load()
        return sorted(self._data)

    def flush(self) -> None:
        """Persist all namespaces to the snapshot file (atomic-ish).

        Raises:
            OSError: If the snapshot cannot be written; memory and journal are
                left as they were.
        """

        self.load()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": SCHEMA_VERSION, "data": self._data}
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)
        # After we persisted the full snapshot, it's safe to clear the journal.
        self._clear_journal()

    def _decode_snapshot(self, raw: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError:
            # JSONDecodeError and UnicodeDecodeError
            self._backup(raw)
            logger.warning("状态文件损坏，已备份并使用默认值：%s", self._path)
            return {}

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            self._backup(raw)
            logger.warning("状态文件格式不识别，已备份并使用默认值：%s", self._path)
            return {}
        version = payload.get("version")
        if version != SCHEMA_VERSION:
            self._backup(raw)
            logger.warning(
                "状态文件版本不匹配（%r != %s），已备份并使用默认值：%s", version, SCHEMA_VERSION, self._path
            )
            return {}
        return dict(payload["data"])

    def _backup(self, raw: bytes) -> None:
        backup = self._path.with_suffix(self._path.suffix + ".broken")
        try:
            backup.write_bytes(raw)
        except OSError:
            logger.warning("无法写入备份文件：%s", backup)

    def _append_journal(self, key: str, value: Any, deleted: bool = False) -> None:
        """Append a single update to the journal (best-effort).

        A failed append only loses crash safety for this update; the value is
        still in memory and goes out with the next successful :meth:`flush`.
        """

        record: dict[str, Any] = {"ver": SCHEMA_VERSION, "k": key, "v": value}
        if deleted:
            record["del"] = True
        try:
            self._journal_path.parent.mkdir(parents=True, exist_ok=True)
            with self._journal_path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.warning("无法写入日志文件 %s：%s", self._journal_path, exc)

    def _replay_journal(self) -> None:
        """Replay journal entries into memory (best-effort)."""

        if not self._journal_path.exists():
            return
        try:
            with self._journal_path.open("rb") as f:
                for line in f:
                    s = line.strip()
                    if not s:
                        continue
                    try:
                        rec = json.loads(s.decode("utf-8"))
                    except ValueError:
                        # ignore broken tail lines (bad JSON or bad UTF-8)
                        continue
                    if not isinstance(rec, dict) or rec.get("ver") != SCHEMA_VERSION:
                        continue
                    k = rec.get("k")
                    if not isinstance(k, str):
                        continue
                    if rec.get("del"):
                        self._data.pop(k, None)
                    else:
                        self._data[k] = rec.get("v")
        except OSError:
            # If journal cannot be read, do not fail the whole run.
            logger.warning("无法读取日志文件：%s", self._journal_path)
            return

    def _clear_journal(self) -> None:
        """Clear journal file if exists (best-effort)."""

        try:
            if self._journal_path.exists():
                self._journal_path.unlink()
        except OSError:
            return
