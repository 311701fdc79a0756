# --- API DOCUMENTATION for askshell/history_store.py ---
#
# **Purpose:** Size-bounded, line-oriented log of (timestamp, query, command)
# triples. Each record is one line, `timestamp|query|command`, with the
# timestamp in epoch seconds. The file stays compatible with the format
# written by the shell plugin this tool replaces.
#
# **Public Classes:**
#
# class HistoryEntry:
#     Frozen (timestamp, query, command) record with to_line()/from_line().
#
# class HistoryStore:
#     append(entry) -> None   # trims oldest-first down to max_entries
#     recent(n) -> List[HistoryEntry]   # n most recent, oldest first
#     clear() -> None
#     count() -> int
#
# **Concurrency:** all three operations take an fcntl.flock on a sidecar
# `<history file>.lock`: exclusive for append/clear, shared for recent.
#
# --- END API DOCUMENTATION ---

# askshell/history_store.py

import os
import time
import fcntl
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"
LOCK_SUFFIX = ".lock"
TMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: int
    query: str
    command: str

    @classmethod
    def create(cls, query: str, command: str, timestamp: Optional[int] = None) -> "HistoryEntry":
        return cls(int(time.time()) if timestamp is None else int(timestamp), query, command)

    def to_line(self) -> str:
        # The query is the middle field, so it cannot carry the separator.
        # The command is the last field and may keep its pipes.
        query = self.query.replace(FIELD_SEPARATOR, " ")
        query = " ".join(query.splitlines())
        command = " ".join(self.command.splitlines())
        return f"{self.timestamp}{FIELD_SEPARATOR}{query}{FIELD_SEPARATOR}{command}"

    @classmethod
    def from_line(cls, line: str) -> Optional["HistoryEntry"]:
        parts = line.rstrip("\n").split(FIELD_SEPARATOR, 2)
        if len(parts) != 3:
            return None
        timestamp, query, command = parts
        try:
            return cls(int(timestamp), query, command)
        except ValueError:
            return None


class HistoryStore:
    """Append-only history log bounded to max_entries, evicting oldest-first."""

    def __init__(self, path: str, max_entries: int = 100):
        if max_entries <= 0:
            raise ValueError("max_entries must be a positive integer")
        self.path = path
        self.max_entries = max_entries
        self.lock_path = path + LOCK_SUFFIX

    @contextmanager
    def _locked(self, exclusive: bool):
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read_lines(self) -> List[str]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in f if line.strip()]

    def _parse(self, lines: List[str]) -> List[HistoryEntry]:
        entries = []
        for line in lines:
            entry = HistoryEntry.from_line(line)
            if entry is None:
                logger.warning(f"Skipping malformed history line in {self.path}: {line!r}")
                continue
            entries.append(entry)
        return entries

    def append(self, entry: HistoryEntry) -> None:
        with self._locked(exclusive=True):
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.to_line() + "\n")

            lines = self._read_lines()
            if len(lines) > self.max_entries:
                kept = lines[-self.max_entries:]
                tmp_path = self.path + TMP_SUFFIX
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.writelines(line + "\n" for line in kept)
                os.replace(tmp_path, self.path)
                logger.info(f"History trimmed from {len(lines)} to {len(kept)} entries.")
        logger.debug(f"History entry appended: {entry}")

    def recent(self, n: int) -> List[HistoryEntry]:
        """Returns up to n most recent entries, oldest first. Never raises on a missing or empty file."""
        if n <= 0:
            return []
        try:
            with self._locked(exclusive=False):
                lines = self._read_lines()
        except OSError as e:
            logger.warning(f"Could not read history from {self.path}: {e}")
            return []
        return self._parse(lines)[-n:]

    def clear(self) -> None:
        with self._locked(exclusive=True):
            with open(self.path, "w", encoding="utf-8"):
                pass
        logger.info(f"History cleared: {self.path}")

    def count(self) -> int:
        return len(self.recent(self.max_entries))
