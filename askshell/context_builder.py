# askshell/context_builder.py

import os
import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

from askshell.git_context_manager import GitContextManager
from askshell.history_store import HistoryEntry, HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_ENTRIES = 5
DEFAULT_LISTING_LIMIT = 10

# First match wins; each tag lists the marker files that identify it.
PROJECT_MARKERS = (
    ("Node.js/JavaScript project", ("package.json",)),
    ("Python project", ("requirements.txt", "setup.py", "pyproject.toml")),
    ("Rust project", ("Cargo.toml",)),
    ("Go project", ("go.mod",)),
    ("Java project", ("pom.xml", "build.gradle")),
    ("Project with Makefile", ("Makefile",)),
    ("Docker project", ("docker-compose.yml", "Dockerfile")),
)


class GitStatus(NamedTuple):
    branch: str
    modified_count: int


@dataclass(frozen=True)
class Context:
    """Per-query environment snapshot. Absent signals are None or empty, never errors."""
    cwd: str
    history: Tuple[HistoryEntry, ...] = ()
    git_status: Optional[GitStatus] = None
    project_type: Optional[str] = None
    directory_listing: Tuple[str, ...] = ()

    @property
    def has_history(self) -> bool:
        return bool(self.history)


def detect_project_type(directory: str) -> Optional[str]:
    try:
        for tag, markers in PROJECT_MARKERS:
            if any(os.path.isfile(os.path.join(directory, marker)) for marker in markers):
                return tag
    except OSError as e:
        logger.warning(f"Project type detection failed in {directory}: {e}")
    return None


def list_directory(directory: str, limit: int = DEFAULT_LISTING_LIMIT) -> Tuple[str, ...]:
    """Sorted entry names (directories suffixed with '/'), capped at limit."""
    if limit <= 0:
        return ()
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
            names = []
            for entry in entries[:limit]:
                try:
                    is_dir = entry.is_dir()
                except OSError:
                    is_dir = False
                names.append(entry.name + ("/" if is_dir else ""))
    except OSError as e:
        logger.warning(f"Could not list directory {directory}: {e}")
        return ()
    return tuple(names)


class ContextBuilder:
    def __init__(self, history_store: Optional[HistoryStore] = None,
                 history_entries: int = DEFAULT_HISTORY_ENTRIES,
                 listing_limit: int = DEFAULT_LISTING_LIMIT,
                 git_manager_factory=GitContextManager):
        self.history_store = history_store
        self.history_entries = history_entries
        self.listing_limit = listing_limit
        self.git_manager_factory = git_manager_factory

    async def build(self, cwd: Optional[str] = None) -> Context:
        cwd = os.path.abspath(cwd) if cwd else os.getcwd()

        history: Tuple[HistoryEntry, ...] = ()
        if self.history_store is not None:
            history = tuple(self.history_store.recent(self.history_entries))

        git_status = None
        try:
            status = await self.git_manager_factory(project_root=cwd).get_status()
            if status is not None:
                git_status = GitStatus(*status)
        except Exception as e:
            logger.warning(f"Git context unavailable for {cwd}: {e}")

        context = Context(
            cwd=cwd,
            history=history,
            git_status=git_status,
            project_type=detect_project_type(cwd),
            directory_listing=list_directory(cwd, self.listing_limit),
        )
        logger.debug(
            f"Context built: cwd={cwd}, history={len(history)}, git={git_status}, "
            f"project={context.project_type}, listing={len(context.directory_listing)}"
        )
        return context
