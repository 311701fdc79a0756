# askshell/git_context_manager.py

import asyncio
import subprocess
import shutil
import os
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# Timeout for each git call made while building context (in seconds)
DEFAULT_GIT_TIMEOUT = 5

_UNBORN_BRANCH_PREFIXES = ("No commits yet on ", "Initial commit on ")
_DETACHED_HEAD = "HEAD (no branch)"


def parse_branch_header(line: str) -> str:
    """Branch name from the '## ...' header of `git status --porcelain --branch`.

    Handles tracking info (`main...origin/main [ahead 1]`), unborn branches
    and a detached HEAD, which is reported as 'HEAD'.
    """
    name = line[3:] if line.startswith("## ") else line
    for prefix in _UNBORN_BRANCH_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
    if name.startswith(_DETACHED_HEAD):
        return "HEAD"
    return name.split("...", 1)[0].split(" ", 1)[0]


class GitContextManager:
    """Reads the branch and modified-file count of a working directory for prompt context."""

    def __init__(self, project_root: Optional[str] = None, timeout: int = DEFAULT_GIT_TIMEOUT):
        self.project_root = os.path.abspath(project_root) if project_root else os.getcwd()
        self.timeout = timeout
        self._git_path: Optional[str] = None
        self._git_looked_up = False

    def git_path(self) -> Optional[str]:
        """Location of the git executable, looked up once per instance."""
        if not self._git_looked_up:
            self._git_path = shutil.which("git")
            self._git_looked_up = True
            if self._git_path is None:
                logger.info("Git executable not found in PATH; repository context disabled.")
        return self._git_path

    async def _git(self, *args: str) -> Optional[str]:
        """stdout of `git <args>` in project_root, or None when git is missing, fails or times out."""
        git = self.git_path()
        if git is None:
            return None

        label = f"git {' '.join(args)}"
        try:
            process = await asyncio.to_thread(
                subprocess.run,
                [git, *args],
                capture_output=True,
                text=True,
                cwd=self.project_root,
                check=False,
                timeout=self.timeout,
                errors='replace'
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"'{label}' timed out after {self.timeout}s in {self.project_root}")
            return None
        except FileNotFoundError:
            logger.warning(f"Git executable vanished from '{git}'")
            self._git_path = None
            return None
        except OSError as e:
            logger.warning(f"Could not run '{label}': {e}")
            return None

        if process.returncode != 0:
            logger.debug(f"'{label}' exited with {process.returncode}: {process.stderr.strip()}")
            return None
        return process.stdout

    async def is_repository(self) -> bool:
        """True when project_root is inside a git work tree (subdirectories included)."""
        output = await self._git("rev-parse", "--is-inside-work-tree")
        return output is not None and output.strip() == "true"

    async def get_status(self) -> Optional[Tuple[str, int]]:
        """(branch, modified_count), or None outside a repository or on any git failure.

        The count covers every porcelain entry: modified, staged and untracked.
        """
        if not await self.is_repository():
            return None
        output = await self._git("status", "--porcelain", "--branch")
        if output is None:
            return None
        lines = output.splitlines()
        if not lines:
            return None
        branch = parse_branch_header(lines[0])
        modified_count = sum(1 for line in lines[1:] if line.strip())
        logger.debug(f"Git status for {self.project_root}: branch={branch}, modified={modified_count}")
        return branch, modified_count
