"""Revision history collaborator — read-only queries against version control.

Defines the ``RevisionHistory`` Protocol the change detector depends on and
the git-backed default implementation.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from lambdapromote.core.errors import HistoryUnavailable

logger = logging.getLogger(__name__)

# CI systems send forty zeros as the "before" revision of a brand-new branch.
NULL_REVISION = "0" * 40


@runtime_checkable
class RevisionHistory(Protocol):
    """Protocol for revision history backends."""

    def revision_exists(self, revision: str) -> bool:
        """Return True if *revision* resolves to a commit."""
        ...

    def changed_paths(self, base: str, head: str, subtree: str) -> list[str]:
        """Return paths under *subtree* modified between *base* and *head*."""
        ...


def is_null_revision(revision: str | None) -> bool:
    """True for revisions that can never resolve (empty or all zeros)."""
    if not revision or not revision.strip():
        return True
    return set(revision.strip()) == {"0"}


class GitHistory:
    """Revision history backed by the ``git`` command line.

    Parameters
    ----------
    repo_path:
        Working tree (or any directory inside it) to query.
    git_binary:
        Name or path of the git executable.
    timeout_seconds:
        Upper bound for any single git invocation.
    """

    def __init__(
        self,
        repo_path: Path | str = ".",
        *,
        git_binary: str = "git",
        timeout_seconds: float = 60.0,
    ) -> None:
        self._repo = Path(repo_path)
        self._git = git_binary
        self._timeout = timeout_seconds

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self._git, *args]
        try:
            return subprocess.run(
                cmd,
                cwd=str(self._repo),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise HistoryUnavailable(
                f"git executable not found: {self._git}",
                step="detect",
                diagnostic=str(exc),
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise HistoryUnavailable(
                f"git {' '.join(args)} timed out after {self._timeout}s",
                step="detect",
            ) from exc
        except OSError as exc:
            raise HistoryUnavailable(
                f"Cannot run git in {self._repo}: {exc}",
                step="detect",
                diagnostic=str(exc),
            ) from exc

    def ensure_repository(self) -> None:
        """Raise HistoryUnavailable unless the repo path is a git work tree."""
        result = self._run("rev-parse", "--is-inside-work-tree")
        if result.returncode != 0 or result.stdout.strip() != "true":
            raise HistoryUnavailable(
                f"{self._repo} is not a git work tree",
                step="detect",
                diagnostic=result.stderr.strip(),
            )

    def revision_exists(self, revision: str) -> bool:
        if is_null_revision(revision):
            return False
        self.ensure_repository()
        result = self._run(
            "rev-parse", "--verify", "--quiet", f"{revision.strip()}^{{commit}}"
        )
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise HistoryUnavailable(
            f"git rev-parse failed for {revision!r} (exit {result.returncode})",
            step="detect",
            diagnostic=result.stderr.strip(),
        )

    def changed_paths(self, base: str, head: str, subtree: str) -> list[str]:
        result = self._run(
            "diff", "--name-only", "--no-renames", base, head, "--", subtree
        )
        if result.returncode != 0:
            raise HistoryUnavailable(
                f"git diff {base}..{head} failed (exit {result.returncode})",
                step="detect",
                diagnostic=result.stderr.strip(),
            )
        paths = [line for line in result.stdout.splitlines() if line.strip()]
        logger.debug("git diff %s..%s -- %s: %d path(s)", base, head, subtree, len(paths))
        return paths
