"""Build collaborators — turn a unit's source path into build output.

Defines the ``UnitBuilder`` Protocol and two implementations:

1. **CommandBuilder** — runs a toolchain command (``dotnet publish``,
   ``pip install -t``, ...) from an argv template.
2. **SourceCopyBuilder** — copies the source tree as-is, for interpreted
   runtimes that need no compilation.

Every failure surfaces as ``BuildFailed`` with the toolchain output attached.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from lambdapromote.core.errors import BuildFailed

if TYPE_CHECKING:
    from lambdapromote.config import PromoteConfig

logger = logging.getLogger(__name__)

# Build logs can be large; keep the tail, which is where errors land.
_DIAGNOSTIC_LIMIT = 8000


@runtime_checkable
class UnitBuilder(Protocol):
    """Protocol for build backends."""

    def build(
        self,
        source_path: Path,
        runtime: str,
        output_dir: Path,
        *,
        timeout_seconds: float | None = None,
    ) -> Path:
        """Build *source_path* for *runtime* into *output_dir*.

        Returns the directory holding the build output.
        """
        ...


def _tail(text: str) -> str:
    return text[-_DIAGNOSTIC_LIMIT:]


def _as_text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class CommandBuilder:
    """Run an external build command.

    Parameters
    ----------
    command:
        argv template. ``{source}``, ``{output}`` and ``{runtime}`` are
        substituted in every argument, e.g.
        ``["dotnet", "publish", "{source}", "-c", "Release", "-o", "{output}"]``.
    cwd:
        Working directory for the command (defaults to the current one).
    """

    def __init__(self, command: Sequence[str], *, cwd: Path | None = None) -> None:
        if not command:
            raise ValueError("CommandBuilder needs a non-empty command")
        self._command = list(command)
        self._cwd = cwd

    def render(self, source_path: Path, runtime: str, output_dir: Path) -> list[str]:
        """Substitute placeholders into the argv template."""
        values = {
            "source": str(source_path),
            "output": str(output_dir),
            "runtime": runtime,
        }
        return [arg.format(**values) for arg in self._command]

    def build(
        self,
        source_path: Path,
        runtime: str,
        output_dir: Path,
        *,
        timeout_seconds: float | None = None,
    ) -> Path:
        argv = self.render(source_path, runtime, output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Building %s: %s", source_path, " ".join(argv))
        try:
            result = subprocess.run(
                argv,
                cwd=str(self._cwd) if self._cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildFailed(
                f"Build of {source_path} timed out after {timeout_seconds}s",
                step="build",
                diagnostic=_tail(_as_text(exc.stdout) + _as_text(exc.stderr)),
            ) from exc
        except OSError as exc:
            raise BuildFailed(
                f"Cannot run build command {argv[0]!r}: {exc}",
                step="build",
                diagnostic=str(exc),
            ) from exc

        if result.returncode != 0:
            raise BuildFailed(
                f"Build of {source_path} exited with status {result.returncode}",
                step="build",
                diagnostic=_tail(result.stdout + result.stderr),
            )
        return output_dir


class SourceCopyBuilder:
    """Copy the source tree verbatim; the runtime is not consulted."""

    def __init__(self, ignore: Sequence[str] = ("__pycache__", "*.pyc", ".git")) -> None:
        self._ignore = shutil.ignore_patterns(*ignore)

    def build(
        self,
        source_path: Path,
        runtime: str,
        output_dir: Path,
        *,
        timeout_seconds: float | None = None,
    ) -> Path:
        if not source_path.is_dir():
            raise BuildFailed(
                f"Source directory {source_path} does not exist",
                step="build",
            )
        try:
            shutil.copytree(
                source_path, output_dir, ignore=self._ignore, dirs_exist_ok=True
            )
        except (OSError, shutil.Error) as exc:
            raise BuildFailed(
                f"Copying {source_path} failed: {exc}",
                step="build",
                diagnostic=str(exc),
            ) from exc
        logger.debug("Copied %s -> %s", source_path, output_dir)
        return output_dir


def builder_for_config(config: PromoteConfig) -> UnitBuilder:
    """Pick the build backend for *config*."""
    if config.build_command:
        return CommandBuilder(config.build_command, cwd=config.repo_path)
    return SourceCopyBuilder()
