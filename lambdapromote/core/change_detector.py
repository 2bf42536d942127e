"""Change detector — decides which units need a rebuild.

A unit is changed iff at least one path under its source subtree was
modified between the base and head revisions. If the base revision cannot
be resolved (first run, new branch), every unit is reported as changed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lambdapromote.core.history import RevisionHistory
from lambdapromote.models.units import ChangeSet, UnitDescriptor

logger = logging.getLogger(__name__)


def normalize_subtree(source_path: str) -> str:
    """Normalise a manifest source path into a history subtree query.

    Strips leading ``./`` and trailing separators and converts backslashes.
    The repository root is ``"."``.
    """
    path = source_path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    path = path.rstrip("/")
    return path or "."


class ChangeDetector:
    """Compute a ChangeSet from a unit list and a revision range.

    Parameters
    ----------
    history:
        Any RevisionHistory backend. Only read-only queries are issued.
    """

    def __init__(self, history: RevisionHistory) -> None:
        self._history = history

    def detect(
        self,
        units: Sequence[UnitDescriptor],
        base_revision: str,
        head_revision: str,
    ) -> ChangeSet:
        """Return the changed subset of *units*, in manifest order."""
        seen: set[str] = set()
        ordered: list[UnitDescriptor] = []
        for unit in units:
            if unit.name in seen:
                continue
            seen.add(unit.name)
            ordered.append(unit)

        if not self._history.revision_exists(base_revision):
            logger.info(
                "Base revision %r not resolvable; treating all %d unit(s) as changed",
                base_revision,
                len(ordered),
            )
            return ChangeSet(
                changed_units=tuple(ordered),
                base_revision=base_revision,
                head_revision=head_revision,
                bootstrap=True,
            )

        changed: list[UnitDescriptor] = []
        for unit in ordered:
            subtree = normalize_subtree(unit.source_path)
            paths = self._history.changed_paths(base_revision, head_revision, subtree)
            if paths:
                logger.info("%s changed (%d path(s) under %s)", unit.name, len(paths), subtree)
                changed.append(unit)
            else:
                logger.debug("%s unchanged", unit.name)

        return ChangeSet(
            changed_units=tuple(changed),
            base_revision=base_revision,
            head_revision=head_revision,
            bootstrap=False,
        )
