"""Find the highest folder that is safe to remove below a protected root."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from .pathindex import normalize_path

if TYPE_CHECKING:
    from .pathindex import PathIndex


class ResolutionKind(Enum):
    """Outcome of resolving a source folder."""

    PROTECTED = "protected"  # Is a protected root or contains one
    OUTSIDE = "outside"  # Not below any protected root
    CANDIDATE = "candidate"  # Removable if free of media


@dataclass(frozen=True)
class Resolution:
    """Resolver decision for a single source folder."""

    kind: ResolutionKind
    folder: Path
    candidate: Path | None = None
    protected_root: Path | None = None

    def __str__(self) -> str:
        if self.kind is ResolutionKind.CANDIDATE:
            return f"Resolution(candidate={self.candidate}, root={self.protected_root})"
        return f"Resolution({self.kind.value}: {self.folder})"


def resolve_safe_parent(folder: str | Path, index: PathIndex) -> Resolution:
    """Resolve the safe parent of a source folder.

    Works on the path string alone; whether the folder exists is checked
    later by the scanner and remover.

    Args:
        folder: Absolute source folder path.
        index: Protected path index.

    Returns:
        ``PROTECTED`` if the folder is a protected root or an ancestor of
        one, ``OUTSIDE`` if no protected root lies above it, otherwise
        ``CANDIDATE`` with the topmost directory strictly inside the
        deepest protected root above the folder that does not itself
        contain a protected root.

    """
    normalized = normalize_path(PurePosixPath(folder))
    folder_path = Path(normalized)

    if index.is_protected(normalized):
        return Resolution(kind=ResolutionKind.PROTECTED, folder=folder_path)

    root = index.deepest_root_above(normalized)
    if root is None:
        return Resolution(kind=ResolutionKind.OUTSIDE, folder=folder_path)

    # Climb until the parent is the protected root, never onto a folder holding a deeper root
    candidate = normalized
    while candidate.parent != root and candidate.parent != candidate and not index.is_protected(candidate.parent):
        candidate = candidate.parent

    return Resolution(
        kind=ResolutionKind.CANDIDATE,
        folder=folder_path,
        candidate=Path(candidate),
        protected_root=Path(root),
    )
