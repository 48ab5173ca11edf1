"""Prefix tree over protected root folders.

Protection is lexical: paths are normalized (``.``/``..`` collapsed,
trailing separators stripped) but symbolic links are never resolved, so
operators can configure the logical mount paths their media manager sees.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from .errors import ConfigurationError


class PathRelation(Enum):
    """How a path relates to the protected roots."""

    ROOT = "root"  # Exactly a protected root
    ANCESTOR = "ancestor"  # Contains a protected root deeper inside
    INSIDE = "inside"  # Strictly below at least one protected root
    DISJOINT = "disjoint"  # Unrelated to every protected root


def normalize_path(path: str | PurePosixPath) -> PurePosixPath:
    """Lexically normalize an absolute path.

    Args:
        path: Absolute path.

    Returns:
        Normalized path.

    Raises:
        ConfigurationError: If the path is empty or relative.

    """
    text = str(path)
    if not text or not text.startswith("/"):
        raise ConfigurationError(f"Path must be absolute: {text!r}")
    normalized = posixpath.normpath(text)
    # normpath keeps a leading "//" as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return PurePosixPath(normalized)


def _segments(path: PurePosixPath) -> tuple[str, ...]:
    return path.parts[1:]


@dataclass
class _Node:
    children: dict[str, _Node] = field(default_factory=dict)
    terminal: bool = False


class PathIndex:
    """Answers protection queries in time proportional to path depth."""

    def __init__(self, roots: Iterable[PurePosixPath]) -> None:
        self._root = _Node()
        self._roots: frozenset[PurePosixPath] = frozenset(roots)
        for protected in self._roots:
            node = self._root
            for segment in _segments(protected):
                node = node.children.setdefault(segment, _Node())
            node.terminal = True

    @classmethod
    def build(cls, roots: Iterable[str | PurePosixPath]) -> PathIndex:
        """Build an index from configured protected roots.

        Args:
            roots: Absolute protected folder paths.

        Returns:
            Immutable index over the normalized roots.

        Raises:
            ConfigurationError: If no roots are given or one is relative.

        """
        normalized = [normalize_path(root) for root in roots]
        if not normalized:
            raise ConfigurationError("Protected folder set is empty")
        return cls(normalized)

    @property
    def roots(self) -> frozenset[PurePosixPath]:
        """Normalized protected roots."""
        return self._roots

    def classify(self, path: str | PurePosixPath) -> PathRelation:
        """Classify a path against the protected roots.

        Args:
            path: Absolute path to check.

        Returns:
            The relation of the path to the nearest protected boundary.

        """
        node = self._root
        seen_root = False

        for segment in _segments(normalize_path(path)):
            seen_root = seen_root or node.terminal
            child = node.children.get(segment)
            if child is None:
                return PathRelation.INSIDE if seen_root else PathRelation.DISJOINT
            node = child

        if node.terminal:
            return PathRelation.ROOT
        return PathRelation.ANCESTOR

    def is_protected(self, path: str | PurePosixPath) -> bool:
        """Check whether path is a protected root or an ancestor of one."""
        return self.classify(path) in (PathRelation.ROOT, PathRelation.ANCESTOR)

    def deepest_root_above(self, path: str | PurePosixPath) -> PurePosixPath | None:
        """Find the longest protected root that is a strict ancestor of path.

        Args:
            path: Absolute path to check.

        Returns:
            The deepest protected strict ancestor, or None.

        """
        segments = _segments(normalize_path(path))
        node = self._root
        deepest: int | None = None

        for depth, segment in enumerate(segments):
            if node.terminal:
                deepest = depth
            child = node.children.get(segment)
            if child is None:
                break
            node = child

        if deepest is None:
            return None
        return PurePosixPath("/", *segments[:deepest])
