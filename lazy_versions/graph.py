"""Dependency graph utilities.

Change detection needs to answer "who is affected when B changes?", so the
forward dependency declaration (A depends on B) is inverted into a reverse
map (B → [A]). The declaration follows the shape of ``nx graph --file``:

    {"graph": {"dependencies": {"A": [{"target": "B"}, ...]}}}
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = structlog.get_logger(__name__)

DependencyGraph = dict[str, list[str]]


class DependencyEdge(BaseModel):
    """A single forward edge. Extra keys (e.g. nx's "type") are ignored."""

    model_config = ConfigDict(extra="ignore")

    target: str


class _Graph(BaseModel):
    dependencies: dict[str, list[DependencyEdge]] = Field(default_factory=dict)


class DependencyDeclaration(BaseModel):
    graph: _Graph


def reverse_dependencies(
    forward: Mapping[str, Sequence[DependencyEdge]],
) -> DependencyGraph:
    """Invert forward edges into a dependent map.

    For every edge "A depends on B", A is appended to graph[B]. Dependents
    keep declaration order. Self-edges and duplicate edges are kept as-is;
    the detector tolerates both.

    Example:
        {"b": [{"target": "a"}], "c": [{"target": "a"}]}
        → {"a": ["b", "c"]}
    """
    reverse: DependencyGraph = {}
    for name, edges in forward.items():
        for edge in edges:
            reverse.setdefault(edge.target, []).append(name)
    return reverse


def load_dependency_graph(path: Path | None) -> DependencyGraph:
    """Load a dependency declaration and return the reverse map.

    A missing, unreadable or malformed declaration is not fatal: a warning
    is logged and an empty graph is returned, so propagation becomes a
    no-op rather than aborting the run.
    """
    if path is None:
        return {}

    path = Path(path)
    if not path.exists():
        log.warning("dependencies.missing", path=str(path))
        return {}

    try:
        declaration = DependencyDeclaration.model_validate_json(
            path.read_text(encoding="utf-8")
        )
    except (OSError, ValidationError) as exc:
        log.warning("dependencies.unreadable", path=str(path), error=str(exc))
        return {}

    graph = reverse_dependencies(declaration.graph.dependencies)
    log.debug("dependencies.loaded", path=str(path), graph=graph)
    return graph
