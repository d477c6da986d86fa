from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from gantt_stream.core.model import Section


def dependency_map(sections: Iterable[Section]) -> dict[str, list[str]]:
    """id -> dependency ids, first declaration wins."""
    out: dict[str, list[str]] = {}
    for section in sections:
        for task in section.tasks:
            out.setdefault(task.id, list(task.dependencies))
    return out


def dependents_map(sections: Iterable[Section]) -> dict[str, list[str]]:
    """dependency id -> ids that depend on it, in plan order."""
    out: dict[str, list[str]] = defaultdict(list)
    for section in sections:
        for task in section.tasks:
            for dep in task.dependencies:
                if task.id not in out[dep]:
                    out[dep].append(task.id)
    return dict(out)


def find_cycles(id_to_deps: dict[str, list[str]]) -> list[list[str]]:
    """Each distinct cycle as a closed path, e.g. ['a', 'b', 'a'].

    Dependencies on ids outside the map are ignored.
    """
    finished: set[str] = set()
    trail: list[str] = []
    found: dict[tuple[str, ...], list[str]] = {}

    def visit(node: str) -> None:
        trail.append(node)
        for dep in id_to_deps.get(node, []):
            if dep not in id_to_deps or dep in finished:
                continue
            if dep in trail:
                cycle = trail[trail.index(dep):] + [dep]
                found.setdefault(tuple(cycle), cycle)
            else:
                visit(dep)
        trail.pop()
        finished.add(node)

    for node in id_to_deps:
        if node not in finished:
            visit(node)
    return list(found.values())


def describe_cycle(cycle: list[str]) -> str:
    return "dependency cycle detected: " + " -> ".join(cycle)
