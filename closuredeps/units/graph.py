# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Code-unit dependency graph.

`resolve_unit_graph` expands a seed set of units into their transitive
reference graph and returns it in dependency-first order. References the
resolver cannot resolve are dropped: they may only be resolvable on the
consuming end. Two distinct units sharing a fully-qualified name are a hard
error, never resolved by picking one.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from closuredeps.core.errors import duplicate_unit
from closuredeps.units.protocols import CodeUnit
from closuredeps.units.unit_id import CodeUnitId

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

DependencyGraph = Dict[CodeUnitId, Tuple[CodeUnit, List[CodeUnit]]]


def topological_order(edges: Mapping[K, Sequence[K]]) -> List[K]:
	"""
	Order the keys of `edges` so every node follows the nodes it depends on.

	Deterministic: nodes are visited in mapping order and dependencies in
	list order. Dependencies that are not keys of `edges` are skipped. A
	dependency cycle is broken at its back edge.
	"""
	done: set[K] = set()
	active: set[K] = set()
	post: List[K] = []

	for start in edges:
		if start in done:
			continue
		# Iterative DFS; each frame is (node, iterator over its dependencies).
		active.add(start)
		stack = [(start, iter(edges[start]))]
		while stack:
			node, deps = stack[-1]
			advanced = False
			for dep in deps:
				if dep not in edges or dep in done:
					continue
				if dep in active:
					logger.debug("dependency cycle broken at %r -> %r", node, dep)
					continue
				active.add(dep)
				stack.append((dep, iter(edges[dep])))
				advanced = True
				break
			if not advanced:
				stack.pop()
				active.discard(node)
				done.add(node)
				post.append(node)
	return post


def check_duplicate_names(units: Iterable[CodeUnit]) -> None:
	"""Raise DuplicateUnitError when two distinct units share a qualified name."""
	seen: Dict[str, CodeUnitId] = {}
	for unit in units:
		prior = seen.setdefault(unit.name, unit.unit_id)
		if prior != unit.unit_id:
			raise duplicate_unit(unit.name)


def build_unit_graph(
	seeds: Iterable[CodeUnit],
	resolve: Callable[[str], Optional[CodeUnit]],
	is_ignored: Callable[[CodeUnit], bool],
) -> DependencyGraph:
	"""Breadth-first expansion of `seeds` into a dependency graph."""
	graph: DependencyGraph = {}
	queue: deque[CodeUnit] = deque(seeds)
	while queue:
		unit = queue.popleft()
		if unit.unit_id in graph or is_ignored(unit):
			continue
		deps: List[CodeUnit] = []
		for name in unit.references():
			dep = resolve(name)
			if dep is None:
				logger.debug("dropping unresolved reference '%s' from '%s'", name, unit.name)
				continue
			deps.append(dep)
		graph[unit.unit_id] = (unit, deps)
		queue.extend(deps)
	return graph


def resolve_unit_graph(
	seeds: Iterable[CodeUnit],
	resolve: Callable[[str], Optional[CodeUnit]],
	is_ignored: Callable[[CodeUnit], bool],
) -> List[CodeUnit]:
	"""Resolve `seeds` transitively and return the units in dependency-first order."""
	graph = build_unit_graph(seeds, resolve, is_ignored)
	edges = {uid: [d.unit_id for d in deps] for uid, (_, deps) in graph.items()}
	ordered = [graph[uid][0] for uid in topological_order(edges)]
	check_duplicate_names(ordered)
	return ordered


__all__ = [
	"DependencyGraph",
	"topological_order",
	"check_duplicate_names",
	"build_unit_graph",
	"resolve_unit_graph",
]
