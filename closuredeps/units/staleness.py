# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Selection of live units that must be (re)packaged.

A unit needs packaging when it is live and either was never packaged or has
grown fresh definitions since. Expansion mirrors the unit graph builder, but
packaging happens as each unit is reached and only the live dependencies
reported by the packager are followed.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from closuredeps.core.fields import qualified_type_name
from closuredeps.units.graph import topological_order
from closuredeps.units.protocols import CodeUnit, CompilerState, Dependencies, UnitPackager
from closuredeps.units.unit_id import CodeUnitId

logger = logging.getLogger(__name__)


def requires_packaging(state: CompilerState, unit: CodeUnit) -> bool:
	if not unit.is_live:
		return False
	info = state.get_packaging_state(unit.name)
	return info is None or info.has_fresh_content


def select_stale_units(
	state: CompilerState,
	packager: UnitPackager,
	seeds: Iterable[CodeUnit],
	resolve: Callable[[str], Optional[CodeUnit]],
	*,
	force: Iterable[CodeUnit] = (),
) -> List[Any]:
	"""
	Package every stale unit reachable from `seeds`.

	Units in `force` are packaged even when their packaging state reports no
	fresh content (see `units_requiring_packaging`). Returns the packaging
	results in dependency-first order.
	"""
	forced = {unit.unit_id for unit in force if unit.is_live}
	graph: Dict[CodeUnitId, Tuple[CodeUnit, List[CodeUnit], Any]] = {}
	queue: deque[CodeUnit] = deque(seeds)
	while queue:
		unit = queue.popleft()
		if unit.unit_id in graph:
			continue
		if unit.unit_id not in forced and not requires_packaging(state, unit):
			continue
		logger.debug("packaging live unit '%s'", unit.name)
		result, dep_names = packager.package_unit(unit)
		deps: List[CodeUnit] = []
		for name in dep_names:
			dep = resolve(name)
			if dep is not None and dep.is_live:
				deps.append(dep)
		graph[unit.unit_id] = (unit, deps, result)
		queue.extend(deps)

	edges = {uid: [d.unit_id for d in deps] for uid, (_, deps, _) in graph.items()}
	return [graph[uid][2] for uid in topological_order(edges)]


def units_requiring_packaging(state: CompilerState, dependencies: Dependencies) -> List[CodeUnit]:
	"""
	Live units of `dependencies` that own types no increment carries yet.

	A unit without packaging state always qualifies.
	"""
	out: List[CodeUnit] = []
	for unit, types_ in dependencies:
		if not unit.is_live:
			continue
		info = state.get_packaging_state(unit.name)
		if info is None or any(qualified_type_name(t) not in info.type_index for t in types_):
			out.append(unit)
	return out


__all__ = ["requires_packaging", "select_stale_units", "units_requiring_packaging"]
