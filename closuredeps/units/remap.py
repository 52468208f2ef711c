# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Remapping of type ownership onto packaged increments.

Types defined by a live unit are shipped through the increment that holds
them, so each (unit, types) entry of a live unit is split by owning
increment. Other units own their types and pass through unchanged.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from closuredeps.core.errors import UnownedTypeError, UnpackagedUnitError
from closuredeps.core.fields import qualified_type_name
from closuredeps.units.packaging_state import InIncrement
from closuredeps.units.protocols import CodeUnit, CompilerState, Dependencies
from closuredeps.units.unit_id import CodeUnitId

logger = logging.getLogger(__name__)


def remap_dependencies(state: CompilerState, dependencies: Dependencies) -> Dependencies:
	"""
	Rewrite `dependencies` so every type points at the unit that ships it.

	Raises UnpackagedUnitError for a live unit without packaging state, and
	UnownedTypeError for a type owned by no increment or by all of them.
	"""
	order: List[CodeUnitId] = []
	units: Dict[CodeUnitId, CodeUnit] = {}
	grouped: Dict[CodeUnitId, set] = {}

	def _emit(unit: CodeUnit, *types_: type) -> None:
		uid = unit.unit_id
		if uid not in grouped:
			order.append(uid)
			units[uid] = unit
			grouped[uid] = set()
		grouped[uid].update(types_)

	for unit, types_ in dependencies:
		if not unit.is_live:
			_emit(unit, *types_)
			continue
		info = state.get_packaging_state(unit.name)
		if info is None:
			raise UnpackagedUnitError(
				message=f"no increments have been created for unit '{unit.name}'",
				unit_name=unit.name,
			)
		for ty in types_:
			tname = qualified_type_name(ty)
			owner = info.lookup_owning_increment(tname)
			if not isinstance(owner, InIncrement):
				raise UnownedTypeError(
					message=f"no increment corresponds to type '{tname}'",
					unit_name=unit.name,
					type_name=tname,
				)
			logger.debug("type '%s' remapped to increment '%s'", tname, owner.increment.name)
			_emit(owner.increment, ty)

	return [(units[uid], frozenset(grouped[uid])) for uid in order]


__all__ = ["remap_dependencies"]
