# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Default unit resolver for in-process Python modules.

Resolution order for a referenced name:
1) a module already present in `sys.modules`,
2) an increment already packaged by the compiler state,
3) a fresh import, when enabled.

Ignored units (trusted runtime/support units) resolve to None, as does a
name that cannot be found at all. Module signatures supplied by the
embedder are attached before the trust policy sees the unit.
"""

from __future__ import annotations

import importlib
import logging
import sys
import types
from typing import Callable, Mapping, Optional

from closuredeps.units.module_unit import ModuleUnit
from closuredeps.units.protocols import CodeUnit, CompilerState
from closuredeps.units.trust import UnitSignature

logger = logging.getLogger(__name__)


class ModuleResolver:
	def __init__(
		self,
		is_ignored: Callable[[CodeUnit], bool],
		*,
		state: CompilerState | None = None,
		load_missing: bool = True,
		signatures: Mapping[str, UnitSignature] | None = None,
	) -> None:
		self.is_ignored = is_ignored
		self.state = state
		self.load_missing = load_missing
		self.signatures = dict(signatures or {})

	def _unit(self, module: types.ModuleType) -> ModuleUnit:
		return ModuleUnit(module, self.signatures.get(module.__name__))

	def _filter(self, unit: CodeUnit) -> Optional[CodeUnit]:
		if self.is_ignored(unit):
			return None
		return unit

	def resolve(self, name: str) -> Optional[CodeUnit]:
		module = sys.modules.get(name)
		if module is not None:
			return self._filter(self._unit(module))
		if self.state is not None:
			increment = self.state.find_increment(name)
			# Increments live in the compiler state, not in sys.modules.
			if increment is not None:
				return increment
		if not self.load_missing:
			return None
		try:
			module = importlib.import_module(name)
		except ModuleNotFoundError:
			logger.debug("unit '%s' could not be located", name)
			return None
		return self._filter(self._unit(module))

	__call__ = resolve


__all__ = ["ModuleResolver"]
