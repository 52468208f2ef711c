# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Public entry points.

`ClosureAnalyzer` wires the walker, the resolver, the trust policy and the
optional packaging collaborators together:

- `compute_type_closure(obj)`     named types reachable from `obj`
- `compute_dependencies(obj)`     those types grouped by owning unit
- `resolve_unit_graph(seeds)`     transitive units, dependency-first
- `select_stale_units(seeds)`     package stale live units, dependency-first
- `remap_dependencies(deps)`      move live-unit types onto their increments
- `shipping_order(obj)`           all of the above, end to end
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from closuredeps.analysis.walker import ObjectGraphWalker, group_by_unit
from closuredeps.core.config import AnalysisConfig, load_analysis_config_json
from closuredeps.units import graph as unit_graph
from closuredeps.units import remap, staleness
from closuredeps.units.module_unit import ModuleUnit
from closuredeps.units.protocols import CodeUnit, CompilerState, Dependencies, FieldEnumerator, UnitPackager, UnitResolver
from closuredeps.units.resolver import ModuleResolver
from closuredeps.units.trust import TrustPolicy, UnitSignature, load_trust_store_json


class ClosureAnalyzer:
	"""
	Facade over one analysis configuration.

	Each closure computation uses its own walker, so shape and identity memos
	never leak between calls. The analyzer is not thread-safe; use one per
	thread.
	"""

	def __init__(
		self,
		*,
		config: AnalysisConfig | None = None,
		state: CompilerState | None = None,
		packager: UnitPackager | None = None,
		trust: TrustPolicy | None = None,
		resolver: UnitResolver | None = None,
		field_enumerator: FieldEnumerator | None = None,
		signatures: Mapping[str, UnitSignature] | None = None,
	) -> None:
		self.config = config or AnalysisConfig()
		self.state = state
		self.packager = packager
		self.trust = trust or TrustPolicy(self.config.trusted_identities)
		self.signatures = dict(signatures or {})
		self.resolver = resolver or ModuleResolver(
			self.trust.is_ignored,
			state=state,
			load_missing=self.config.load_missing_units,
			signatures=self.signatures,
		)
		self.field_enumerator = field_enumerator

	@classmethod
	def from_files(cls, config_path: Path, *, trust_store_path: Path | None = None, **kwargs: Any) -> "ClosureAnalyzer":
		config = load_analysis_config_json(config_path)
		store = load_trust_store_json(trust_store_path) if trust_store_path is not None else None
		trust = TrustPolicy(config.trusted_identities, store)
		return cls(config=config, trust=trust, **kwargs)

	def new_walker(self) -> ObjectGraphWalker:
		return ObjectGraphWalker(config=self.config, field_enumerator=self.field_enumerator)

	def compute_type_closure(self, obj: Any) -> frozenset[type]:
		return self.new_walker().walk(obj)

	def compute_dependencies(self, obj: Any) -> Dependencies:
		return group_by_unit(self.compute_type_closure(obj))

	def _with_signature(self, unit: CodeUnit) -> CodeUnit:
		sig = self.signatures.get(unit.name)
		if sig is not None and isinstance(unit, ModuleUnit) and unit.signature is None:
			return ModuleUnit(unit.module, sig)
		return unit

	def resolve_unit_graph(self, seeds: Iterable[CodeUnit]) -> List[CodeUnit]:
		seeds = [self._with_signature(unit) for unit in seeds]
		return unit_graph.resolve_unit_graph(seeds, self.resolver.resolve, self.trust.is_ignored)

	def _require_state(self) -> CompilerState:
		if self.state is None:
			raise ValueError("packaging operations require a compiler state")
		return self.state

	def select_stale_units(self, seeds: Iterable[CodeUnit], *, force: Iterable[CodeUnit] = ()) -> List[Any]:
		state = self._require_state()
		if self.packager is None:
			raise ValueError("select_stale_units requires a unit packager")
		return staleness.select_stale_units(state, self.packager, seeds, self.resolver.resolve, force=force)

	def units_requiring_packaging(self, dependencies: Dependencies) -> List[CodeUnit]:
		return staleness.units_requiring_packaging(self._require_state(), dependencies)

	def remap_dependencies(self, dependencies: Dependencies) -> Dependencies:
		return remap.remap_dependencies(self._require_state(), dependencies)

	def shipping_order(self, obj: Any) -> List[CodeUnit]:
		"""
		Units to ship, dependency-first, for reconstructing `obj` remotely.

		With a compiler state, stale live units are packaged first (when a
		packager is configured) and live-unit types are remapped onto their
		increments.
		"""
		deps = self.compute_dependencies(obj)
		if self.state is not None:
			if self.packager is not None:
				stale = self.units_requiring_packaging(deps)
				if stale:
					# Units owning types missing from their type index are stale
					# even when no fresh content was reported.
					self.select_stale_units(stale, force=stale)
			deps = self.remap_dependencies(deps)
		return self.resolve_unit_graph(unit for unit, _ in deps)


def compute_type_closure(obj: Any, *, config: Optional[AnalysisConfig] = None) -> frozenset[type]:
	return ClosureAnalyzer(config=config).compute_type_closure(obj)


__all__ = ["ClosureAnalyzer", "compute_type_closure"]
