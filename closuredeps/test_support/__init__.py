# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that need code units and packaging collaborators.

`FakeUnit` stands in for a compiled library without touching `sys.modules`;
`RecordingPackager` creates increments into an `InMemoryCompilerState` and
remembers which units it was asked to package.
"""

from __future__ import annotations

import textwrap
import types
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from closuredeps.core.fields import qualified_type_name
from closuredeps.units.module_unit import IncrementUnit, ModuleUnit
from closuredeps.units.packaging_state import InMemoryCompilerState
from closuredeps.units.trust import UnitSignature
from closuredeps.units.unit_id import CodeUnitId, content_fingerprint


@dataclass(frozen=True)
class FakeUnit:
	"""Minimal `CodeUnit` with explicit references."""

	name: str
	fingerprint: str = "sha256:00"
	refs: Tuple[str, ...] = ()
	is_live: bool = False
	signing_identity: Optional[str] = None
	signature: Optional[UnitSignature] = None
	type_names: Tuple[str, ...] = ()

	@property
	def unit_id(self) -> CodeUnitId:
		return CodeUnitId(self.name, self.fingerprint)

	def references(self) -> List[str]:
		return list(self.refs)


def resolver_for(units: Iterable[Any]):
	"""Name -> unit lookup over `units`; unknown names resolve to None."""
	by_name: Dict[str, Any] = {u.name: u for u in units}
	return by_name.get


def defined_type_names(unit: Any) -> List[str]:
	if isinstance(unit, ModuleUnit):
		return [
			qualified_type_name(v)
			for v in vars(unit.module).values()
			if isinstance(v, type) and v.__module__ == unit.name
		]
	return list(getattr(unit, "type_names", ()))


class RecordingPackager:
	"""`UnitPackager` that records one increment per call into `state`."""

	def __init__(self, state: InMemoryCompilerState, dependencies: Mapping[str, Sequence[str]] | None = None) -> None:
		self.state = state
		self.dependencies = {k: list(v) for k, v in (dependencies or {}).items()}
		self.packaged: List[str] = []

	def package_unit(self, unit: Any) -> Tuple[IncrementUnit, List[str]]:
		self.packaged.append(unit.name)
		info = self.state.get_packaging_state(unit.name)
		index = len(info.increments) + 1 if info is not None else 1
		name = f"{unit.name}#{index}"
		increment = IncrementUnit(
			name=name,
			parent_name=unit.name,
			index=index,
			fingerprint=content_fingerprint(name.encode("utf-8")),
		)
		self.state.record_increment(unit.name, increment, defined_type_names(unit))
		return increment, list(self.dependencies.get(unit.name, ()))


def make_live_module(name: str, source: str = "") -> types.ModuleType:
	"""
	Build a module with no backing file and run `source` in it.

	The caller is responsible for registering it in `sys.modules` (tests use
	`monkeypatch.setitem`) when lookups by name must succeed.
	"""
	module = types.ModuleType(name)
	if source:
		exec(textwrap.dedent(source), module.__dict__)
	return module


__all__ = [
	"FakeUnit",
	"RecordingPackager",
	"defined_type_names",
	"make_live_module",
	"resolver_for",
]
