# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Packaging state of live units.

The surrounding compiler owns this state; the core only reads it. Each live
unit that has been packaged at least once has a `PackagingInfo` recording
whether fresh, unpackaged definitions exist and which increment owns each
type (by qualified name).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

from closuredeps.units.protocols import CodeUnit


@dataclass(frozen=True)
class InNoIncrement:
	"""The type was never packaged."""


@dataclass(frozen=True)
class InAllIncrements:
	"""The type is replicated in every increment (compiler-generated support)."""


@dataclass(frozen=True)
class InIncrement:
	increment: CodeUnit


TypeOwnership = Union[InNoIncrement, InAllIncrements, InIncrement]


@dataclass
class PackagingInfo:
	unit_name: str
	has_fresh_content: bool = False
	type_index: Dict[str, TypeOwnership] = field(default_factory=dict)
	increments: List[CodeUnit] = field(default_factory=list)

	def lookup_owning_increment(self, type_name: str) -> Optional[TypeOwnership]:
		return self.type_index.get(type_name)


class InMemoryCompilerState:
	"""
	Dictionary-backed `CompilerState`.

	Embedders that track packaging themselves can use this directly; the
	packager updates it through `record_increment`.
	"""

	def __init__(self, infos: Mapping[str, PackagingInfo] | None = None) -> None:
		self._infos: Dict[str, PackagingInfo] = dict(infos or {})

	def get_packaging_state(self, unit_name: str) -> Optional[PackagingInfo]:
		return self._infos.get(unit_name)

	def find_increment(self, name: str) -> Optional[CodeUnit]:
		for info in self._infos.values():
			for inc in info.increments:
				if inc.name == name:
					return inc
		return None

	def record_increment(self, unit_name: str, increment: CodeUnit, type_names: List[str]) -> PackagingInfo:
		"""Register a fresh increment of `unit_name` owning `type_names`."""
		info = self._infos.setdefault(unit_name, PackagingInfo(unit_name=unit_name))
		info.increments.append(increment)
		for tname in type_names:
			info.type_index[tname] = InIncrement(increment)
		info.has_fresh_content = False
		return info

	def mark_fresh(self, unit_name: str) -> None:
		info = self._infos.get(unit_name)
		if info is not None:
			info.has_fresh_content = True


__all__ = [
	"InNoIncrement",
	"InAllIncrements",
	"InIncrement",
	"TypeOwnership",
	"PackagingInfo",
	"InMemoryCompilerState",
]
