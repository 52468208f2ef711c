# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Collaborator protocols.

The core reads code units and packaging state but never creates increments,
moves bytes, or manages processes. Those subsystems implement the protocols
below; `module_unit`, `resolver` and `packaging_state` provide the in-process
implementations used by default and in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from closuredeps.units.unit_id import CodeUnitId

if TYPE_CHECKING:
	from closuredeps.units.packaging_state import PackagingInfo
	from closuredeps.units.trust import UnitSignature


class CodeUnit(Protocol):
	"""A compilation/library unit: the granularity of resolution and packaging."""

	@property
	def name(self) -> str:
		"""Fully-qualified name."""
		...

	@property
	def unit_id(self) -> CodeUnitId:
		...

	@property
	def is_live(self) -> bool:
		"""True for units whose content can grow after being packaged."""
		...

	@property
	def signing_identity(self) -> Optional[str]:
		...

	@property
	def signature(self) -> Optional["UnitSignature"]:
		...

	def references(self) -> List[str]:
		"""Names of the units this unit declares references to."""
		...


class UnitResolver(Protocol):
	def resolve(self, name: str) -> Optional[CodeUnit]:
		"""
		Resolve a referenced unit by name.

		Returns None on a definitive not-found or when the unit is ignored.
		"""
		...


class CompilerState(Protocol):
	"""Packaging state owned by the surrounding compiler/runtime (single writer)."""

	def get_packaging_state(self, unit_name: str) -> Optional["PackagingInfo"]:
		...

	def find_increment(self, name: str) -> Optional[CodeUnit]:
		"""Return the packaged increment called `name`, if any."""
		...


class UnitPackager(Protocol):
	def package_unit(self, unit: CodeUnit) -> Tuple[Any, List[str]]:
		"""
		Create an increment for `unit`.

		Returns the packaging result and the names of the units the fresh
		increment depends on.
		"""
		...


class FieldEnumerator(Protocol):
	def __call__(self, obj: Any) -> Iterable[Tuple[str, Any]]:
		...


# Types grouped by the code unit that owns them.
Dependencies = List[Tuple[CodeUnit, FrozenSet[type]]]


__all__ = ["CodeUnit", "UnitResolver", "CompilerState", "UnitPackager", "FieldEnumerator", "Dependencies"]
