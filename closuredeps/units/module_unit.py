# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Python modules as code units.

A module is *live* when nothing on disk backs it: `__main__` in a REPL,
notebook cells, modules built with `types.ModuleType`. Live modules can grow
new definitions after they were packaged, so they are the units the
staleness selector and remapper care about. File-backed modules are
fingerprinted by their source bytes.
"""

from __future__ import annotations

import sys
import types
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple

from closuredeps.core.config import SELF_IDENTITY, STDLIB_IDENTITY
from closuredeps.units.trust import UnitSignature
from closuredeps.units.unit_id import CodeUnitId, content_fingerprint

_SELF_PACKAGE = __name__.partition(".")[0]


def _origin(module: types.ModuleType) -> Optional[str]:
	spec = getattr(module, "__spec__", None)
	origin = getattr(spec, "origin", None) if spec is not None else None
	if isinstance(origin, str):
		return origin
	file = getattr(module, "__file__", None)
	return file if isinstance(file, str) else None


def is_builtin_module(module: types.ModuleType) -> bool:
	return module.__name__ in sys.builtin_module_names or _origin(module) in ("built-in", "frozen")


def is_namespace_package(module: types.ModuleType) -> bool:
	spec = getattr(module, "__spec__", None)
	return spec is not None and spec.origin is None and spec.submodule_search_locations is not None


def is_live_module(module: types.ModuleType) -> bool:
	"""True when no file backs the module and it is not built into the interpreter."""
	if is_builtin_module(module) or is_namespace_package(module):
		return False
	origin = _origin(module)
	if origin is None:
		return True
	return not Path(origin).is_file()


def is_stdlib_module(module: types.ModuleType) -> bool:
	if is_builtin_module(module):
		return True
	return module.__name__.partition(".")[0] in sys.stdlib_module_names


def representative_type(module: types.ModuleType) -> Optional[type]:
	"""
	First class defined by `module`, in namespace order.

	One contained type stands in for "this unit is needed"; the unit's other
	types are not enumerated.
	"""
	name = module.__name__
	for value in list(vars(module).values()):
		if isinstance(value, type) and getattr(value, "__module__", None) == name:
			return value
	return None


def module_references(module: types.ModuleType) -> List[str]:
	"""Names of modules referenced from `module`'s namespace, sorted."""
	names: set[str] = set()
	for value in list(vars(module).values()):
		if isinstance(value, types.ModuleType):
			names.add(value.__name__)
		elif isinstance(value, (type, types.FunctionType, types.BuiltinFunctionType)):
			owner = getattr(value, "__module__", None)
			if isinstance(owner, str):
				names.add(owner)
	names.discard(module.__name__)
	return sorted(names)


class ModuleUnit:
	"""
	A loaded Python module viewed as a code unit.

	Modules carry no signature of their own; an embedder that signs its
	distributions attaches one here (usually through `ModuleResolver`).
	"""

	def __init__(self, module: types.ModuleType, signature: Optional[UnitSignature] = None) -> None:
		self.module = module
		self.signature = signature
		self._unit_id: CodeUnitId | None = None

	@classmethod
	def for_name(cls, name: str, signature: Optional[UnitSignature] = None) -> "ModuleUnit":
		"""
		Unit for a module name, whether or not the module is still loaded.

		A name missing from `sys.modules` yields an empty live module so the
		unit still surfaces (and fails loudly) in packaging-aware passes.
		"""
		module = sys.modules.get(name)
		if module is None:
			module = types.ModuleType(name)
		return cls(module, signature)

	@property
	def name(self) -> str:
		return self.module.__name__

	@property
	def unit_id(self) -> CodeUnitId:
		if self._unit_id is None:
			self._unit_id = CodeUnitId(self.name, self._fingerprint())
		return self._unit_id

	@property
	def is_live(self) -> bool:
		return is_live_module(self.module)

	@property
	def signing_identity(self) -> Optional[str]:
		if self.name == _SELF_PACKAGE or self.name.startswith(_SELF_PACKAGE + "."):
			return SELF_IDENTITY
		if is_stdlib_module(self.module):
			return STDLIB_IDENTITY
		return None

	def references(self) -> List[str]:
		return module_references(self.module)

	def representative_type(self) -> Optional[type]:
		return representative_type(self.module)

	def _fingerprint(self) -> str:
		if is_builtin_module(self.module):
			return "builtin:" + ".".join(str(p) for p in sys.version_info[:3])
		origin = _origin(self.module)
		if origin is not None and Path(origin).is_file():
			return content_fingerprint(Path(origin).read_bytes())
		if is_namespace_package(self.module):
			return "namespace:" + self.name
		# Live modules keep their identity while their content grows.
		return f"live:{id(self.module):x}"

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, ModuleUnit):
			return NotImplemented
		return self.unit_id == other.unit_id

	def __hash__(self) -> int:
		return hash(self.unit_id)

	def __repr__(self) -> str:
		return f"ModuleUnit({self.name!r})"


@dataclass(frozen=True)
class IncrementUnit:
	"""
	A packaged increment ("slice") of a live unit.

	Increments are immutable once created, so they are never live themselves.
	"""

	name: str
	parent_name: str
	index: int
	fingerprint: str
	refs: Tuple[str, ...] = ()
	signature: Optional[UnitSignature] = None
	signing_identity: Optional[str] = None
	payload: Any = field(default=None, compare=False, repr=False)

	@property
	def unit_id(self) -> CodeUnitId:
		return CodeUnitId(self.name, self.fingerprint)

	@property
	def is_live(self) -> bool:
		return False

	def references(self) -> List[str]:
		return list(self.refs)


def unit_for_type(cls: type) -> ModuleUnit:
	return ModuleUnit.for_name(cls.__module__)


__all__ = [
	"ModuleUnit",
	"IncrementUnit",
	"is_builtin_module",
	"is_live_module",
	"is_namespace_package",
	"is_stdlib_module",
	"representative_type",
	"module_references",
	"unit_for_type",
]
