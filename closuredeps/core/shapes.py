# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shape arena for the sealedness analysis.

ShapeIds are opaque ints indexing into a ShapeTable. Each type descriptor
maps to exactly one ShapeId for the lifetime of the table. A record whose
`final` flag is False is a provisional placeholder: it is inserted before a
type's classification finishes so recursive type graphs terminate, and is
overwritten in place (same ShapeId) once the classification completes.
"""

from __future__ import annotations

import types
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Tuple


ShapeId = int  # opaque handle into the ShapeTable


class ShapeKind(Enum):
	"""Kinds of shapes produced by the classifier."""

	NULL = auto()
	PRIMITIVE = auto()
	ARRAY = auto()
	REFERENCE = auto()
	GENERIC_DEFINITION = auto()
	NAMED = auto()


@dataclass(frozen=True)
class FieldRef:
	"""
	Instance field handle: (declaring type, field name) plus its declared type.

	`read` is the only place where reflective access to instance state happens.
	Equality and hashing use the (declaring type, name) pair only, which is the
	deduplication key when fields are re-declared along the MRO.

	For the synthetic `__dict__` field, `covered` names the attributes other
	fields already read; they are left out of the returned mapping.
	"""

	declaring_type: type
	name: str
	declared_type: Any = field(default=object, compare=False)
	covered: frozenset[str] = field(default=frozenset(), compare=False)

	def read(self, instance: object) -> object:
		slot = self.declaring_type.__dict__.get(self.name)
		if isinstance(slot, types.MemberDescriptorType):
			try:
				return slot.__get__(instance, type(instance))
			except AttributeError:
				return None
		if self.name == "__dict__":
			inst_dict = getattr(instance, "__dict__", None)
			if self.covered and isinstance(inst_dict, dict):
				return {k: v for k, v in inst_dict.items() if k not in self.covered}
			return inst_dict
		inst_dict = getattr(instance, "__dict__", None)
		if isinstance(inst_dict, dict) and self.name in inst_dict:
			return inst_dict[self.name]
		return getattr(instance, self.name, None)


@dataclass(frozen=True)
class ShapeRecord:
	"""Classification result for one type descriptor."""

	kind: ShapeKind
	type: Any
	sealed: bool
	final: bool = True
	is_generic_instance: bool = False
	is_custom_serializable: bool = False
	unsealed_fields: Tuple[FieldRef, ...] = ()
	element_ids: Tuple[ShapeId, ...] = ()

	@property
	def is_partial(self) -> bool:
		return not self.final

	@property
	def is_named_type(self) -> bool:
		"""True for concrete named types (classes), excluding generic instances and templates."""
		return self.final and self.kind is ShapeKind.NAMED and not self.is_generic_instance


def _key(ty: Any) -> Any:
	try:
		hash(ty)
	except TypeError:
		return ("<id>", id(ty))
	return ty


class ShapeTable:
	"""
	Arena of ShapeRecords keyed by type descriptor.

	Records are appended; updates replace a record under the same ShapeId.
	`mark()`/`rollback()` let callers discard everything inserted since a
	checkpoint when a classification aborts.
	"""

	def __init__(self) -> None:
		self._records: List[ShapeRecord] = []
		self._ids: Dict[Any, ShapeId] = {}

	def __len__(self) -> int:
		return len(self._records)

	def lookup(self, ty: Any) -> ShapeId | None:
		return self._ids.get(_key(ty))

	def get(self, sid: ShapeId) -> ShapeRecord:
		return self._records[sid]

	def insert(self, record: ShapeRecord) -> ShapeId:
		"""Register `record` for `record.type`, or overwrite the existing record."""
		key = _key(record.type)
		sid = self._ids.get(key)
		if sid is None:
			sid = len(self._records)
			self._records.append(record)
			self._ids[key] = sid
		else:
			self._records[sid] = record
		return sid

	def placeholder(self, kind: ShapeKind, ty: Any, sealed: bool) -> ShapeId:
		return self.insert(ShapeRecord(kind=kind, type=ty, sealed=sealed, final=False))

	def refine(self, sid: ShapeId, **changes: Any) -> ShapeRecord:
		rec = replace(self._records[sid], **changes)
		self._records[sid] = rec
		return rec

	def is_sealed(self, sid: ShapeId) -> bool:
		return self._records[sid].sealed

	def mark(self) -> int:
		return len(self._records)

	def rollback(self, mark: int) -> None:
		"""Drop every record appended after `mark`."""
		del self._records[mark:]
		self._ids = {k: sid for k, sid in self._ids.items() if sid < mark}

	def records(self) -> Iterator[ShapeRecord]:
		return iter(self._records)

	def named_types(self) -> List[type]:
		"""All concrete named types classified so far, in classification order."""
		return [rec.type for rec in self._records if rec.is_named_type]


__all__ = ["ShapeId", "ShapeKind", "FieldRef", "ShapeRecord", "ShapeTable"]
