# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type sealedness analysis.

A type is *sealed* when its full structural shape is known without looking
at a particular instance: every instance has the same class, and every field
it declares is itself sealed. Sealed types never need instance-level
traversal; only the fields that are not sealed are inspected on live objects.

Recursive types (`class Node: child: Node | None`) are handled by inserting a
provisional record before descending into fields. A lookup that hits a
provisional record returns it as-is and ties the two classifications into
one cycle. Every type on a cycle is settled together once the outermost type
of the cycle finishes (strongly connected components, found with Tarjan-style
low links): sealedness is the greatest fixpoint of "intrinsically sealed and
every field sealed", and the unsealed-field lists are computed after the
final flags are in the table. Each type descriptor is classified once.
"""

from __future__ import annotations

import typing
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from closuredeps.core import fields as fx
from closuredeps.core.config import AnalysisConfig
from closuredeps.core.errors import StackExhaustionError
from closuredeps.core.shapes import FieldRef, ShapeId, ShapeKind, ShapeRecord, ShapeTable


@dataclass
class _Frame:
	"""One provisional record whose classification has not been settled."""

	sid: ShapeId
	index: int
	low: int
	base: bool = True
	deps: Tuple[ShapeId, ...] = ()
	fields: Tuple[FieldRef, ...] = ()
	changes: Dict[str, Any] = field(default_factory=dict)


class TypeClassifier:
	"""
	Memoized classifier mapping type descriptors to ShapeRecords.

	One classifier owns one ShapeTable. It is not thread-safe; concurrent
	analyses must use separate instances.
	"""

	def __init__(self, table: ShapeTable | None = None, *, config: AnalysisConfig | None = None) -> None:
		self.table = table if table is not None else ShapeTable()
		self.config = config or AnalysisConfig()
		self._depth = 0
		# Open frames, innermost last.
		self._frames: List[_Frame] = []
		# Provisional records not yet settled, in opening order, with their low links.
		self._pending: List[ShapeId] = []
		self._low: Dict[ShapeId, int] = {}
		self._closed: Dict[ShapeId, _Frame] = {}
		self._next_index = 0

	def classify(self, ty: Any) -> ShapeRecord:
		return self.table.get(self.classify_id(ty))

	def is_sealed(self, ty: Any) -> bool:
		return self.classify(ty).sealed

	def classify_id(self, ty: Any) -> ShapeId:
		"""
		Classify `ty`, returning its ShapeId.

		Raises StackExhaustionError when the nesting depth exceeds the
		configured headroom; the table is rolled back to its state before the
		outermost call.
		"""
		if self._depth > 0:
			return self._classify(ty)
		mark = self.table.mark()
		try:
			return self._classify(ty)
		except StackExhaustionError:
			self.table.rollback(mark)
			raise
		except RecursionError as err:
			self.table.rollback(mark)
			raise StackExhaustionError(
				message="ran out of interpreter stack while classifying type",
				type_name=_describe(ty),
				depth=self._depth,
			) from err
		finally:
			self._depth = 0
			self._frames.clear()
			self._pending.clear()
			self._low.clear()
			self._closed.clear()

	def _classify(self, ty: Any) -> ShapeId:
		ty = fx.normalize(ty)
		if ty is None:
			return self.table.insert(ShapeRecord(kind=ShapeKind.NULL, type=None, sealed=True))

		sid = self.table.lookup(ty)
		if sid is not None:
			self._note(sid)
			return sid

		if self._depth >= self.config.max_classify_depth:
			raise StackExhaustionError(
				message=f"type nesting exceeds {self.config.max_classify_depth} levels",
				type_name=_describe(ty),
				depth=self._depth,
			)
		self._depth += 1
		try:
			return self._classify_new(ty)
		finally:
			self._depth -= 1

	def _classify_new(self, ty: Any) -> ShapeId:
		origin = typing.get_origin(ty)

		if _is_one_of(ty, fx.PRIMITIVE_TYPES) or origin is typing.Literal:
			return self.table.insert(ShapeRecord(kind=ShapeKind.PRIMITIVE, type=ty, sealed=True))

		if _is_one_of(ty, fx.CONTAINER_TYPES) or _is_one_of(origin, fx.CONTAINER_TYPES):
			return self._classify_elements(ShapeKind.ARRAY, ty)

		if _is_one_of(ty, fx.REFERENCE_TYPES) or _is_one_of(origin, fx.REFERENCE_TYPES):
			return self._classify_elements(ShapeKind.REFERENCE, ty)

		if fx.is_open_template(ty):
			return self.table.insert(ShapeRecord(kind=ShapeKind.GENERIC_DEFINITION, type=ty, sealed=True))

		if fx.is_union(ty):
			return self._classify_union(ty)

		if isinstance(origin, type):
			return self._classify_named(ty, origin, is_generic_instance=True)

		if isinstance(ty, type):
			return self._classify_named(ty, ty, is_generic_instance=False)

		# Anything else (ParamSpec, unknown typing constructs) can hold any value.
		return self._classify(object)

	def _classify_elements(self, kind: ShapeKind, ty: Any) -> ShapeId:
		frame = self._open(kind, ty, sealed=False)
		args = fx.type_args(ty)
		if not args:
			args = [object]
		element_ids = tuple(self._classify(arg) for arg in args)
		self._close(frame, deps=element_ids, element_ids=element_ids)
		return frame.sid

	def _classify_union(self, ty: Any) -> ShapeId:
		# Option-like wrapper: sealed iff every alternative is sealed.
		frame = self._open(ShapeKind.NAMED, ty, sealed=True)
		element_ids = tuple(self._classify(arg) for arg in typing.get_args(ty))
		self._close(frame, deps=element_ids, is_generic_instance=True, element_ids=element_ids)
		return frame.sid

	def _classify_named(self, ty: Any, cls: type, *, is_generic_instance: bool) -> ShapeId:
		typevars: Dict[Any, Any] = {}
		if is_generic_instance:
			# Forces memoization of the template and the arguments.
			self._classify(cls)
			args = typing.get_args(ty)
			for arg in fx.type_args(ty):
				self._classify(arg)
			params = getattr(cls, "__parameters__", ())
			typevars = dict(zip(params, args))

		if fx.is_custom_serializable(cls):
			return self.table.insert(
				ShapeRecord(
					kind=ShapeKind.NAMED,
					type=ty,
					sealed=False,
					is_generic_instance=is_generic_instance,
					is_custom_serializable=True,
				)
			)

		intrinsic = fx.is_intrinsically_sealed(cls)
		frame = self._open(ShapeKind.NAMED, ty, sealed=intrinsic)
		fields = tuple(fx.instance_fields(cls, typevars))
		field_ids = tuple(self._classify(f.declared_type) for f in fields)
		self._close(
			frame,
			base=intrinsic,
			deps=field_ids,
			fields=fields,
			is_generic_instance=is_generic_instance,
		)
		return frame.sid

	def _open(self, kind: ShapeKind, ty: Any, *, sealed: bool) -> _Frame:
		sid = self.table.placeholder(kind, ty, sealed=sealed)
		frame = _Frame(sid=sid, index=self._next_index, low=self._next_index)
		self._next_index += 1
		self._frames.append(frame)
		self._pending.append(sid)
		self._low[sid] = frame.index
		return frame

	def _note(self, sid: ShapeId) -> None:
		# A hit on an unsettled record joins the current frame to its cycle.
		low = self._low.get(sid)
		if low is not None and self._frames:
			top = self._frames[-1]
			top.low = min(top.low, low)

	def _close(
		self,
		frame: _Frame,
		*,
		base: bool = True,
		deps: Tuple[ShapeId, ...] = (),
		fields: Tuple[FieldRef, ...] = (),
		**changes: Any,
	) -> None:
		frame.base = base
		frame.deps = deps
		frame.fields = fields
		frame.changes = changes
		self._frames.pop()
		self._low[frame.sid] = frame.low
		self._closed[frame.sid] = frame
		if frame.low < frame.index:
			# An enclosing frame is still open on this cycle; it settles us.
			parent = self._frames[-1]
			parent.low = min(parent.low, frame.low)
			return
		members: List[_Frame] = []
		while True:
			sid = self._pending.pop()
			del self._low[sid]
			members.append(self._closed.pop(sid))
			if sid == frame.sid:
				break
		self._settle(members)

	def _settle(self, members: List[_Frame]) -> None:
		ids = {m.sid for m in members}
		sealed = {m.sid: m.base and all(self.table.is_sealed(d) for d in m.deps if d not in ids) for m in members}
		readers: Dict[ShapeId, List[ShapeId]] = {}
		for m in members:
			for d in m.deps:
				if d in ids:
					readers.setdefault(d, []).append(m.sid)
		work = [sid for sid, ok in sealed.items() if not ok]
		while work:
			for reader in readers.get(work.pop(), ()):
				if sealed[reader]:
					sealed[reader] = False
					work.append(reader)

		for m in members:
			self.table.refine(m.sid, sealed=sealed[m.sid])
		for m in members:
			unsealed = tuple(f for f, d in zip(m.fields, m.deps) if not self.table.is_sealed(d))
			self.table.refine(m.sid, final=True, unsealed_fields=unsealed, **m.changes)


def _is_one_of(ty: Any, group: Iterable[type]) -> bool:
	return any(ty is t for t in group)


def _describe(ty: Any) -> str:
	if isinstance(ty, type):
		return fx.qualified_type_name(ty)
	return repr(ty)


__all__ = ["TypeClassifier"]
