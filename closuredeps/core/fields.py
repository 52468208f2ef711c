# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Runtime type introspection used by the classifier.

Python has no single reflection API for "the declared instance fields of a
class". This module collects them from dataclass/annotation declarations and
`__slots__`, and normalizes the zoo of typing constructs (aliases, type
variables, `Annotated`, `NewType`, forward references) into descriptors the
classifier understands.
"""

from __future__ import annotations

import collections
import dataclasses
import enum
import inspect
import sys
import types
import typing
import weakref
from typing import Any, Dict, List, Mapping, Tuple

from closuredeps.core.shapes import FieldRef

# CPython type flag: the type can be used as a base class.
_TPFLAGS_BASETYPE = 1 << 10

PRIMITIVE_TYPES: frozenset[type] = frozenset({bool, int, float, complex, str, bytes, bytearray, type(None)})

CONTAINER_TYPES: Tuple[type, ...] = (list, tuple, set, frozenset, dict, collections.deque)

REFERENCE_TYPES: Tuple[type, ...] = (weakref.ref,)

_CUSTOM_STATE_HOOKS = ("__getstate__", "__reduce__", "__reduce_ex__")

# Failures from evaluating a string annotation.
_UNRESOLVED = (NameError, AttributeError, SyntaxError, TypeError)


def normalize(ty: Any) -> Any:
	"""
	Reduce a type descriptor to one the classifier handles directly.

	`Any` and unresolvable forward references become `object`; type variables
	become their bound (or the union of their constraints); `Annotated[X, ...]`
	becomes `X`; `NewType` becomes its supertype.
	"""
	while True:
		if ty is typing.Any or isinstance(ty, (str, typing.ForwardRef)):
			return object
		if isinstance(ty, typing.TypeVar):
			if ty.__bound__ is not None:
				ty = ty.__bound__
				continue
			if ty.__constraints__:
				return typing.Union[ty.__constraints__]
			return object
		if typing.get_origin(ty) is typing.Annotated:
			ty = typing.get_args(ty)[0]
			continue
		supertype = getattr(ty, "__supertype__", None)
		if supertype is not None and not isinstance(ty, type):
			ty = supertype
			continue
		return ty


def type_args(ty: Any) -> List[Any]:
	"""
	Type arguments of a parameterized descriptor, flattened.

	`Callable[[A, B], R]` yields A, B, R; `tuple[T, ...]` drops the ellipsis.
	"""
	out: List[Any] = []
	for arg in typing.get_args(ty):
		if arg is Ellipsis:
			continue
		if isinstance(arg, (list, tuple)):
			out.extend(a for a in arg if a is not Ellipsis)
			continue
		out.append(arg)
	return out


def is_union(ty: Any) -> bool:
	return typing.get_origin(ty) is typing.Union or isinstance(ty, types.UnionType)


def is_open_template(ty: Any) -> bool:
	"""True for generic templates that never describe a live instance."""
	if ty is typing.Generic or ty is typing.Protocol:
		return True
	if isinstance(ty, type):
		return False
	return type(ty).__module__ == "typing" and not typing.get_args(ty) and typing.get_origin(ty) not in CONTAINER_TYPES


def is_namedtuple(cls: type) -> bool:
	return issubclass(cls, tuple) and isinstance(getattr(cls, "_fields", None), tuple)


def is_intrinsically_sealed(cls: type) -> bool:
	"""
	True when every instance of `cls` has exactly the class's own shape.

	Covers classes CPython refuses to subclass, `@typing.final` classes, enums
	with members, and named tuples (tuple-like wrappers).
	"""
	if not getattr(cls, "__flags__", 0) & _TPFLAGS_BASETYPE:
		return True
	if getattr(cls, "__final__", False):
		return True
	if isinstance(cls, enum.EnumMeta) and len(cls.__members__) > 0:
		return True
	return is_namedtuple(cls)


def is_custom_serializable(cls: type) -> bool:
	"""
	True when the class supplies its own state enumeration.

	Any override of `__getstate__`, `__reduce__` or `__reduce_ex__` below
	`object` means the field set is only knowable per instance. Enums reduce
	by reference and are not counted.
	"""
	for klass in cls.__mro__:
		if klass is object or klass is enum.Enum:
			break
		own = vars(klass)
		for hook in _CUSTOM_STATE_HOOKS:
			fn = own.get(hook)
			# dataclasses adds __getstate__ to frozen slotted classes; that is plain field state.
			if fn is not None and getattr(fn, "__module__", None) != "dataclasses":
				return True
	return False


def own_annotations(cls: type) -> Dict[str, Any]:
	"""
	Annotations declared on `cls` itself, evaluated where possible.

	String annotations are evaluated against the defining module and the class
	namespace (plus the class's own name, so self-references resolve for
	classes defined in a local scope). When the class's string annotations
	cannot all be evaluated, each one is retried on its own and those that
	still fail are reported as `object`.
	"""
	try:
		raw = inspect.get_annotations(cls)
	except (NameError, AttributeError):
		# Deferred annotations that reference undefined names; builtin types.
		return {}
	if not any(isinstance(hint, str) for hint in raw.values()):
		return dict(raw)
	module = sys.modules.get(cls.__module__)
	globalns = dict(vars(module)) if module is not None else {}
	localns = dict(vars(cls))
	localns.setdefault(cls.__name__, cls)
	try:
		return inspect.get_annotations(cls, globals=globalns, locals=localns, eval_str=True)
	except _UNRESOLVED:
		pass
	out: Dict[str, Any] = {}
	for name, hint in raw.items():
		if isinstance(hint, str):
			hint = _evaluate_one(hint, globalns, localns)
		out[name] = hint
	return out


def _evaluate_one(hint: str, globalns: Dict[str, Any], localns: Dict[str, Any]) -> Any:
	def _holder() -> None:
		pass

	_holder.__annotations__ = {"hint": hint}
	try:
		return inspect.get_annotations(_holder, globals=globalns, locals=localns, eval_str=True)["hint"]
	except _UNRESOLVED:
		return object


def _is_class_level(hint: Any) -> bool:
	if hint is typing.ClassVar or typing.get_origin(hint) is typing.ClassVar:
		return True
	return hint is dataclasses.InitVar or isinstance(hint, dataclasses.InitVar)


def _own_slots(cls: type) -> List[str]:
	slots = vars(cls).get("__slots__", ())
	if isinstance(slots, str):
		slots = (slots,)
	return [s for s in slots if s not in ("__dict__", "__weakref__")]


def substitute(hint: Any, mapping: Mapping[Any, Any]) -> Any:
	"""Replace type variables in `hint` according to `mapping`."""
	if not mapping:
		return hint
	if isinstance(hint, typing.TypeVar):
		return mapping.get(hint, hint)
	if is_union(hint):
		return typing.Union[tuple(substitute(a, mapping) for a in typing.get_args(hint))]
	params = getattr(hint, "__parameters__", ())
	if not params or isinstance(hint, type):
		return hint
	args = tuple(mapping.get(p, p) for p in params)
	return hint[args if len(args) != 1 else args[0]]


def _dict_owner(cls: type) -> type | None:
	for klass in cls.__mro__:
		if klass is object:
			return None
		if "__dict__" in vars(klass):
			return klass
	return None


def instance_fields(cls: type, typevars: Mapping[Any, Any] | None = None) -> List[FieldRef]:
	"""
	All instance fields of `cls`, walking the MRO up to (excluding) `object`.

	Fields are deduplicated by (declaring class, name); the first occurrence
	walking from the most-derived class wins. Named tuples built without
	annotations get one `object` field per entry of `_fields`. Classes whose
	instances carry a free-form `__dict__` get a synthetic `__dict__` field,
	since their attributes cannot be known statically; for dataclasses it
	skips the keys their declared fields already cover.
	"""
	if isinstance(cls, enum.EnumMeta):
		# Members are fixed when the class is created.
		return []
	mapping = dict(typevars or {})
	gathered: Dict[Tuple[type, str], FieldRef] = {}

	def _add(klass: type, name: str, declared: Any) -> None:
		key = (klass, name)
		if key not in gathered:
			gathered[key] = FieldRef(klass, name, substitute(declared, mapping))

	for klass in cls.__mro__:
		if klass is object:
			break
		annotations = own_annotations(klass)
		for name, hint in annotations.items():
			if _is_class_level(hint):
				continue
			_add(klass, name, hint)
		for name in _own_slots(klass):
			_add(klass, name, annotations.get(name, object))
		if is_namedtuple(klass) and "_fields" in vars(klass):
			for name in klass._fields:
				_add(klass, name, annotations.get(name, object))

	if getattr(cls, "__dictoffset__", 0):
		owner = _dict_owner(cls)
		if owner is not None:
			covered: frozenset[str] = frozenset()
			if dataclasses.is_dataclass(cls):
				covered = frozenset(f.name for f in dataclasses.fields(cls))
			key = (owner, "__dict__")
			if key not in gathered:
				gathered[key] = FieldRef(owner, "__dict__", dict, covered=covered)

	return list(gathered.values())


def qualified_type_name(cls: type) -> str:
	return f"{cls.__module__}.{cls.__qualname__}"


__all__ = [
	"PRIMITIVE_TYPES",
	"CONTAINER_TYPES",
	"REFERENCE_TYPES",
	"normalize",
	"type_args",
	"is_union",
	"is_open_template",
	"is_namedtuple",
	"is_intrinsically_sealed",
	"is_custom_serializable",
	"own_annotations",
	"substitute",
	"instance_fields",
	"qualified_type_name",
]
