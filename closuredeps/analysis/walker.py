# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Object graph walker.

Traverses a live object graph and collects the named types reachable from
it. The sealedness analysis prunes the traversal: an object whose class is
sealed is not looked into, since its whole shape is already described by
the class. Objects are visited at most once by identity (never by equality:
two equal objects at different addresses are distinct graph nodes), which
also makes cyclic graphs terminate.

Traversal uses an explicit work stack, so deep object graphs do not consume
interpreter stack.
"""

from __future__ import annotations

import functools
import logging
import sys
import types
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from closuredeps.analysis.nodes import (
	CallableNode,
	GraphNode,
	InstanceNode,
	MemberNode,
	ModuleNode,
	NullNode,
	TypeNode,
	node_of,
)
from closuredeps.analysis.state import PickleStateEnumerator
from closuredeps.core.classify import TypeClassifier
from closuredeps.core.config import AnalysisConfig
from closuredeps.core.fields import CONTAINER_TYPES
from closuredeps.core.shapes import ShapeKind
from closuredeps.units.module_unit import ModuleUnit, is_live_module, representative_type
from closuredeps.units.protocols import Dependencies, FieldEnumerator

logger = logging.getLogger(__name__)


def declaring_type(func: Any) -> Optional[type]:
	"""
	The type that declares `func`.

	Methods resolve to their owner class through `__qualname__`; module-level
	functions (and functions nested in them) resolve to the representative
	class of their module; builtin methods to the class of their receiver.
	"""
	if isinstance(func, functools.partial):
		return None
	if isinstance(func, types.BuiltinFunctionType):
		owner = getattr(func, "__self__", None)
		if owner is not None and not isinstance(owner, types.ModuleType):
			return owner if isinstance(owner, type) else type(owner)
	target = getattr(func, "__func__", func)
	module = sys.modules.get(getattr(target, "__module__", None) or "")
	if module is None:
		return None
	parts = (getattr(target, "__qualname__", None) or "").split(".")
	if "<locals>" in parts:
		# Drop the enclosing function as well as everything local to it.
		parts = parts[: max(parts.index("<locals>") - 1, 0)]
	else:
		parts = parts[:-1]
	owner: Any = module
	for part in parts:
		owner = getattr(owner, part, None)
		if owner is None:
			break
	if isinstance(owner, type):
		return owner
	return representative_type(module)


def global_names(code: types.CodeType) -> Iterator[str]:
	"""Global names read by `code` and the code objects nested in it."""
	yield from code.co_names
	for const in code.co_consts:
		if isinstance(const, types.CodeType):
			yield from global_names(const)


def _elements(obj: Any) -> List[Any]:
	if isinstance(obj, dict):
		out: List[Any] = []
		for key, value in list(obj.items()):
			out.append(key)
			out.append(value)
		return out
	return list(obj)


class ObjectGraphWalker:
	"""
	Collects the named types reachable from a root object.

	A walker owns its identity memo and (through its classifier) its shape
	table; both persist across `walk` calls on the same instance.
	"""

	def __init__(
		self,
		classifier: TypeClassifier | None = None,
		*,
		config: AnalysisConfig | None = None,
		field_enumerator: FieldEnumerator | None = None,
	) -> None:
		self.config = config or (classifier.config if classifier is not None else AnalysisConfig())
		self.classifier = classifier or TypeClassifier(config=self.config)
		self.field_enumerator = field_enumerator or PickleStateEnumerator(self.config.pickle_protocol)
		# id -> object; holding the object keeps its id from being reused mid-walk.
		self._seen: Dict[int, Any] = {}
		self._handlers: Dict[type, Callable[[Any, List[Any]], None]] = {
			NullNode: self._visit_null,
			TypeNode: self._visit_type,
			MemberNode: self._visit_member,
			ModuleNode: self._visit_module,
			CallableNode: self._visit_callable,
			InstanceNode: self._visit_instance,
		}

	def walk(self, root: Any) -> frozenset[type]:
		"""Traverse from `root`; return every named type classified so far."""
		pending: List[Any] = [root]
		while pending:
			obj = pending.pop()
			if id(obj) in self._seen:
				continue
			self._seen[id(obj)] = obj
			node: GraphNode = node_of(obj)
			self._handlers[type(node)](node, pending)
		result = frozenset(self.classifier.table.named_types())
		logger.debug("walk from %s reached %d named types", type(root).__name__, len(result))
		return result

	def _visit_null(self, node: NullNode, pending: List[Any]) -> None:
		pass

	def _visit_type(self, node: TypeNode, pending: List[Any]) -> None:
		# A type used as a value: its instances are not part of this graph.
		self.classifier.classify_id(node.descriptor)

	def _visit_member(self, node: MemberNode, pending: List[Any]) -> None:
		self.classifier.classify_id(node.declaring_type)

	def _visit_module(self, node: ModuleNode, pending: List[Any]) -> None:
		rep = representative_type(node.module)
		if rep is not None:
			self.classifier.classify_id(rep)

	def _visit_callable(self, node: CallableNode, pending: List[Any]) -> None:
		func = node.func
		self.classifier.classify_id(type(func))
		owner = declaring_type(func)
		if owner is not None:
			self.classifier.classify_id(owner)

		if isinstance(func, functools.partial):
			pending.extend(func.args)
			pending.extend((func.keywords or {}).values())
			if func.func is not func:
				pending.append(func.func)
			return
		if isinstance(func, types.MethodType):
			pending.append(func.__self__)
			pending.append(func.__func__)
			return
		if isinstance(func, types.BuiltinFunctionType):
			pending.append(func.__self__)
			return

		for cell in func.__closure__ or ():
			try:
				pending.append(cell.cell_contents)
			except ValueError:
				# Free variable not bound yet.
				continue
		pending.extend(func.__defaults__ or ())
		pending.extend((func.__kwdefaults__ or {}).values())
		if self.config.follow_live_globals:
			module = sys.modules.get(func.__module__ or "")
			if module is not None and is_live_module(module):
				fglobals = func.__globals__
				for name in global_names(func.__code__):
					if name in fglobals:
						pending.append(fglobals[name])

	def _visit_instance(self, node: InstanceNode, pending: List[Any]) -> None:
		obj = node.obj
		rec = self.classifier.classify(type(obj))
		if rec.sealed:
			return
		if rec.kind is ShapeKind.ARRAY:
			pending.extend(_elements(obj))
		elif rec.kind is ShapeKind.REFERENCE:
			pending.append(obj())
		elif rec.kind is ShapeKind.NAMED and rec.is_custom_serializable:
			for _, value in self.field_enumerator(obj):
				pending.append(value)
		elif rec.kind is ShapeKind.NAMED:
			for f in rec.unsealed_fields:
				pending.append(f.read(obj))
			if isinstance(obj, CONTAINER_TYPES):
				pending.extend(_elements(obj))


def compute_type_closure(obj: Any, *, config: AnalysisConfig | None = None) -> frozenset[type]:
	"""Named types reachable from `obj`, using a fresh walker."""
	return ObjectGraphWalker(config=config).walk(obj)


def group_by_unit(types_: Iterable[type]) -> Dependencies:
	"""Group types by owning module, ordered by module name."""
	by_module: Dict[str, set] = defaultdict(set)
	for ty in types_:
		by_module[ty.__module__].add(ty)
	out: Dependencies = []
	for name in sorted(by_module):
		out.append((ModuleUnit.for_name(name), frozenset(by_module[name])))
	return out


def compute_dependencies(obj: Any, *, config: AnalysisConfig | None = None) -> Dependencies:
	return group_by_unit(compute_type_closure(obj, config=config))


__all__ = [
	"ObjectGraphWalker",
	"declaring_type",
	"global_names",
	"compute_type_closure",
	"compute_dependencies",
	"group_by_unit",
]
