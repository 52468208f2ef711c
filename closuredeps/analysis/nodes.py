# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Graph node kinds for the object walker.

Every live object the walker reaches is first wrapped in exactly one node
variant. The walker has one handler per variant, so adding a kind means
adding a handler rather than growing a chain of runtime type checks at the
traversal site.
"""

from __future__ import annotations

import functools
import types
import typing
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class NullNode:
	pass


@dataclass(frozen=True)
class TypeNode:
	"""A type descriptor used as a value (class, alias, type variable)."""

	descriptor: Any


@dataclass(frozen=True)
class MemberNode:
	"""A member descriptor bound to its declaring class (`__objclass__`)."""

	member: Any
	declaring_type: type


@dataclass(frozen=True)
class ModuleNode:
	module: types.ModuleType


@dataclass(frozen=True)
class CallableNode:
	"""Functions, bound methods, builtin functions and partials."""

	func: Any


@dataclass(frozen=True)
class InstanceNode:
	obj: Any


GraphNode = Union[NullNode, TypeNode, MemberNode, ModuleNode, CallableNode, InstanceNode]

CALLABLE_TYPES = (
	types.FunctionType,
	types.MethodType,
	types.BuiltinFunctionType,
	functools.partial,
)


def is_type_descriptor(obj: Any) -> bool:
	if isinstance(obj, (type, typing.TypeVar, types.GenericAlias, types.UnionType)):
		return True
	return type(obj).__module__ == "typing"


def node_of(obj: Any) -> GraphNode:
	"""Wrap `obj` in its graph node variant."""
	if obj is None:
		return NullNode()
	if is_type_descriptor(obj):
		return TypeNode(obj)
	if isinstance(obj, types.ModuleType):
		return ModuleNode(obj)
	if isinstance(obj, CALLABLE_TYPES):
		return CallableNode(obj)
	owner = _objclass(obj)
	if owner is not None:
		return MemberNode(obj, owner)
	return InstanceNode(obj)


def _objclass(obj: Any) -> type | None:
	# method/member/getset/wrapper descriptors carry their declaring class.
	if isinstance(
		obj,
		(
			types.MethodDescriptorType,
			types.MemberDescriptorType,
			types.GetSetDescriptorType,
			types.WrapperDescriptorType,
			types.ClassMethodDescriptorType,
			types.MethodWrapperType,
		),
	):
		owner = getattr(obj, "__objclass__", None)
		if isinstance(owner, type):
			return owner
	return None


__all__ = [
	"NullNode",
	"TypeNode",
	"MemberNode",
	"ModuleNode",
	"CallableNode",
	"InstanceNode",
	"GraphNode",
	"CALLABLE_TYPES",
	"is_type_descriptor",
	"node_of",
]
