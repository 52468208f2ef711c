# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import collections
import functools
import sys
import types
import weakref
from dataclasses import dataclass
from typing import NamedTuple, final

from closuredeps.analysis.walker import ObjectGraphWalker, compute_type_closure
from closuredeps.core.config import AnalysisConfig
from closuredeps.test_support import make_live_module


class Link:
	def __init__(self):
		self.next = None


class Marker:
	pass


class Holder:
	def __init__(self, payload):
		self.payload = payload

	def method(self):
		return self.payload


class Same:
	def __init__(self, payload):
		self.payload = payload

	def __eq__(self, other):
		return isinstance(other, Same)

	def __hash__(self):
		return 0


class Pair(NamedTuple):
	a: int
	b: int


Loose = collections.namedtuple("Loose", "x y")


@dataclass
class WithCache:
	x: int

	def __post_init__(self):
		self.cache = Marker()


class Custom:
	def __init__(self, data):
		self.data = data

	def __getstate__(self):
		return {"data": self.data}


@final
class Base:
	__slots__ = ("own",)
	own: int


def test_self_cycle_terminates() -> None:
	node = Link()
	node.next = node
	result = ObjectGraphWalker().walk(node)
	assert Link in result


def test_fresh_walkers_agree() -> None:
	a = Link()
	b = Link()
	a.next = b
	b.next = Holder([a, Marker()])
	first = ObjectGraphWalker().walk(a)
	second = ObjectGraphWalker().walk(a)
	assert first == second
	assert {Link, Holder, Marker} <= first


def test_equal_objects_are_distinct_nodes() -> None:
	left = Same(Marker())
	right = Same(Holder(None))
	assert left == right
	assert ObjectGraphWalker().walk([left, right]) >= {Same, Marker, Holder}


def test_sealed_instance_is_not_traversed() -> None:
	assert ObjectGraphWalker().walk(Pair(1, 2)) == frozenset({Pair})


def test_untyped_named_tuple_items_are_followed() -> None:
	assert ObjectGraphWalker().walk(Loose(Marker(), 1)) >= {Loose, Marker}


def test_dataclass_attributes_outside_fields_are_followed() -> None:
	assert ObjectGraphWalker().walk(WithCache(1)) >= {WithCache, Marker}


def test_type_value_classifies_without_instances() -> None:
	result = ObjectGraphWalker().walk(Holder)
	assert Holder in result
	assert Marker not in result


def test_member_descriptor_classifies_declaring_class() -> None:
	assert Base in ObjectGraphWalker().walk(Base.own)


def test_partial_arguments_are_followed() -> None:
	fn = functools.partial(Holder, Marker())
	result = ObjectGraphWalker().walk(fn)
	assert Marker in result
	assert functools.partial in result


def test_bound_method_receiver_is_followed() -> None:
	result = ObjectGraphWalker().walk(Holder(Marker()).method)
	assert {Holder, Marker, types.MethodType} <= result


def test_closure_cells_and_defaults_are_followed() -> None:
	captured = Marker()

	def job(extra=Link()):
		return captured, extra

	result = ObjectGraphWalker().walk(job)
	assert {Marker, Link, types.FunctionType} <= result


def test_weak_reference_target_is_followed() -> None:
	target = Marker()
	ref = weakref.ref(target)
	assert Marker in ObjectGraphWalker().walk(ref)


def test_custom_state_is_enumerated() -> None:
	result = ObjectGraphWalker().walk(Custom(Marker()))
	assert {Custom, Marker} <= result


def test_injected_field_enumerator_is_used() -> None:
	extra = Holder(None)
	walker = ObjectGraphWalker(field_enumerator=lambda obj: [("extra", extra)])
	result = walker.walk(Custom(None))
	assert Holder in result


def test_module_contributes_its_representative_type(monkeypatch) -> None:
	mod = make_live_module(
		"cd_walker_reps",
		"""
		class First:
			pass

		class Second:
			pass
		""",
	)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)
	result = ObjectGraphWalker().walk(mod)
	assert mod.First in result
	assert mod.Second not in result


def test_module_without_types_contributes_nothing() -> None:
	assert ObjectGraphWalker().walk(types.ModuleType("cd_walker_empty")) == frozenset()


def test_live_module_globals_are_followed(monkeypatch) -> None:
	mod = make_live_module(
		"cd_walker_globals",
		"""
		class Anchor:
			pass

		class Payload:
			pass

		CONFIG = Payload()

		def run():
			return CONFIG
		""",
	)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)

	assert mod.Payload in ObjectGraphWalker().walk(mod.run)

	quiet = AnalysisConfig(follow_live_globals=False)
	result = ObjectGraphWalker(config=quiet).walk(mod.run)
	assert mod.Anchor in result
	assert mod.Payload not in result


def test_walker_memo_persists_across_walks() -> None:
	walker = ObjectGraphWalker()
	shared = Holder(Marker())
	walker.walk(shared)
	# Already seen: nothing new is classified.
	assert walker.walk(shared) == walker.walk(shared)
	assert compute_type_closure(shared) == walker.walk(shared)
