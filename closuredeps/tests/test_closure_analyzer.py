# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import sys
import types
from pathlib import Path

import pytest

from closuredeps.api import ClosureAnalyzer, compute_type_closure
from closuredeps.core.errors import UnpackagedUnitError
from closuredeps.test_support import RecordingPackager, make_live_module
from closuredeps.units.module_unit import IncrementUnit, ModuleUnit
from closuredeps.units.packaging_state import InMemoryCompilerState


class Record:
	def __init__(self, label):
		self.label = label
		self.peer = None


def make_job():
	records = [Record("a"), Record("b"), Record("c")]
	records[1].peer = records[1]

	def job():
		return [r.label for r in records]

	return job


SESSION_SOURCE = """
class Job:
	def __init__(self, n):
		self.n = n
"""


def test_closure_of_function_over_records() -> None:
	job = make_job()
	# Own function type, module representative / record type, and the
	# element type of the untyped list.
	assert compute_type_closure(job) == {types.FunctionType, Record, object}


def test_dependencies_are_grouped_by_module() -> None:
	deps = ClosureAnalyzer().compute_dependencies(make_job())
	assert [unit.name for unit, _ in deps] == ["builtins", __name__]
	assert dict((unit.name, types_) for unit, types_ in deps) == {
		"builtins": frozenset({types.FunctionType, object}),
		__name__: frozenset({Record}),
	}


def test_closure_is_idempotent_across_analyzers() -> None:
	job = make_job()
	assert ClosureAnalyzer().compute_type_closure(job) == ClosureAnalyzer().compute_type_closure(job)


def test_shipping_order_without_state_keeps_live_unit(monkeypatch) -> None:
	mod = make_live_module("cd_session_plain", SESSION_SOURCE)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)

	order = ClosureAnalyzer().shipping_order(mod.Job(3))
	assert order == [ModuleUnit(mod)]


def test_shipping_order_packages_and_remaps_live_unit(monkeypatch) -> None:
	mod = make_live_module("cd_session", SESSION_SOURCE)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)
	state = InMemoryCompilerState()
	packager = RecordingPackager(state)
	analyzer = ClosureAnalyzer(state=state, packager=packager)

	order = analyzer.shipping_order(mod.Job(3))
	assert packager.packaged == ["cd_session"]
	assert len(order) == 1
	assert isinstance(order[0], IncrementUnit)
	assert order[0].parent_name == "cd_session"

	# Nothing fresh: a second request reuses the existing increment.
	assert analyzer.shipping_order(mod.Job(4)) == order
	assert packager.packaged == ["cd_session"]


def test_class_defined_after_packaging_gets_a_new_increment(monkeypatch) -> None:
	mod = make_live_module("cd_session_grown", SESSION_SOURCE)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)
	state = InMemoryCompilerState()
	packager = RecordingPackager(state)
	analyzer = ClosureAnalyzer(state=state, packager=packager)
	first = analyzer.shipping_order(mod.Job(1))

	exec("class Later:\n\tpass\n", mod.__dict__)
	assert not state.get_packaging_state("cd_session_grown").has_fresh_content

	order = analyzer.shipping_order(mod.Later())
	assert packager.packaged == ["cd_session_grown", "cd_session_grown"]
	assert len(order) == 1
	assert order[0].index == 2
	assert order != first


def test_remap_without_packager_requires_packaged_unit(monkeypatch) -> None:
	mod = make_live_module("cd_session_unpackaged", SESSION_SOURCE)
	monkeypatch.setitem(sys.modules, mod.__name__, mod)
	analyzer = ClosureAnalyzer(state=InMemoryCompilerState())
	with pytest.raises(UnpackagedUnitError, match="cd_session_unpackaged"):
		analyzer.shipping_order(mod.Job(1))


def test_packaging_operations_need_state() -> None:
	with pytest.raises(ValueError, match="compiler state"):
		ClosureAnalyzer().remap_dependencies([])


def test_from_files(tmp_path: Path) -> None:
	config_path = tmp_path / "closuredeps.json"
	config_path.write_text(
		json.dumps({"format": "closuredeps-config", "version": 0, "max_classify_depth": 80}),
		encoding="utf-8",
	)
	trust_path = tmp_path / "trust.json"
	trust_path.write_text(
		json.dumps({"format": "closuredeps-trust", "version": 0, "keys": {}, "namespaces": {}}),
		encoding="utf-8",
	)
	analyzer = ClosureAnalyzer.from_files(config_path, trust_store_path=trust_path)
	assert analyzer.config.max_classify_depth == 80
	assert analyzer.compute_type_closure(Record("x")) == {Record, object}
