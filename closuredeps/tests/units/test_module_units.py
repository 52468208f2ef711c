# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import collections
import json
import sys

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

import closuredeps.api
from closuredeps.core.config import SELF_IDENTITY, STDLIB_IDENTITY
from closuredeps.test_support import make_live_module
from closuredeps.units.module_unit import IncrementUnit, ModuleUnit, unit_for_type
from closuredeps.units.packaging_state import InMemoryCompilerState
from closuredeps.units.resolver import ModuleResolver
from closuredeps.units.trust import TrustPolicy, TrustStore, UnitSignature, compute_ed25519_kid

LIVE_SOURCE = """
import json
from collections import OrderedDict

class Local:
	pass

class Other:
	pass
"""


def _never_ignored(unit) -> bool:
	return False


def test_file_backed_stdlib_module() -> None:
	unit = ModuleUnit(json)
	assert not unit.is_live
	assert unit.signing_identity == STDLIB_IDENTITY
	assert unit.unit_id.fingerprint.startswith("sha256:")
	assert unit == ModuleUnit(json)
	assert hash(unit) == hash(ModuleUnit(json))


def test_builtin_module_fingerprint() -> None:
	unit = ModuleUnit(sys)
	assert not unit.is_live
	assert unit.unit_id.fingerprint.startswith("builtin:")
	assert unit.signing_identity == STDLIB_IDENTITY


def test_own_modules_carry_self_identity() -> None:
	assert ModuleUnit(closuredeps.api).signing_identity == SELF_IDENTITY
	assert ModuleUnit(pytest).signing_identity is None


def test_live_module_unit() -> None:
	mod = make_live_module("cd_units_live", LIVE_SOURCE)
	unit = ModuleUnit(mod)
	assert unit.is_live
	assert unit.unit_id.fingerprint.startswith("live:")
	assert unit.references() == ["collections", "json"]
	assert unit.representative_type() is mod.Local
	assert unit.signing_identity is None


def test_unit_for_missing_module_is_an_empty_live_module() -> None:
	unit = ModuleUnit.for_name("cd_units_never_loaded")
	assert unit.name == "cd_units_never_loaded"
	assert unit.is_live
	assert unit.references() == []


def test_unit_for_type() -> None:
	assert unit_for_type(collections.OrderedDict).name == "collections"


def test_increment_units_are_never_live() -> None:
	inc = IncrementUnit(name="s#1", parent_name="s", index=1, fingerprint="sha256:ab", refs=("json",))
	assert not inc.is_live
	assert inc.unit_id.name == "s#1"
	assert inc.references() == ["json"]


def test_resolver_filters_ignored_units() -> None:
	resolver = ModuleResolver(TrustPolicy())
	assert resolver.resolve("json") is None
	assert resolver.resolve("pytest") == ModuleUnit(pytest)
	assert resolver.resolve("cd_units_no_such_module") is None


def test_resolver_finds_increments_in_state() -> None:
	state = InMemoryCompilerState()
	inc = IncrementUnit(name="cd_units_session#1", parent_name="cd_units_session", index=1, fingerprint="sha256:cd")
	state.record_increment("cd_units_session", inc, [])
	assert ModuleResolver(_never_ignored, state=state).resolve("cd_units_session#1") == inc


def test_resolver_without_loading(monkeypatch) -> None:
	mod = make_live_module("cd_units_loaded")
	monkeypatch.setitem(sys.modules, mod.__name__, mod)
	resolver = ModuleResolver(_never_ignored, load_missing=False)
	assert resolver("cd_units_loaded") == ModuleUnit(mod)
	assert resolver("cd_units_no_such_module") is None


def test_resolver_attaches_module_signatures() -> None:
	priv = Ed25519PrivateKey.generate()
	pub = priv.public_key().public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)
	kid = compute_ed25519_kid(pub)
	sig = UnitSignature(pubkey_raw=pub, sig_raw=priv.sign(ModuleUnit(pytest).unit_id.signing_payload()))
	store = TrustStore(keys_by_kid={kid: pub}, allowed_kids_by_namespace={"pytest": {kid}})

	assert ModuleResolver(TrustPolicy(store=store)).resolve("pytest") == ModuleUnit(pytest)
	signed = ModuleResolver(TrustPolicy(store=store), signatures={"pytest": sig})
	assert signed.resolve("pytest") is None
	assert ModuleUnit(pytest, sig).signature is sig
