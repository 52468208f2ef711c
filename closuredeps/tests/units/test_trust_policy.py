# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import base64
import json
from dataclasses import replace
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from closuredeps.core.config import SELF_IDENTITY, STDLIB_IDENTITY
from closuredeps.core.errors import ConfigError
from closuredeps.test_support import FakeUnit
from closuredeps.units.trust import (
	TrustPolicy,
	TrustStore,
	UnitSignature,
	compute_ed25519_kid,
	load_trust_store_json,
	verified_signer,
)


def _public_key_bytes(pub) -> bytes:
	if hasattr(pub, "public_bytes_raw"):
		return pub.public_bytes_raw()
	return pub.public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)


def _signed(unit: FakeUnit, priv: Ed25519PrivateKey) -> FakeUnit:
	pub = _public_key_bytes(priv.public_key())
	sig = priv.sign(unit.unit_id.signing_payload())
	return replace(unit, signature=UnitSignature(pubkey_raw=pub, sig_raw=sig))


def _write_store(path: Path, pub: bytes, namespaces: dict, revoked: list | None = None) -> Path:
	kid = compute_ed25519_kid(pub)
	obj = {
		"format": "closuredeps-trust",
		"version": 0,
		"keys": {kid: {"algo": "ed25519", "pubkey": base64.b64encode(pub).decode("ascii")}},
		"namespaces": namespaces,
	}
	if revoked is not None:
		obj["revoked"] = revoked
	path.write_text(json.dumps(obj), encoding="utf-8")
	return path


def test_host_identities_are_ignored() -> None:
	policy = TrustPolicy()
	assert policy.is_ignored(FakeUnit("json", signing_identity=STDLIB_IDENTITY))
	assert policy.is_ignored(FakeUnit("closuredeps.api", signing_identity=SELF_IDENTITY))
	assert not policy.is_ignored(FakeUnit("app"))
	assert not policy.is_ignored(FakeUnit("app", signing_identity="acme:runtime"))
	assert TrustPolicy({"acme:runtime"}).is_ignored(FakeUnit("app", signing_identity="acme:runtime"))


def test_valid_signature_identifies_signer() -> None:
	priv = Ed25519PrivateKey.generate()
	unit = _signed(FakeUnit("acme.util", fingerprint="sha256:11"), priv)
	assert verified_signer(unit) == unit.signature.kid

	# The signature covers the content fingerprint.
	tampered = replace(unit, fingerprint="sha256:22")
	assert verified_signer(tampered) is None


def test_signed_units_ignored_within_their_namespace(tmp_path: Path) -> None:
	priv = Ed25519PrivateKey.generate()
	pub = _public_key_bytes(priv.public_key())
	kid = compute_ed25519_kid(pub)
	store = load_trust_store_json(_write_store(tmp_path / "trust.json", pub, {"acme.*": [kid]}))
	policy = TrustPolicy(store=store)

	assert policy.is_ignored(_signed(FakeUnit("acme.util"), priv))
	assert policy.is_ignored(_signed(FakeUnit("acme"), priv))
	assert not policy.is_ignored(_signed(FakeUnit("other.util"), priv))
	assert not policy.is_ignored(_signed(FakeUnit("acmex"), priv))


def test_revoked_key_is_not_trusted(tmp_path: Path) -> None:
	priv = Ed25519PrivateKey.generate()
	pub = _public_key_bytes(priv.public_key())
	kid = compute_ed25519_kid(pub)
	store = load_trust_store_json(_write_store(tmp_path / "trust.json", pub, {"*": [kid]}, revoked=[kid]))
	assert not TrustPolicy(store=store).is_ignored(_signed(FakeUnit("anything"), priv))


def test_signer_key_must_be_listed_in_store() -> None:
	priv = Ed25519PrivateKey.generate()
	pub = _public_key_bytes(priv.public_key())
	kid = compute_ed25519_kid(pub)
	unit = _signed(FakeUnit("acme.util"), priv)

	unlisted = TrustStore(allowed_kids_by_namespace={"*": {kid}})
	assert unlisted.trusted_signer(unit) is None
	assert not TrustPolicy(store=unlisted).is_ignored(unit)

	listed = TrustStore(keys_by_kid={kid: pub}, allowed_kids_by_namespace={"*": {kid}})
	assert listed.trusted_signer(unit) == kid
	assert TrustPolicy(store=listed).is_ignored(unit)


def test_most_specific_namespace_wins() -> None:
	store = TrustStore(
		allowed_kids_by_namespace={
			"*": {"k-any"},
			"acme.*": {"k-acme"},
			"acme.crypto": {"k-crypto"},
		},
	)
	assert store.allowed_kids_for_unit("acme.crypto") == {"k-crypto"}
	assert store.allowed_kids_for_unit("acme.util") == {"k-acme"}
	assert store.allowed_kids_for_unit("other") == {"k-any"}


def test_kid_must_match_pubkey(tmp_path: Path) -> None:
	pub = _public_key_bytes(Ed25519PrivateKey.generate().public_key())
	path = tmp_path / "trust.json"
	path.write_text(
		json.dumps(
			{
				"format": "closuredeps-trust",
				"version": 0,
				"keys": {"ed25519:bogus": {"algo": "ed25519", "pubkey": base64.b64encode(pub).decode("ascii")}},
			}
		),
		encoding="utf-8",
	)
	with pytest.raises(ConfigError, match="does not match"):
		load_trust_store_json(path)


def test_trust_store_format_is_pinned(tmp_path: Path) -> None:
	path = tmp_path / "trust.json"
	path.write_text(json.dumps({"format": "other-trust", "version": 0}), encoding="utf-8")
	with pytest.raises(ConfigError, match="format/version") as excinfo:
		load_trust_store_json(path)
	assert excinfo.value.path == str(path)
