# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ignored-unit policy.

Units the receiver is guaranteed to already have (the interpreter's standard
library and this package's own modules) are never shipped. They are
recognized by signing identity: either an identity assigned by the host
adapter (`python:stdlib`, `closuredeps:self`) or the key id of a valid
Ed25519 signature over the unit's identity.

Trust store format (pinned for v0, JSON):
{
  "format": "closuredeps-trust",
  "version": 0,
  "keys": {
    "<kid>": { "algo": "ed25519", "pubkey": "<base64 raw bytes>" }
  },
  "namespaces": {
    "acme.*": ["<kid>", "..."]
  },
  "revoked": ["<kid>", ...] // optional
}

Keys listed under a namespace are trusted only for units whose name matches
that namespace; `"*"` matches every unit.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from closuredeps.core.config import DEFAULT_TRUSTED_IDENTITIES
from closuredeps.core.errors import ConfigError
from closuredeps.units.protocols import CodeUnit


def _b64_encode(data: bytes) -> str:
	return base64.b64encode(data).decode("ascii")


def _b64_decode(text: str) -> bytes:
	# Standard base64 with padding; reject whitespace-only surprises.
	return base64.b64decode(text.encode("ascii"), validate=True)


def compute_ed25519_kid(pubkey_raw: bytes) -> str:
	"""
	Compute key id (kid) for an Ed25519 public key.

	Pinned scheme:
	  kid = "ed25519:" + base64(sha256(pubkey_raw))
	"""
	return "ed25519:" + _b64_encode(hashlib.sha256(pubkey_raw).digest())


@dataclass(frozen=True)
class UnitSignature:
	"""Ed25519 signature over `CodeUnitId.signing_payload()`."""

	pubkey_raw: bytes
	sig_raw: bytes
	algo: str = "ed25519"

	@property
	def kid(self) -> str:
		return compute_ed25519_kid(self.pubkey_raw)


def verified_signer(unit: CodeUnit, pubkey_raw: bytes | None = None) -> Optional[str]:
	"""
	Return the signer kid when `unit` carries a valid signature, else None.

	The signature is checked against `pubkey_raw` when given, otherwise
	against the public key the unit carries.
	"""
	sig = unit.signature
	if sig is None or sig.algo != "ed25519":
		return None
	key = sig.pubkey_raw if pubkey_raw is None else pubkey_raw
	if len(key) != 32:
		return None
	try:
		Ed25519PublicKey.from_public_bytes(key).verify(sig.sig_raw, unit.unit_id.signing_payload())
	except InvalidSignature:
		return None
	return compute_ed25519_kid(key)


@dataclass(frozen=True)
class TrustStore:
	"""
	Resolved trust store.

	- `keys_by_kid` provides the public keys signatures are verified against.
	- `allowed_kids_by_namespace` pins which keys vouch for which unit names.
	- `revoked_kids` is a local revocation set.
	"""

	keys_by_kid: dict[str, bytes] = field(default_factory=dict)
	allowed_kids_by_namespace: dict[str, set[str]] = field(default_factory=dict)
	revoked_kids: set[str] = field(default_factory=set)

	def allowed_kids_for_unit(self, unit_name: str) -> set[str]:
		"""
		Return the signer key ids trusted for a unit name.

		Namespace matching rules:
		- exact match: "acme.crypto" matches unit "acme.crypto"
		- prefix match: "acme.*" matches unit names starting with "acme."
		- "*" matches everything, with the lowest precedence
		- choose the most specific (longest) matching namespace key(s)
		"""
		best_len = -1
		out: set[str] = set()
		for ns, kids in self.allowed_kids_by_namespace.items():
			if ns == "*":
				l = 0
			elif ns.endswith(".*"):
				pfx = ns[:-2]
				if unit_name == pfx or unit_name.startswith(pfx + "."):
					l = len(pfx)
				else:
					continue
			else:
				if unit_name != ns:
					continue
				l = len(ns)
			if l > best_len:
				best_len = l
				out = set(kids)
			elif l == best_len:
				out |= set(kids)
		return out - self.revoked_kids

	def trusted_signer(self, unit: CodeUnit) -> Optional[str]:
		"""
		Kid of a store key that signed `unit` and is allowed for its name.

		Only public keys recorded in `keys_by_kid` are used for verification;
		a key the unit carries but the store does not list is not trusted.
		"""
		sig = unit.signature
		if sig is None:
			return None
		pub_raw = self.keys_by_kid.get(sig.kid)
		if pub_raw is None:
			return None
		kid = verified_signer(unit, pub_raw)
		if kid is None or kid not in self.allowed_kids_for_unit(unit.name):
			return None
		return kid


def trust_store_from_obj(obj: Any, *, path: Path | None = None) -> TrustStore:
	def _err(msg: str) -> ConfigError:
		return ConfigError(message=msg, path=str(path) if path is not None else None)

	if not isinstance(obj, dict):
		raise _err("trust store must be a JSON object")
	if obj.get("format") != "closuredeps-trust" or obj.get("version") != 0:
		raise _err("unsupported trust store format/version")

	keys_by_kid: dict[str, bytes] = {}
	keys_obj = obj.get("keys") or {}
	if not isinstance(keys_obj, dict):
		raise _err("trust store keys must be a JSON object")
	for kid, kobj in keys_obj.items():
		if not isinstance(kobj, dict) or kobj.get("algo") != "ed25519":
			continue
		pub_b64 = kobj.get("pubkey")
		if not isinstance(pub_b64, str):
			raise _err(f"key '{kid}' is missing its pubkey")
		try:
			pub_raw = _b64_decode(pub_b64)
		except ValueError as err:
			raise _err(f"key '{kid}' pubkey is not valid base64") from err
		if len(pub_raw) != 32:
			raise _err("ed25519 pubkey must be 32 bytes")
		if compute_ed25519_kid(pub_raw) != kid:
			raise _err(f"key id '{kid}' does not match its pubkey")
		keys_by_kid[kid] = pub_raw

	ns_obj = obj.get("namespaces") or {}
	if not isinstance(ns_obj, dict):
		raise _err("trust store namespaces must be a JSON object")
	allowed: dict[str, set[str]] = {}
	for ns, kids in ns_obj.items():
		if not isinstance(kids, list):
			raise _err(f"namespace '{ns}' must map to a list of key ids")
		allowed[ns] = {k for k in kids if isinstance(k, str)}

	revoked_obj = obj.get("revoked") or []
	if not isinstance(revoked_obj, list):
		raise _err("trust store revoked must be a list")
	revoked = {k for k in revoked_obj if isinstance(k, str)}

	return TrustStore(keys_by_kid=keys_by_kid, allowed_kids_by_namespace=allowed, revoked_kids=revoked)


def load_trust_store_json(path: Path) -> TrustStore:
	try:
		obj = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise ConfigError(message=f"trust store is not valid JSON: {err.msg}", path=str(path)) from err
	return trust_store_from_obj(obj, path=path)


class TrustPolicy:
	"""
	Decides which units are ignored during resolution.

	A unit is ignored when its identity (a verified signer kid, else the
	host-assigned identity) is one of `trusted_identities`, or when it is
	validly signed by a store key allowed for the unit's name.
	"""

	def __init__(self, trusted_identities: Iterable[str] = DEFAULT_TRUSTED_IDENTITIES, store: TrustStore | None = None) -> None:
		self.trusted_identities = frozenset(trusted_identities)
		self.store = store or TrustStore()

	def identity_of(self, unit: CodeUnit) -> Optional[str]:
		signer = verified_signer(unit)
		if signer is not None:
			return signer
		return unit.signing_identity

	def is_ignored(self, unit: CodeUnit) -> bool:
		ident = self.identity_of(unit)
		if ident is not None and ident in self.trusted_identities:
			return True
		return self.store.trusted_signer(unit) is not None

	__call__ = is_ignored


__all__ = [
	"UnitSignature",
	"TrustStore",
	"TrustPolicy",
	"compute_ed25519_kid",
	"verified_signer",
	"trust_store_from_obj",
	"load_trust_store_json",
]
