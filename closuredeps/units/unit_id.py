# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stable code-unit identity.

Graph membership is structural: two handles for the same unit (same name,
same content fingerprint) are the same graph node, while two units sharing a
name but differing in content are distinct nodes (and a duplicate-name error
downstream).
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass


def sha256_hex(data: bytes) -> str:
	"""Return sha256 hex digest for `data`."""
	return hashlib.sha256(data).hexdigest()


def content_fingerprint(data: bytes) -> str:
	return "sha256:" + sha256_hex(data)


@dataclass(frozen=True, order=True)
class CodeUnitId:
	name: str
	fingerprint: str

	def __str__(self) -> str:
		return f"{self.name}@{self.fingerprint}"

	def signing_payload(self) -> bytes:
		"""Bytes covered by a unit signature."""
		return f"{self.name}\n{self.fingerprint}".encode("utf-8")


__all__ = ["CodeUnitId", "content_fingerprint", "sha256_hex"]
