# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured errors raised by closure and dependency resolution.

Every error is fatal to the current request: a resolution pass either fully
succeeds or raises one of these. `reason_code` is stable so embedders can
branch on it without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ClosureError(Exception):
	"""Base class for all closuredeps failures."""

	reason_code: str
	message: str
	unit_name: str | None = None
	type_name: str | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"unit_name": self.unit_name,
			"type_name": self.type_name,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.unit_name:
			parts.append(f"unit={self.unit_name}")
		if self.type_name:
			parts.append(f"type={self.type_name}")
		return " ".join(parts)


@dataclass(frozen=True)
class DuplicateUnitError(ClosureError):
	"""Two or more distinct resolved code units share a fully-qualified name."""

	reason_code: str = "duplicate-unit-name"
	message: str = "duplicate code units"


@dataclass(frozen=True)
class UnpackagedUnitError(ClosureError):
	"""A remap was requested for a live unit that was never packaged."""

	reason_code: str = "unpackaged-unit"
	message: str = "no increments have been created for unit"


@dataclass(frozen=True)
class UnownedTypeError(ClosureError):
	"""A concrete type maps to no increment, or to every increment."""

	reason_code: str = "unowned-type"
	message: str = "no increment owns type"


@dataclass(frozen=True)
class StackExhaustionError(ClosureError):
	"""
	Type classification ran out of execution headroom.

	Distinct from other failures so callers can tell "graph too deep" apart
	from "bad data".
	"""

	reason_code: str = "stack-exhausted"
	message: str = "type graph too deep to classify"
	depth: int = 0


@dataclass(frozen=True)
class ConfigError(ClosureError, ValueError):
	"""Malformed configuration or trust store document."""

	reason_code: str = "invalid-config"
	message: str = "invalid configuration"
	path: str | None = None


def duplicate_unit(name: str) -> DuplicateUnitError:
	return DuplicateUnitError(
		message=f"ran into duplicate code units of qualified name '{name}'; this is not supported",
		unit_name=name,
	)


__all__ = [
	"ClosureError",
	"DuplicateUnitError",
	"UnpackagedUnitError",
	"UnownedTypeError",
	"StackExhaustionError",
	"ConfigError",
	"duplicate_unit",
]
