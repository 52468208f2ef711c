# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Analysis configuration (v0).

Configuration is a small frozen record. It can be built directly in code or
loaded from a JSON document with a pinned format:

{
  "format": "closuredeps-config",
  "version": 0,
  "max_classify_depth": 400,        // optional
  "pickle_protocol": 5,             // optional
  "follow_live_globals": true,      // optional
  "load_missing_units": true,       // optional
  "trusted_identities": ["..."]     // optional, extends the defaults
}
"""

from __future__ import annotations

import json
import pickle
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from closuredeps.core.errors import ConfigError

STDLIB_IDENTITY = "python:stdlib"
SELF_IDENTITY = "closuredeps:self"

DEFAULT_TRUSTED_IDENTITIES: frozenset[str] = frozenset({STDLIB_IDENTITY, SELF_IDENTITY})


def default_max_classify_depth() -> int:
	# Each nested classification costs a handful of Python frames.
	return max(50, sys.getrecursionlimit() // 4)


@dataclass(frozen=True)
class AnalysisConfig:
	max_classify_depth: int = field(default_factory=default_max_classify_depth)
	pickle_protocol: int = pickle.DEFAULT_PROTOCOL
	follow_live_globals: bool = True
	load_missing_units: bool = True
	trusted_identities: frozenset[str] = DEFAULT_TRUSTED_IDENTITIES


def _err(msg: str, path: Path | None) -> ConfigError:
	return ConfigError(message=msg, path=str(path) if path is not None else None)


def analysis_config_from_obj(obj: Any, *, path: Path | None = None) -> AnalysisConfig:
	"""Validate a decoded config document and build an `AnalysisConfig`."""
	if not isinstance(obj, dict):
		raise _err("config must be a JSON object", path)
	if obj.get("format") != "closuredeps-config" or obj.get("version") != 0:
		raise _err("unsupported config format/version", path)

	kwargs: dict[str, Any] = {}
	depth = obj.get("max_classify_depth")
	if depth is not None:
		if not isinstance(depth, int) or isinstance(depth, bool) or depth <= 0:
			raise _err("max_classify_depth must be a positive integer", path)
		kwargs["max_classify_depth"] = depth
	protocol = obj.get("pickle_protocol")
	if protocol is not None:
		if not isinstance(protocol, int) or isinstance(protocol, bool) or not 0 <= protocol <= pickle.HIGHEST_PROTOCOL:
			raise _err(f"pickle_protocol must be between 0 and {pickle.HIGHEST_PROTOCOL}", path)
		kwargs["pickle_protocol"] = protocol
	for flag in ("follow_live_globals", "load_missing_units"):
		value = obj.get(flag)
		if value is None:
			continue
		if not isinstance(value, bool):
			raise _err(f"{flag} must be a boolean", path)
		kwargs[flag] = value
	idents = obj.get("trusted_identities")
	if idents is not None:
		if not isinstance(idents, list) or not all(isinstance(i, str) and i for i in idents):
			raise _err("trusted_identities must be a list of non-empty strings", path)
		kwargs["trusted_identities"] = DEFAULT_TRUSTED_IDENTITIES | frozenset(idents)
	return AnalysisConfig(**kwargs)


def load_analysis_config_json(path: Path) -> AnalysisConfig:
	"""Load an `AnalysisConfig` from a JSON file."""
	try:
		obj = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise _err(f"config is not valid JSON: {err.msg}", path) from err
	return analysis_config_from_obj(obj, path=path)


__all__ = [
	"STDLIB_IDENTITY",
	"SELF_IDENTITY",
	"DEFAULT_TRUSTED_IDENTITIES",
	"AnalysisConfig",
	"analysis_config_from_obj",
	"load_analysis_config_json",
	"default_max_classify_depth",
]
