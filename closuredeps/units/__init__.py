# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Code units: identity, the in-process module adapter, resolution, trust,
graph ordering, staleness selection and increment remapping.

Pinned model:
- a code unit is the granularity of resolution and packaging (a module),
- live units (no backing file) are packaged into immutable increments,
- trusted units (stdlib, this package, trusted signers) are never shipped.
"""

__all__ = [
	"graph",
	"module_unit",
	"packaging_state",
	"protocols",
	"remap",
	"resolver",
	"staleness",
	"trust",
	"unit_id",
]
