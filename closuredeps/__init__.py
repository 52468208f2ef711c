# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
closuredeps: compute what a remote node needs before it can rebuild a live
object.

Two analyses make up the package:
- core/analysis: sealedness classification of types and the object graph
  walk that collects the named types an object needs,
- units: resolution of the code units (modules and packaged increments) that
  own those types, in dependency-first order.

Entry point: `closuredeps.api.ClosureAnalyzer`.
"""

__all__ = ["analysis", "api", "core", "units"]
