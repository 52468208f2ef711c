# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Object graph traversal: node kinds, the default custom-state enumerator and
the walker that turns a live object into the set of types it needs.
"""

__all__ = ["nodes", "state", "walker"]
