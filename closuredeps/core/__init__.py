# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Core of the sealedness analysis: the shape arena, runtime type introspection,
the classifier, configuration and the error types shared by every layer.
"""

__all__ = ["classify", "config", "errors", "fields", "shapes"]
