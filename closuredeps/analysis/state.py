# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Default field enumerator for custom-serializable objects.

Objects whose class takes over its own pickling (`__getstate__`,
`__reduce__`, `__reduce_ex__`) have no statically known field set. Their
fields are whatever the pickling protocol would write for that instance, so
we ask for exactly that.
"""

from __future__ import annotations

import pickle
from typing import Any, Iterator, Tuple


def _overrides_getstate(cls: type) -> bool:
	for klass in cls.__mro__:
		if klass is object:
			return False
		if "__getstate__" in vars(klass):
			return True
	return False


def _state_items(state: Any) -> Iterator[Tuple[str, Any]]:
	if state is None:
		return
	if isinstance(state, dict):
		for key, value in state.items():
			yield str(key), value
		return
	# (dict_state, slots_state) pair produced for slotted classes.
	if isinstance(state, tuple) and len(state) == 2 and all(s is None or isinstance(s, dict) for s in state):
		for part in state:
			yield from _state_items(part)
		return
	yield "state", state


def pickle_state_fields(obj: Any, protocol: int = pickle.DEFAULT_PROTOCOL) -> Iterator[Tuple[str, Any]]:
	"""
	Yield (name, value) pairs for the state `obj` would pickle.

	The reconstructor callable itself is not yielded; constructor arguments,
	state, and list/dict items are.
	"""
	if _overrides_getstate(type(obj)):
		yield from _state_items(obj.__getstate__())
		return

	rv = obj.__reduce_ex__(protocol)
	if isinstance(rv, str):
		# Reduced to a global name: nothing instance-specific to visit.
		return
	args = rv[1] if len(rv) > 1 else ()
	for i, arg in enumerate(args or ()):
		yield f"args[{i}]", arg
	if len(rv) > 2:
		yield from _state_items(rv[2])
	if len(rv) > 3 and rv[3] is not None:
		for i, item in enumerate(rv[3]):
			yield f"items[{i}]", item
	if len(rv) > 4 and rv[4] is not None:
		for key, value in rv[4]:
			yield "key", key
			yield str(key), value


class PickleStateEnumerator:
	"""`FieldEnumerator` bound to a pickle protocol."""

	def __init__(self, protocol: int = pickle.DEFAULT_PROTOCOL) -> None:
		self.protocol = protocol

	def __call__(self, obj: Any) -> Iterator[Tuple[str, Any]]:
		return pickle_state_fields(obj, self.protocol)


__all__ = ["pickle_state_fields", "PickleStateEnumerator"]
