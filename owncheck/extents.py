# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Extent analysis: when may each borrow be finalized?

The engine walks operations strictly forward, but the exclusion rule needs to
know whether a borrow created earlier is still going to be used. This pass
resolves names the same way the engine does and records, for every borrow
creation site, the index of the last operation that reaches that borrow
(directly through its reference, or through an aggregate that stores it).

Borrows are keyed by creation site: `(op index, slot)`, where `slot`
distinguishes the two borrows a Swap creates.

The map also keeps every index that reaches a borrow, so a scope close can
name the use that would outlive the owner, and marks the uses that store a
borrow into a Pack field whose lifetime parameter is shared with another
field (those are settled by lifetime unification at the Pack).

With `nll=False` a named borrow additionally stays live until the end of the
scope that binds its reference (index of the matching ScopeEnd, or one past
the last operation for the root scope).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from owncheck import ops as O

BorrowKey = Tuple[int, int]


@dataclass
class _Slot:
	keys: FrozenSet[BorrowKey]
	frame: int


@dataclass
class ExtentMap:
	last_use: Dict[BorrowKey, int] = field(default_factory=dict)
	# Every index that reaches a borrow, in stream order.
	uses: Dict[BorrowKey, List[int]] = field(default_factory=dict)
	# (key, index) pairs where the borrow joins a multi-member lifetime group.
	group_stores: Set[Tuple[BorrowKey, int]] = field(default_factory=set)

	def end_for(self, key: BorrowKey) -> int:
		"""Index after which the borrow created at `key` is never used again."""
		return self.last_use.get(key, key[0])

	def next_use(self, key: BorrowKey, after: int) -> Optional[int]:
		return next((i for i in self.uses.get(key, ()) if i > after), None)

	def stored_in_group(self, key: BorrowKey, at: int) -> bool:
		return (key, at) in self.group_stores


def compute_extents(operations: Sequence[O.Operation], *, nll: bool = True) -> ExtentMap:
	frames: List[Dict[str, _Slot]] = [{}]
	bound_in_frame: List[List[BorrowKey]] = [[]]
	last_use: Dict[BorrowKey, int] = {}
	lexical_end: Dict[BorrowKey, int] = {}
	uses: Dict[BorrowKey, List[int]] = {}
	group_stores: Set[Tuple[BorrowKey, int]] = set()

	def lookup(name: str) -> Optional[_Slot]:
		for frame in reversed(frames):
			slot = frame.get(name)
			if slot is not None:
				return slot
		return None

	def touch(name: str, index: int) -> FrozenSet[BorrowKey]:
		slot = lookup(name)
		if slot is None:
			return frozenset()
		for key in slot.keys:
			last_use[key] = index
			uses.setdefault(key, []).append(index)
		return slot.keys

	def bind(name: str, keys: FrozenSet[BorrowKey]) -> None:
		frames[-1][name] = _Slot(keys, len(frames) - 1)

	for index, op in enumerate(operations):
		if isinstance(op, (O.Declare, O.DeclareRef)):
			bind(op.name, frozenset())
		elif isinstance(op, O.ScopeBegin):
			frames.append({})
			bound_in_frame.append([])
		elif isinstance(op, O.ScopeEnd):
			if len(frames) > 1:
				frames.pop()
				for key in bound_in_frame.pop():
					lexical_end[key] = index
		elif isinstance(op, (O.MoveUse, O.Read, O.UseRef)):
			touch(op.name, index)
		elif isinstance(op, O.BorrowUse):
			held = touch(op.target, index)
			key = (index, 0)
			last_use[key] = index
			if op.ref is None:
				continue
			keys = frozenset({key}) | held
			slot = lookup(op.ref) if op.assign else None
			if slot is not None:
				slot.keys = keys
				bound_in_frame[slot.frame].append(key)
			else:
				bind(op.ref, keys)
				bound_in_frame[-1].append(key)
		elif isinstance(op, O.Swap):
			touch(op.left, index)
			touch(op.right, index)
		elif isinstance(op, O.Pack):
			stored: FrozenSet[BorrowKey] = frozenset()
			params = [f.lifetime for f in op.fields if f.lifetime is not None]
			for f in op.fields:
				keys = touch(f.name, index)
				if f.lifetime is not None and params.count(f.lifetime) > 1:
					group_stores.update((key, index) for key in keys)
				stored |= keys
			bind(op.name, stored)

	if not nll:
		# Anything still bound when the stream ends lives past the last op.
		for frame_keys in bound_in_frame:
			for key in frame_keys:
				lexical_end[key] = len(operations)
		for key, end in lexical_end.items():
			last_use[key] = max(last_use.get(key, key[0]), end)
	return ExtentMap(last_use, uses, group_stores)


__all__ = ["BorrowKey", "ExtentMap", "compute_extents"]
