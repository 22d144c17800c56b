# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow ledger: every borrow ever taken in one verification run.

Liveness is non-lexical. A borrow starts at the operation that creates it
and stays open (tentatively live) until the engine finalizes it, which happens
right after its provably-last use. Once finalized its interval [start, end] is
fixed and it is only live at indices inside that interval.

The exclusion rule is checked eagerly in `create_borrow`:
  * an exclusive borrow conflicts with any borrow of the same variable live
	at the creation index;
  * a shared borrow conflicts only with a live exclusive one;
  * a reborrow is nested in its parent loan and never conflicts with it.
	 The engine instead refuses uses of the parent reference while an
	 exclusive reborrow is live.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from owncheck.core.errors import ErrorKind, OwnershipViolation
from owncheck.ops import BorrowKind

BorrowId = int


@dataclass
class Borrow:
	id: BorrowId
	kind: BorrowKind
	var: int
	start: int
	last_use: int
	end: Optional[int] = None
	# Scope-close index of the borrowed variable, once its scope has closed.
	bound: Optional[int] = None
	label: Optional[str] = None
	# Borrow this one was reborrowed from (`let m2 = &mut m;`).
	parent: Optional[BorrowId] = None

	@property
	def finalized(self) -> bool:
		return self.end is not None

	def live_at(self, at: int) -> bool:
		if at < self.start:
			return False
		return self.end is None or at <= self.end

	def describe(self) -> str:
		sigil = "&" if self.kind is BorrowKind.SHARED else "&mut"
		name = f" `{self.label}`" if self.label else ""
		return f"borrow #{self.id}{name} ({sigil}, created at op {self.start}, last used at op {self.last_use})"


@dataclass
class BorrowLedger:
	borrows: List[Borrow] = field(default_factory=list)
	_by_var: Dict[int, List[BorrowId]] = field(default_factory=dict, repr=False)

	def get(self, borrow_id: BorrowId) -> Borrow:
		return self.borrows[borrow_id]

	def create_borrow(
		self,
		var: int,
		kind: BorrowKind,
		at: int,
		*,
		label: Optional[str] = None,
		var_name: Optional[str] = None,
		parent: Optional[BorrowId] = None,
	) -> BorrowId:
		conflict = self._first_conflict(var, kind, at, parent)
		if conflict is not None:
			name = var_name or f"#{var}"
			if kind is BorrowKind.EXCLUSIVE:
				message = f"cannot borrow `{name}` exclusively because it is already borrowed"
			else:
				message = f"cannot borrow `{name}` as shared because it is exclusively borrowed"
			raise OwnershipViolation(
				ErrorKind.CONFLICTING_BORROW,
				message,
				variable=var_name,
				borrow_id=conflict.id,
				notes=[f"conflicts with {conflict.describe()}"],
			)
		borrow = Borrow(id=len(self.borrows), kind=kind, var=var, start=at, last_use=at, label=label, parent=parent)
		self.borrows.append(borrow)
		self._by_var.setdefault(var, []).append(borrow.id)
		return borrow.id

	def _first_conflict(self, var: int, kind: BorrowKind, at: int, parent: Optional[BorrowId] = None) -> Optional[Borrow]:
		# A reborrow never conflicts with the loans it is nested in.
		nested_in = self._ancestors(parent)
		for borrow in self.live_borrows(var, at):
			if borrow.id in nested_in:
				continue
			if kind is BorrowKind.EXCLUSIVE or borrow.kind is BorrowKind.EXCLUSIVE:
				return borrow
		return None

	def _ancestors(self, borrow_id: Optional[BorrowId]) -> Set[BorrowId]:
		out: Set[BorrowId] = set()
		while borrow_id is not None:
			out.add(borrow_id)
			borrow_id = self.borrows[borrow_id].parent
		return out

	def record_use(self, borrow_id: BorrowId, at: int, *, var_name: Optional[str] = None) -> None:
		"""Extend the last-use watermark of `borrow_id` to `at`."""
		borrow = self.get(borrow_id)
		if borrow.bound is not None and at > borrow.bound:
			name = var_name or f"#{borrow.var}"
			raise OwnershipViolation(
				ErrorKind.BORROW_OUTLIVES_OWNER,
				f"`{name}` does not live long enough",
				variable=var_name,
				borrow_id=borrow.id,
				notes=[
					f"{borrow.describe()} is used here",
					f"`{name}` went out of scope at op {borrow.bound}",
				],
			)
		if borrow.finalized or at < borrow.last_use:
			raise OwnershipViolation(
				ErrorKind.STALE_USE,
				f"use of borrow #{borrow.id} out of order",
				variable=var_name,
				borrow_id=borrow.id,
				notes=[borrow.describe() + (" was already finalized" if borrow.finalized else "")],
			)
		borrow.last_use = at

	def finalize(self, borrow_id: BorrowId) -> Borrow:
		borrow = self.get(borrow_id)
		if borrow.finalized:
			raise AssertionError(f"borrow #{borrow_id} finalized twice (engine bug)")
		borrow.end = borrow.last_use
		return borrow

	def bound_by_scope(self, var: int, at: int) -> None:
		"""The borrowed variable's scope closed at `at`; no use of its borrows may follow."""
		for borrow_id in self._by_var.get(var, []):
			self.borrows[borrow_id].bound = at

	def borrows_of(self, var: int) -> List[Borrow]:
		return [self.borrows[b] for b in self._by_var.get(var, [])]

	def live_borrows(self, var: int, at: int) -> List[Borrow]:
		return [b for b in self.borrows_of(var) if b.live_at(at)]

	def open_borrows(self, var: int) -> List[Borrow]:
		return [b for b in self.borrows_of(var) if not b.finalized]

	def live_reborrows(self, borrow_id: BorrowId, at: int) -> List[Borrow]:
		"""Borrows taken through `borrow_id` that are still live at `at`."""
		return [b for b in self.borrows_of(self.get(borrow_id).var) if b.parent == borrow_id and b.live_at(at)]


__all__ = ["Borrow", "BorrowId", "BorrowLedger"]
