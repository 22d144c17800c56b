# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lifetime solver: resolve a lifetime group to one interval.

A struct with a single lifetime parameter `'a` shared by several reference
fields forces all those borrows into one group; a struct with independent
parameters (`'a`, `'b`) yields one group per parameter and so relaxes the
constraint. The solver is a pure interval computation over the ledger:

  member interval = [start, min(finalized end, owner scope-close bound)]
  group interval  = intersection of member intervals

The group is rejected when two members borrow variables whose declaring scopes
are not nested in one another, or when the intersection is empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from owncheck.borrow_ledger import Borrow, BorrowId, BorrowLedger
from owncheck.core.errors import ErrorKind, OwnershipViolation
from owncheck.scope_tree import ScopeTree
from owncheck.value_table import ValueTable


@dataclass(frozen=True)
class Interval:
	"""Closed op-index interval; `end=None` is not yet bounded."""

	start: int
	end: Optional[int] = None

	@property
	def empty(self) -> bool:
		return self.end is not None and self.end < self.start

	def intersect(self, other: "Interval") -> "Interval":
		start = max(self.start, other.start)
		if self.end is None:
			end = other.end
		elif other.end is None:
			end = self.end
		else:
			end = min(self.end, other.end)
		return Interval(start, end)

	def __str__(self) -> str:
		return f"[{self.start}, {'..' if self.end is None else self.end}]"


@dataclass(frozen=True)
class LifetimeGroup:
	param: str
	members: Tuple[BorrowId, ...]


@dataclass
class LifetimeSolver:
	ledger: BorrowLedger
	values: ValueTable
	scopes: ScopeTree

	def member_interval(self, borrow: Borrow) -> Interval:
		ends = [e for e in (borrow.end, borrow.bound) if e is not None]
		return Interval(borrow.start, min(ends) if ends else None)

	def unify(self, group: LifetimeGroup) -> Interval:
		if not group.members:
			raise ValueError(f"lifetime group '{group.param} has no members")
		borrows = [self.ledger.get(b) for b in group.members]
		self._check_ancestry(group, borrows)
		result = self.member_interval(borrows[0])
		for borrow in borrows[1:]:
			result = result.intersect(self.member_interval(borrow))
		if result.empty:
			names = ", ".join(f"`{self.values.get(b.var).name}` {self.member_interval(b)}" for b in borrows)
			raise OwnershipViolation(
				ErrorKind.LIFETIME_CONFLICT,
				f"borrows sharing lifetime '{group.param} have no common extent",
				variable=self.values.get(borrows[-1].var).name,
				borrow_id=borrows[-1].id,
				notes=[f"member extents: {names}"],
			)
		return result

	def _check_ancestry(self, group: LifetimeGroup, borrows: list[Borrow]) -> None:
		for i, a in enumerate(borrows):
			for b in borrows[i + 1:]:
				if a.var == b.var:
					continue
				var_a = self.values.get(a.var)
				var_b = self.values.get(b.var)
				if self.scopes.related(var_a.scope, var_b.scope):
					continue
				common = self.scopes.common_ancestor(var_a.scope, var_b.scope)
				raise OwnershipViolation(
					ErrorKind.LIFETIME_CONFLICT,
					f"`{var_a.name}` and `{var_b.name}` cannot share lifetime '{group.param}",
					variable=var_b.name,
					borrow_id=b.id,
					notes=[
						f"`{var_a.name}` lives in scope {var_a.scope}, `{var_b.name}` in scope {var_b.scope}",
						f"their only common enclosing scope is {common}",
					],
				)


__all__ = ["Interval", "LifetimeGroup", "LifetimeSolver"]
