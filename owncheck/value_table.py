# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Value table: one record per declared variable.

The table owns Variable records and answers the move/copy questions. Borrow
state is mirrored in from the ledger (`sync_borrows`) after every operation so
`move_out` and `read` can refuse without consulting the ledger themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from owncheck.core.errors import ErrorKind, MalformedStreamError, OwnershipViolation
from owncheck.ops import Classification

VarId = int
ScopeId = int


class OwnershipState(Enum):
	OWNED = auto()
	MOVED_OUT = auto()
	BORROWED_SHARED = auto()
	BORROWED_EXCLUSIVE = auto()


@dataclass
class Variable:
	"""A `let` binding. `shared_borrows` is the n of BorrowedShared(n)."""

	id: VarId
	name: str
	classification: Classification
	scope: ScopeId
	declared_at: int
	state: OwnershipState = OwnershipState.OWNED
	shared_borrows: int = 0
	active_borrows: Tuple[int, ...] = ()
	# Borrows stored inside an aggregate value; using the value uses them.
	held_borrows: Tuple[int, ...] = ()
	moved_at: Optional[int] = None
	out_of_extent_at: Optional[int] = None

	@property
	def is_copy(self) -> bool:
		return self.classification is Classification.COPY

	@property
	def live(self) -> bool:
		"""A binding is live until it is moved out or its scope closes."""
		return self.state is not OwnershipState.MOVED_OUT and self.out_of_extent_at is None


@dataclass
class ValueTable:
	variables: List[Variable] = field(default_factory=list)
	_by_scope: Dict[ScopeId, Dict[str, VarId]] = field(default_factory=dict, repr=False)

	def declare(
		self,
		name: str,
		classification: Classification,
		scope: ScopeId,
		*,
		at: int = 0,
		held_borrows: Tuple[int, ...] = (),
		allow_shadowing: bool = False,
	) -> VarId:
		"""
		Introduce `name` in `scope`.

		DuplicateBinding when `name` is still live in the same scope. A moved-out
		binding is dead, so re-binding its name is fine; nested scopes always get
		a distinct VarId.
		"""
		names = self._by_scope.setdefault(scope, {})
		prev = names.get(name)
		if prev is not None and not allow_shadowing and self.variables[prev].live:
			raise OwnershipViolation(
				ErrorKind.DUPLICATE_BINDING,
				f"`{name}` is already bound in this scope",
				variable=name,
				notes=[f"previous binding declared at op {self.variables[prev].declared_at}"],
			)
		var = Variable(
			id=len(self.variables),
			name=name,
			classification=classification,
			scope=scope,
			declared_at=at,
			held_borrows=tuple(held_borrows),
		)
		self.variables.append(var)
		names[name] = var.id
		return var.id

	def get(self, var_id: VarId) -> Variable:
		if var_id < 0 or var_id >= len(self.variables):
			raise MalformedStreamError(f"unknown variable id {var_id}")
		return self.variables[var_id]

	def lookup_local(self, scope: ScopeId, name: str) -> Optional[VarId]:
		"""The most recent binding of `name` declared directly in `scope`."""
		return self._by_scope.get(scope, {}).get(name)

	def read(self, var_id: VarId, at: int) -> Variable:
		"""Non-consuming use of a value."""
		var = self.get(var_id)
		self._require_not_moved(var, at)
		if var.state is OwnershipState.BORROWED_EXCLUSIVE:
			raise OwnershipViolation(
				ErrorKind.CONFLICTING_BORROW,
				f"cannot use `{var.name}` because it is exclusively borrowed",
				variable=var.name,
				borrow_id=var.active_borrows[0] if var.active_borrows else None,
			)
		return var

	def move_out(self, var_id: VarId, at: int) -> Variable:
		"""
		Consuming use of a value.

		Copy-classified values are duplicated instead: the original stays OWNED,
		which is why repeated by-value uses of a Copy never report a move.
		"""
		var = self.get(var_id)
		self._require_not_moved(var, at)
		if var.is_copy:
			return self.read(var_id, at)
		if var.state in (OwnershipState.BORROWED_SHARED, OwnershipState.BORROWED_EXCLUSIVE):
			raise OwnershipViolation(
				ErrorKind.CANNOT_MOVE_WHILE_BORROWED,
				f"cannot move out of `{var.name}` because it is borrowed",
				variable=var.name,
				borrow_id=var.active_borrows[0] if var.active_borrows else None,
			)
		var.state = OwnershipState.MOVED_OUT
		var.moved_at = at
		return var

	def require_usable(self, var_id: VarId, at: int) -> Variable:
		"""Borrow/swap precondition: the value must not have been moved out."""
		var = self.get(var_id)
		self._require_not_moved(var, at)
		return var

	def _require_not_moved(self, var: Variable, at: int) -> None:
		if var.state is OwnershipState.MOVED_OUT:
			raise OwnershipViolation(
				ErrorKind.USE_AFTER_MOVE,
				f"use of moved value `{var.name}`",
				variable=var.name,
				notes=[f"value moved at op {var.moved_at}"],
			)

	def sync_borrows(self, var_id: VarId, borrow_ids: Tuple[int, ...], *, exclusive: bool) -> None:
		"""Mirror the ledger's open borrows of `var_id` into its ownership state."""
		var = self.get(var_id)
		var.active_borrows = tuple(borrow_ids)
		if var.state is OwnershipState.MOVED_OUT:
			return
		if not borrow_ids:
			var.state = OwnershipState.OWNED
			var.shared_borrows = 0
		elif exclusive:
			var.state = OwnershipState.BORROWED_EXCLUSIVE
			var.shared_borrows = 0
		else:
			var.state = OwnershipState.BORROWED_SHARED
			var.shared_borrows = len(borrow_ids)

	def mark_out_of_extent(self, var_id: VarId, at: int) -> None:
		self.get(var_id).out_of_extent_at = at


__all__ = ["OwnershipState", "Variable", "ValueTable", "VarId", "ScopeId"]
