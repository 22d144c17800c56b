# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope tree: nested lexical scopes.

Scope 0 is the root and exists from the start. Scopes only record structure
and open/close indices; variables refer back to their scope by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from owncheck.core.errors import MalformedStreamError

ScopeId = int
ROOT_SCOPE: ScopeId = 0


@dataclass
class Scope:
	id: ScopeId
	parent: Optional[ScopeId]
	opened_at: int
	closed_at: Optional[int] = None
	variables: List[int] = field(default_factory=list)
	children: List[ScopeId] = field(default_factory=list)

	@property
	def is_open(self) -> bool:
		return self.closed_at is None


@dataclass
class ScopeTree:
	scopes: List[Scope] = field(default_factory=lambda: [Scope(ROOT_SCOPE, None, 0)])

	def get(self, scope_id: ScopeId) -> Scope:
		if scope_id < 0 or scope_id >= len(self.scopes):
			raise MalformedStreamError(f"unknown scope id {scope_id}")
		return self.scopes[scope_id]

	def open_scope(self, parent: ScopeId, at: int = 0) -> ScopeId:
		parent_scope = self.get(parent)
		if not parent_scope.is_open:
			raise MalformedStreamError(f"cannot open a scope inside closed scope {parent}")
		scope = Scope(len(self.scopes), parent, at)
		self.scopes.append(scope)
		parent_scope.children.append(scope.id)
		return scope.id

	def close_scope(self, scope_id: ScopeId, at: int) -> List[int]:
		"""
		Close `scope_id` at op index `at` and return the variables declared in it.

		The caller bounds every borrow of those variables at `at`; a later use
		of such a borrow is a BorrowOutlivesOwner.
		"""
		scope = self.get(scope_id)
		if not scope.is_open:
			raise MalformedStreamError(f"scope {scope_id} closed twice")
		open_children = [c for c in scope.children if self.scopes[c].is_open]
		if open_children:
			raise MalformedStreamError(f"scope {scope_id} closed before its child scope {open_children[0]}")
		scope.closed_at = at
		return list(scope.variables)

	def add_variable(self, scope_id: ScopeId, var_id: int) -> None:
		self.get(scope_id).variables.append(var_id)

	def is_ancestor(self, a: ScopeId, b: ScopeId) -> bool:
		"""True when `a` encloses `b` (a scope encloses itself)."""
		cur: Optional[ScopeId] = b
		while cur is not None:
			if cur == a:
				return True
			cur = self.get(cur).parent
		return False

	def related(self, a: ScopeId, b: ScopeId) -> bool:
		return self.is_ancestor(a, b) or self.is_ancestor(b, a)

	def common_ancestor(self, a: ScopeId, b: ScopeId) -> ScopeId:
		"""Tightest scope enclosing both `a` and `b`."""
		cur: Optional[ScopeId] = a
		while cur is not None:
			if self.is_ancestor(cur, b):
				return cur
			cur = self.get(cur).parent
		return ROOT_SCOPE


__all__ = ["Scope", "ScopeTree", "ScopeId", "ROOT_SCOPE"]
