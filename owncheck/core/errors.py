# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Error kinds and the exceptions components raise to reject an operation.

Components (value table, ledger, solver, scope tree) raise OwnershipViolation;
the engine catches it at the operation boundary and turns it into a rejected
Verdict. MalformedStreamError marks input the stream producer got wrong, as
opposed to a program that breaks the ownership rules.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(Enum):
	"""Why an operation stream was rejected."""

	DUPLICATE_BINDING = "duplicate-binding"
	USE_AFTER_MOVE = "use-after-move"
	CANNOT_MOVE_WHILE_BORROWED = "move-while-borrowed"
	CONFLICTING_BORROW = "conflicting-borrow"
	STALE_USE = "stale-use"
	BORROW_OUTLIVES_OWNER = "borrow-outlives-owner"
	LIFETIME_CONFLICT = "lifetime-conflict"
	MALFORMED_STREAM = "malformed-stream"

	@classmethod
	def from_code(cls, code: str) -> "ErrorKind":
		for kind in cls:
			if kind.value == code:
				return kind
		raise ValueError(f"unknown error kind '{code}'")


class OwnershipViolation(Exception):
	"""A rule of the ownership discipline was broken by the current operation."""

	def __init__(
		self,
		kind: ErrorKind,
		message: str,
		*,
		variable: Optional[str] = None,
		borrow_id: Optional[int] = None,
		notes: Sequence[str] = (),
	) -> None:
		super().__init__(message)
		self.kind = kind
		self.message = message
		self.variable = variable
		self.borrow_id = borrow_id
		self.notes = tuple(notes)


class MalformedStreamError(OwnershipViolation):
	"""The operation stream itself is invalid (unknown name, unmatched scope end, ...)."""

	def __init__(self, message: str, *, variable: Optional[str] = None, notes: Sequence[str] = ()) -> None:
		super().__init__(ErrorKind.MALFORMED_STREAM, message, variable=variable, notes=notes)


__all__ = ["ErrorKind", "OwnershipViolation", "MalformedStreamError"]
