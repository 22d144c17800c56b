# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source positions for operations and diagnostics.

The engine never looks inside a Span; it only carries it from the operation
that failed to the Verdict so a host tool can point at the offending line.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column of an operation (Span() denotes unknown)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@classmethod
	def from_meta(cls, meta: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from a lark `Meta` (or `Token`) object.

		lark leaves `meta.empty` set for rules that matched no tokens; those map
		to an unknown position rather than raising.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		return cls(
			file=file,
			line=getattr(meta, "line", None),
			column=getattr(meta, "column", None),
			end_line=getattr(meta, "end_line", None),
			end_column=getattr(meta, "end_column", None),
		)

	@property
	def known(self) -> bool:
		return self.line is not None

	def with_file(self, file: Optional[str]) -> "Span":
		"""Return a copy attributed to `file` (used when a stream is loaded from disk)."""
		return Span(file, self.line, self.column, self.end_line, self.end_column)

	def __str__(self) -> str:
		file = self.file or "<ops>"
		line = "?" if self.line is None else str(self.line)
		column = "?" if self.column is None else str(self.column)
		return f"{file}:{line}:{column}"


__all__ = ["Span"]
