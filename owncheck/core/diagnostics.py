"""
Common diagnostic structure for the verifier and its host front-ends.

A Verdict is the engine's answer; a Diagnostic is what gets shown to a user or
serialized with `--json`. Parser and config failures never reach the engine
and are reported directly as diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .span import Span


@dataclass
class Diagnostic:
	"""Represents a verifier diagnostic (error/note)."""

	message: str
	code: str | None = None
	# Phase label: "parser" and "config" come from host front-ends, the engine
	# always reports under "borrowcheck".
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def render(self) -> str:
		"""Human-readable form: `file:line:col: error[code]: message` plus notes."""
		label = self.severity if self.code is None else f"{self.severity}[{self.code}]"
		lines = [f"{self.span}: {label}: {self.message}"]
		lines.extend(f"  note: {note}" for note in self.notes)
		return "\n".join(lines)


def diag_to_json(diag: Diagnostic, phase: str, source: Optional[str] = None) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	file = diag.span.file if diag.span.file is not None else source
	return {
		"phase": diag.phase or phase,
		"code": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"file": file,
		"line": diag.span.line,
		"column": diag.span.column,
		"notes": list(diag.notes),
	}


__all__ = ["Diagnostic", "diag_to_json"]
