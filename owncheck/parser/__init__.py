# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Front-ends that turn files into operation streams.

Two input formats are accepted:
  * ownership scripts (`.own`, see grammar.lark), parsed with lark;
  * JSON streams (`.json`, see `owncheck.ops.ops_from_json`).

Failures never raise out of `load_stream`; they come back as parser-phase
diagnostics so a host can report them next to engine verdicts.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional, Tuple

from lark.exceptions import UnexpectedInput

from owncheck import ops as O
from owncheck.core.diagnostics import Diagnostic
from owncheck.core.span import Span

from .parser import parse_script


def _unexpected_input_diag(err: UnexpectedInput, file: Optional[str]) -> Diagnostic:
	lines = str(err).strip().splitlines()
	span = Span(file=file, line=getattr(err, "line", None), column=getattr(err, "column", None))
	return Diagnostic(
		message=lines[0] if lines else "syntax error",
		phase="parser",
		severity="error",
		span=span,
		notes=[ln.strip() for ln in lines[1:] if ln.strip().startswith("Expected")],
	)


def parse_script_source(source: str, *, file: Optional[str] = None) -> Tuple[List[O.Operation], List[Diagnostic]]:
	try:
		return parse_script(source, file=file), []
	except UnexpectedInput as err:
		return [], [_unexpected_input_diag(err, file)]


def parse_json_source(source: str, *, file: Optional[str] = None) -> Tuple[List[O.Operation], List[Diagnostic]]:
	try:
		return O.ops_from_json(json.loads(source), file=file), []
	except json.JSONDecodeError as err:
		span = Span(file=file, line=err.lineno, column=err.colno)
		return [], [Diagnostic(message=f"invalid JSON: {err.msg}", phase="parser", span=span)]
	except O.StreamFormatError as err:
		return [], [Diagnostic(message=str(err), phase="parser", span=Span(file=file))]


def load_stream(path: Path) -> Tuple[List[O.Operation], List[Diagnostic]]:
	"""Load an operation stream from `path`, choosing the format by suffix."""
	try:
		source = path.read_text(encoding="utf-8")
	except OSError as err:
		return [], [Diagnostic(message=f"cannot read input: {err.strerror or err}", phase="parser", span=Span(file=str(path)))]
	if path.suffix == ".json":
		return parse_json_source(source, file=str(path))
	return parse_script_source(source, file=str(path))


__all__ = ["load_stream", "parse_script", "parse_script_source", "parse_json_source"]
