# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Span rendering and diagnostic serialization."""

from types import SimpleNamespace

from owncheck.core.diagnostics import Diagnostic, diag_to_json
from owncheck.core.span import Span


def test_unknown_span_renders_placeholders():
	assert str(Span()) == "<ops>:?:?"
	assert not Span().known


def test_span_from_lark_meta():
	meta = SimpleNamespace(empty=False, line=3, column=5, end_line=3, end_column=12)
	span = Span.from_meta(meta, file="demo.own")
	assert span == Span("demo.own", 3, 5, 3, 12)
	assert str(span) == "demo.own:3:5"


def test_empty_meta_maps_to_unknown_position():
	span = Span.from_meta(SimpleNamespace(empty=True), file="demo.own")
	assert span.file == "demo.own"
	assert span.line is None


def test_with_file_keeps_position():
	assert Span(None, 1, 2).with_file("x.own") == Span("x.own", 1, 2)


def test_render_includes_code_and_notes():
	diag = Diagnostic(
		message="use of moved value `s`",
		code="use-after-move",
		phase="borrowcheck",
		span=Span("a.own", 4, 1),
		notes=["value moved at op 2"],
	)
	assert diag.render() == (
		"a.own:4:1: error[use-after-move]: use of moved value `s`\n"
		"  note: value moved at op 2"
	)


def test_none_span_is_normalized():
	diag = Diagnostic(message="m", span=None)  # type: ignore[arg-type]
	assert diag.span == Span()


def test_diag_to_json_falls_back_to_source_file():
	diag = Diagnostic(message="oops", phase=None, span=Span(line=2, column=7))
	out = diag_to_json(diag, "parser", "input.own")
	assert out == {
		"phase": "parser",
		"code": None,
		"message": "oops",
		"severity": "error",
		"file": "input.own",
		"line": 2,
		"column": 7,
		"notes": [],
	}


def test_diag_to_json_prefers_diagnostic_phase():
	diag = Diagnostic(message="bad", phase="config", span=Span("c.json"))
	out = diag_to_json(diag, "parser")
	assert out["phase"] == "config"
	assert out["file"] == "c.json"
