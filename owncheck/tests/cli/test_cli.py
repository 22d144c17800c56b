# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
from pathlib import Path

from owncheck.cli import main as owncheck_main


def _write_file(path: Path, text: str) -> Path:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(text, encoding="utf-8")
	return path


def _run_json(argv: list[str], capsys) -> tuple[int, dict]:
	code = owncheck_main([*argv, "--json"])
	out = capsys.readouterr().out
	return code, json.loads(out.strip().splitlines()[-1])


def test_accepted_script_exits_zero(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "ok.own", "let x: copy;\nmove x;\nmove x;\n")
	assert owncheck_main([str(src)]) == 0
	assert capsys.readouterr().err == ""


def test_rejected_script_reports_location(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "bad.own", "let s: move;\nmove s;\nread s;\n")
	assert owncheck_main([str(src)]) == 1
	err = capsys.readouterr().err
	assert f"{src}:3:1: error[use-after-move]: use of moved value `s`" in err
	assert "note: rejected at op 2" in err


def test_json_payload(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "bad.own", "let s: move;\nlet r = &s;\nmove s;\nuse r;\n")
	code, payload = _run_json([str(src)], capsys)
	assert code == 1
	assert payload["exit_code"] == 1
	(result,) = payload["results"]
	assert result["verdict"] == "move-while-borrowed"
	assert result["op_index"] == 2
	(diag,) = result["diagnostics"]
	assert diag["phase"] == "borrowcheck"
	assert diag["file"] == str(src)
	assert (diag["line"], diag["column"]) == (3, 1)


def test_malformed_stream_exits_two(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "m.own", "read ghost;\n")
	code, payload = _run_json([str(src)], capsys)
	assert code == 2
	assert payload["results"][0]["verdict"] == "malformed-stream"


def test_syntax_error_is_parser_phase(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "syntax.own", "let s move;\n")
	code, payload = _run_json([str(src)], capsys)
	assert code == 2
	result = payload["results"][0]
	assert result["verdict"] is None
	assert result["diagnostics"][0]["phase"] == "parser"


def test_json_stream_input(tmp_path: Path, capsys):
	doc = {
		"format": "owncheck-ops",
		"version": 0,
		"ops": [
			{"op": "declare", "name": "s", "class": "move"},
			{"op": "move", "name": "s"},
			{"op": "move", "name": "s", "line": 7},
		],
	}
	src = _write_file(tmp_path / "s.json", json.dumps(doc))
	code, payload = _run_json([str(src)], capsys)
	assert code == 1
	assert payload["results"][0]["diagnostics"][0]["line"] == 7


def test_worst_exit_code_wins(tmp_path: Path, capsys):
	ok = _write_file(tmp_path / "ok.own", "let x: copy;\n")
	bad = _write_file(tmp_path / "bad.own", "let x: copy;\nlet x: copy;\n")
	code, payload = _run_json([str(ok), str(bad)], capsys)
	assert code == 1
	assert [r["verdict"] for r in payload["results"]] == ["accepted", "duplicate-binding"]


def test_lexical_and_shadowing_flags(tmp_path: Path):
	nll = _write_file(tmp_path / "nll.own", "let x: move;\nlet r = &x;\nuse r;\nlet m = &mut x;\nuse m;\n")
	dup = _write_file(tmp_path / "dup.own", "let x: copy;\nlet x: copy;\n")
	assert owncheck_main([str(nll)]) == 0
	assert owncheck_main(["--lexical", str(nll)]) == 1
	assert owncheck_main(["--allow-shadowing", str(dup)]) == 0


def test_config_file(tmp_path: Path):
	nll = _write_file(tmp_path / "nll.own", "let x: move;\nlet r = &x;\nuse r;\nlet m = &mut x;\nuse m;\n")
	cfg = _write_file(tmp_path / "cfg.json", json.dumps({"format": "owncheck-config", "version": 0, "nll": False}))
	assert owncheck_main(["--config", str(cfg), str(nll)]) == 1


def test_bad_config(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "ok.own", "let x: copy;\n")
	cfg = _write_file(tmp_path / "cfg.json", json.dumps({"format": "owncheck-config", "version": 3}))
	code, payload = _run_json(["--config", str(cfg), str(src)], capsys)
	assert code == 2
	assert payload["diagnostics"][0]["phase"] == "config"
	assert owncheck_main(["--config", str(tmp_path / "missing.json"), str(src)]) == 2


def test_lesson_by_name(capsys):
	assert owncheck_main(["--lesson", "first_example_borrowed"]) == 0
	assert owncheck_main(["--lesson", "first_example"]) == 1
	assert "use-after-move" in capsys.readouterr().err
	assert owncheck_main(["--lesson", "nope"]) == 2


def test_check_lessons(capsys):
	assert owncheck_main(["--check-lessons"]) == 0
	out = capsys.readouterr().out
	assert "[ok] dangling_reference: borrow-outlives-owner" in out


def test_check_lessons_in_lexical_mode_fails(capsys):
	assert owncheck_main(["--check-lessons", "--lexical"]) == 1
	assert "[fail] borrows_and_their_lifetimes" in capsys.readouterr().err


def test_list_lessons(capsys):
	assert owncheck_main(["--list-lessons"]) == 0
	lines = capsys.readouterr().out.splitlines()
	assert any(line.startswith("cant_infer ") for line in lines)


def test_dump_ops(tmp_path: Path, capsys):
	src = _write_file(tmp_path / "a.own", "let x: copy;\n")
	assert owncheck_main(["--dump-ops", str(src)]) == 0
	doc = json.loads(capsys.readouterr().out)
	assert doc["ops"] == [{"op": "declare", "name": "x", "class": "copy", "line": 1, "column": 1}]


def test_mode_is_required(capsys):
	assert owncheck_main([]) == 2
	assert owncheck_main(["--list-lessons", "--check-lessons"]) == 2
	assert "exactly one" in capsys.readouterr().err
