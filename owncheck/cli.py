# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
`owncheck` command line.

Verifies ownership scripts (`.own`) or JSON operation streams (`.json`), or the
packaged lessons. Exit codes:

  0  every input accepted (or every lesson matched its expectation)
  1  at least one input rejected
  2  malformed stream, syntax error, bad config or usage error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Tuple

from owncheck import ops as O
from owncheck.config import EngineConfig, load_config
from owncheck.core.diagnostics import Diagnostic, diag_to_json
from owncheck.core.span import Span
from owncheck.engine import Verdict, VerificationEngine
from owncheck.lessons import check_lesson, list_lessons, load_lesson
from owncheck.parser import load_stream

EXIT_ACCEPTED = 0
EXIT_REJECTED = 1
EXIT_MALFORMED = 2

logger = logging.getLogger(__name__)


def _verdict_exit(verdict: Verdict) -> int:
	if verdict.accepted:
		return EXIT_ACCEPTED
	return EXIT_MALFORMED if verdict.is_malformed else EXIT_REJECTED


def _print_diags(diags: List[Diagnostic]) -> None:
	for d in diags:
		print(d.render(), file=sys.stderr)


def _fail(args: argparse.Namespace, diag: Diagnostic, phase: str) -> int:
	if args.json:
		payload = {"exit_code": EXIT_MALFORMED, "results": [], "diagnostics": [diag_to_json(diag, phase)]}
		print(json.dumps(payload))
	else:
		_print_diags([diag])
	return EXIT_MALFORMED


def _resolve_config(args: argparse.Namespace) -> EngineConfig:
	config = load_config(args.config) if args.config is not None else EngineConfig()
	return config.with_overrides(
		nll=False if args.lexical else None,
		allow_shadowing=True if args.allow_shadowing else None,
	)


def _check_source(path: Path, config: EngineConfig, dump_ops: bool) -> Tuple[int, dict, List[Diagnostic]]:
	operations, diags = load_stream(path)
	if diags:
		return EXIT_MALFORMED, {"file": str(path), "verdict": None}, diags
	if dump_ops:
		print(json.dumps(O.ops_to_json(operations), indent=2))
	verdict = VerificationEngine(config).verify(operations)
	logger.info("%s: %s", path, verdict)
	diag = verdict.to_diagnostic()
	result = {
		"file": str(path),
		"verdict": "accepted" if verdict.accepted else verdict.kind.value,
		"op_index": verdict.op_index,
	}
	return _verdict_exit(verdict), result, [diag] if diag is not None else []


def _run_lessons(args: argparse.Namespace, config: EngineConfig) -> int:
	failures = 0
	results = []
	for lesson in list_lessons():
		verdict, matched = check_lesson(lesson, config)
		got = "accepted" if verdict.accepted else verdict.kind.value
		results.append({"lesson": lesson.name, "expect": lesson.expect_label, "verdict": got, "ok": matched})
		if matched:
			if not args.json:
				print(f"[ok] {lesson.name}: {got}")
		else:
			failures += 1
			if not args.json:
				print(f"[fail] {lesson.name}: expected {lesson.expect_label}, got {got}", file=sys.stderr)
	exit_code = EXIT_REJECTED if failures else EXIT_ACCEPTED
	if args.json:
		print(json.dumps({"exit_code": exit_code, "results": results}))
	return exit_code


def main(argv: list[str] | None = None) -> int:
	"""
	Verify each input and report the first violation per input.

	With --json, prints one object `{"exit_code", "results"}` where each result
	carries its verdict and structured diagnostics; otherwise diagnostics go to
	stderr in `file:line:col: error[kind]: message` form.
	"""
	parser = argparse.ArgumentParser(prog="owncheck", description="Static ownership & borrow verifier")
	parser.add_argument("source", type=Path, nargs="*", help="Ownership script(s) (.own) or JSON stream(s) (.json)")
	parser.add_argument("--lesson", help="Verify a packaged lesson by name")
	parser.add_argument("--list-lessons", action="store_true", help="List packaged lessons and their expected verdicts")
	parser.add_argument("--check-lessons", action="store_true", help="Verify every lesson against its expected verdict")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit results as JSON (verdict plus phase/message/severity/file/line/column diagnostics)",
	)
	parser.add_argument("--lexical", action="store_true", help="Keep named borrows live until the end of their scope")
	parser.add_argument("--allow-shadowing", action="store_true", help="Allow re-declaring a live name in the same scope")
	parser.add_argument("--config", type=Path, help="Path to an owncheck config JSON file")
	parser.add_argument("--dump-ops", action="store_true", help="Print the decoded operation stream as JSON before verifying")
	parser.add_argument("-v", "--verbose", action="store_true", help="Log engine decisions to stderr")
	args = parser.parse_args(argv)

	if args.verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s", stream=sys.stderr)

	modes = sum([bool(args.source), args.lesson is not None, args.list_lessons, args.check_lessons])
	if modes != 1:
		parser.print_usage(sys.stderr)
		print("owncheck: error: give source files, --lesson, --list-lessons or --check-lessons (exactly one)", file=sys.stderr)
		return EXIT_MALFORMED

	if args.list_lessons:
		for lesson in list_lessons():
			print(f"{lesson.name:32} {lesson.expect_label:24} {lesson.summary}")
		return EXIT_ACCEPTED

	try:
		config = _resolve_config(args)
	except (OSError, ValueError) as err:
		msg = getattr(err, "strerror", None) or str(err)
		return _fail(args, Diagnostic(message=f"bad config: {msg}", phase="config", span=Span(file=str(args.config))), "config")

	if args.check_lessons:
		return _run_lessons(args, config)

	if args.lesson is not None:
		try:
			sources = [load_lesson(args.lesson).path]
		except LookupError as err:
			return _fail(args, Diagnostic(message=str(err.args[0]), phase="cli"), "cli")
	else:
		sources = list(args.source)

	exit_code = EXIT_ACCEPTED
	results = []
	for path in sources:
		code, result, diags = _check_source(path, config, args.dump_ops)
		exit_code = max(exit_code, code)
		if args.json:
			phase = "parser" if result["verdict"] is None else "borrowcheck"
			result["diagnostics"] = [diag_to_json(d, phase, str(path)) for d in diags]
			results.append(result)
		else:
			_print_diags(diags)
	if args.json:
		print(json.dumps({"exit_code": exit_code, "results": results}))
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
