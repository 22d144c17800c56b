# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Packaged lessons: small ownership scripts with an expected verdict.

Each `.own` file in this directory starts with a comment header:

  # expect: accepted | <error kind code>
  # free-form summary lines ...

`check_lesson` runs one lesson and compares the verdict with its header.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from owncheck import ops as O
from owncheck.config import EngineConfig
from owncheck.core.errors import ErrorKind
from owncheck.engine import Verdict, VerificationEngine
from owncheck.parser import parse_script

LESSONS_DIR = Path(__file__).parent


@dataclass(frozen=True)
class Lesson:
	name: str
	path: Path
	expect: Optional[ErrorKind]  # None = accepted
	summary: str

	def source(self) -> str:
		return self.path.read_text(encoding="utf-8")

	def operations(self) -> List[O.Operation]:
		return parse_script(self.source(), file=str(self.path))

	@property
	def expect_label(self) -> str:
		return "accepted" if self.expect is None else self.expect.value


def _read_header(path: Path) -> Tuple[Optional[ErrorKind], str]:
	expect: Optional[ErrorKind] = None
	found = False
	summary: List[str] = []
	for line in path.read_text(encoding="utf-8").splitlines():
		if not line.startswith("#"):
			break
		text = line[1:].strip()
		if text.startswith("expect:"):
			value = text[len("expect:"):].strip()
			expect = None if value == "accepted" else ErrorKind.from_code(value)
			found = True
		elif text:
			summary.append(text)
	if not found:
		raise ValueError(f"lesson {path.name} has no '# expect:' header")
	return expect, " ".join(summary)


def list_lessons() -> List[Lesson]:
	lessons = []
	for path in sorted(LESSONS_DIR.glob("*.own")):
		expect, summary = _read_header(path)
		lessons.append(Lesson(path.stem, path, expect, summary))
	return lessons


def load_lesson(name: str) -> Lesson:
	path = LESSONS_DIR / f"{name}.own"
	if not path.is_file():
		known = ", ".join(l.name for l in list_lessons())
		raise LookupError(f"unknown lesson '{name}' (known: {known})")
	expect, summary = _read_header(path)
	return Lesson(name, path, expect, summary)


def check_lesson(lesson: Lesson, config: Optional[EngineConfig] = None) -> Tuple[Verdict, bool]:
	"""Verify a lesson; the flag is True when the verdict matches its header."""
	verdict = VerificationEngine(config or EngineConfig()).verify(lesson.operations())
	if lesson.expect is None:
		return verdict, verdict.accepted
	return verdict, verdict.kind is lesson.expect


__all__ = ["Lesson", "LESSONS_DIR", "list_lessons", "load_lesson", "check_lesson"]
