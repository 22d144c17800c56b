# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
owncheck: a static ownership & borrow verification engine.

Modules:
  ops: operation records consumed by the engine (plus a JSON codec)
  value_table / scope_tree / borrow_ledger / lifetime_solver: engine components
  extents: last-use analysis that drives non-lexical borrow extents
  engine: the verification pass producing a Verdict
  parser: textual ownership-script front-end (lark)
  lessons: packaged demo programs with expected verdicts
"""

from owncheck.config import EngineConfig
from owncheck.engine import Verdict, VerificationEngine, verify

__all__ = ["EngineConfig", "Verdict", "VerificationEngine", "verify"]
