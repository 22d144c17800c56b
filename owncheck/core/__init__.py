"""
owncheck.core: shared span/diagnostic/error types used across components.

Modules:
  - span: source positions attached to operations
  - diagnostics: structured Diagnostic record
  - errors: ErrorKind plus the violation exceptions raised by components
"""
