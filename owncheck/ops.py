# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Operation records consumed by the verification engine.

An operation stream is a flat, ordered list; nesting is expressed with
ScopeBegin/ScopeEnd pairs. Names are resolved by the engine against the scopes
open at that point, innermost first. Every record carries a Span that is only
used for reporting.

The JSON form (`ops_to_json` / `ops_from_json`) is the interchange format for
host tools that translate real source into operations:

  {"format": "owncheck-ops", "version": 0, "ops": [{"op": "declare", ...}, ...]}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from owncheck.core.span import Span

OPS_FORMAT = "owncheck-ops"
OPS_VERSION = 0


class Classification(Enum):
	"""Whether use-by-value moves the value or duplicates it."""

	COPY = "copy"
	MOVE = "move"


class BorrowKind(Enum):
	SHARED = "shared"
	EXCLUSIVE = "exclusive"


@dataclass(frozen=True)
class Declare:
	"""`let name: copy|move;`"""

	name: str
	classification: Classification
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class DeclareRef:
	"""`let r;` - a reference slot assigned later by a BorrowUse with `assign=True`."""

	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ScopeBegin:
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class ScopeEnd:
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class MoveUse:
	"""Consuming read, e.g. passing by value."""

	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Read:
	"""Non-consuming read of a value (printing, comparing)."""

	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class BorrowUse:
	"""
	`&target` / `&mut target`.

	With `ref` set the borrow is bound to a reference name: a new binding in the
	current scope, or (with `assign=True`) an existing slot found by lookup.
	Without `ref` the borrow is a temporary that ends at this operation.
	"""

	target: str
	kind: BorrowKind
	ref: Optional[str] = None
	assign: bool = False
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class UseRef:
	"""Use of a reference (or of any binding holding borrows)."""

	name: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class Swap:
	"""`swap(a, b)`: operands are variables or exclusive references."""

	left: str
	right: str
	span: Span = field(default_factory=Span, compare=False)


@dataclass(frozen=True)
class PackField:
	"""
	One field initializer of a Pack.

	`lifetime` set: the field stores the reference bound to `name` under that
	lifetime parameter. `lifetime` unset: the value bound to `name` is moved
	(or copied) into the aggregate.
	"""

	name: str
	lifetime: Optional[str] = None


@dataclass(frozen=True)
class Pack:
	"""`let name = pack Struct { 'a: r, v };` - builds an aggregate variable."""

	name: str
	struct: str
	fields: Tuple[PackField, ...] = ()
	classification: Classification = Classification.MOVE
	span: Span = field(default_factory=Span, compare=False)

	def lifetime_params(self) -> List[str]:
		"""Lifetime parameters in order of first appearance."""
		seen: List[str] = []
		for f in self.fields:
			if f.lifetime is not None and f.lifetime not in seen:
				seen.append(f.lifetime)
		return seen


Operation = Declare | DeclareRef | ScopeBegin | ScopeEnd | MoveUse | Read | BorrowUse | UseRef | Swap | Pack


class StreamFormatError(ValueError):
	"""A JSON operation stream could not be decoded."""


_OP_TAGS: Dict[type, str] = {
	Declare: "declare",
	DeclareRef: "declare-ref",
	ScopeBegin: "scope-begin",
	ScopeEnd: "scope-end",
	MoveUse: "move",
	Read: "read",
	BorrowUse: "borrow",
	UseRef: "use",
	Swap: "swap",
	Pack: "pack",
}


def _span_to_json(span: Span) -> Dict[str, Any]:
	out: Dict[str, Any] = {}
	if span.line is not None:
		out["line"] = span.line
	if span.column is not None:
		out["column"] = span.column
	return out


def op_to_json(op: Operation) -> Dict[str, Any]:
	"""Encode one operation as a JSON-friendly dict."""
	out: Dict[str, Any] = {"op": _OP_TAGS[type(op)]}
	if isinstance(op, Declare):
		out.update(name=op.name, **{"class": op.classification.value})
	elif isinstance(op, (DeclareRef, MoveUse, Read, UseRef)):
		out["name"] = op.name
	elif isinstance(op, BorrowUse):
		out.update(target=op.target, kind=op.kind.value)
		if op.ref is not None:
			out["ref"] = op.ref
		if op.assign:
			out["assign"] = True
	elif isinstance(op, Swap):
		out.update(left=op.left, right=op.right)
	elif isinstance(op, Pack):
		out.update(name=op.name, struct=op.struct, **{"class": op.classification.value})
		out["fields"] = [
			{"name": f.name, **({"lifetime": f.lifetime} if f.lifetime is not None else {})} for f in op.fields
		]
	out.update(_span_to_json(op.span))
	return out


def ops_to_json(ops: Sequence[Operation]) -> Dict[str, Any]:
	return {"format": OPS_FORMAT, "version": OPS_VERSION, "ops": [op_to_json(op) for op in ops]}


def _str_field(obj: Mapping[str, Any], key: str, index: int) -> str:
	val = obj.get(key)
	if not isinstance(val, str) or not val:
		raise StreamFormatError(f"op #{index}: field '{key}' must be a non-empty string")
	return val


def _enum_field(obj: Mapping[str, Any], key: str, enum: type, index: int, default: Any = None) -> Any:
	raw = obj.get(key)
	if raw is None and default is not None:
		return default
	try:
		return enum(raw)
	except ValueError:
		allowed = "|".join(e.value for e in enum)
		raise StreamFormatError(f"op #{index}: field '{key}' must be one of {allowed}") from None


def op_from_json(obj: Any, index: int = 0, *, file: Optional[str] = None) -> Operation:
	"""Decode one operation dict; raises StreamFormatError on bad input."""
	if not isinstance(obj, dict):
		raise StreamFormatError(f"op #{index}: expected a JSON object")
	tag = obj.get("op")
	line = obj.get("line")
	column = obj.get("column")
	span = Span(
		file=file,
		line=line if isinstance(line, int) else None,
		column=column if isinstance(column, int) else None,
	)
	if tag == "declare":
		return Declare(_str_field(obj, "name", index), _enum_field(obj, "class", Classification, index), span=span)
	if tag == "declare-ref":
		return DeclareRef(_str_field(obj, "name", index), span=span)
	if tag == "scope-begin":
		return ScopeBegin(span=span)
	if tag == "scope-end":
		return ScopeEnd(span=span)
	if tag == "move":
		return MoveUse(_str_field(obj, "name", index), span=span)
	if tag == "read":
		return Read(_str_field(obj, "name", index), span=span)
	if tag == "use":
		return UseRef(_str_field(obj, "name", index), span=span)
	if tag == "borrow":
		ref = obj.get("ref")
		if ref is not None and (not isinstance(ref, str) or not ref):
			raise StreamFormatError(f"op #{index}: field 'ref' must be a non-empty string")
		assign = obj.get("assign", False)
		if not isinstance(assign, bool):
			raise StreamFormatError(f"op #{index}: field 'assign' must be a boolean")
		if assign and ref is None:
			raise StreamFormatError(f"op #{index}: 'assign' requires 'ref'")
		return BorrowUse(
			_str_field(obj, "target", index),
			_enum_field(obj, "kind", BorrowKind, index),
			ref=ref,
			assign=assign,
			span=span,
		)
	if tag == "swap":
		return Swap(_str_field(obj, "left", index), _str_field(obj, "right", index), span=span)
	if tag == "pack":
		raw_fields = obj.get("fields") or []
		if not isinstance(raw_fields, list):
			raise StreamFormatError(f"op #{index}: 'fields' must be a list")
		fields: List[PackField] = []
		for raw in raw_fields:
			if not isinstance(raw, dict):
				raise StreamFormatError(f"op #{index}: pack field must be a JSON object")
			lifetime = raw.get("lifetime")
			if lifetime is not None and (not isinstance(lifetime, str) or not lifetime):
				raise StreamFormatError(f"op #{index}: field lifetime must be a non-empty string")
			fields.append(PackField(_str_field(raw, "name", index), lifetime))
		return Pack(
			_str_field(obj, "name", index),
			_str_field(obj, "struct", index),
			tuple(fields),
			_enum_field(obj, "class", Classification, index, default=Classification.MOVE),
			span=span,
		)
	raise StreamFormatError(f"op #{index}: unknown op '{tag}'")


def ops_from_json(obj: Any, *, file: Optional[str] = None) -> List[Operation]:
	"""Decode a full `owncheck-ops` document."""
	if not isinstance(obj, dict):
		raise StreamFormatError("operation stream must be a JSON object")
	if obj.get("format") != OPS_FORMAT or obj.get("version") != OPS_VERSION:
		raise StreamFormatError("unsupported operation stream format/version")
	raw_ops = obj.get("ops")
	if not isinstance(raw_ops, list):
		raise StreamFormatError("'ops' must be a list")
	return [op_from_json(raw, idx, file=file) for idx, raw in enumerate(raw_ops)]


__all__ = [
	"Classification",
	"BorrowKind",
	"Declare",
	"DeclareRef",
	"ScopeBegin",
	"ScopeEnd",
	"MoveUse",
	"Read",
	"BorrowUse",
	"UseRef",
	"Swap",
	"PackField",
	"Pack",
	"Operation",
	"StreamFormatError",
	"op_to_json",
	"ops_to_json",
	"op_from_json",
	"ops_from_json",
]
