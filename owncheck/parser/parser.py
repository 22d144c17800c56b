# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ownership-script parser: text -> list of operations.

The grammar lives next to this module (`grammar.lark`). Parse errors surface
as lark's `UnexpectedInput`; `owncheck.parser` turns them into diagnostics.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree

from owncheck import ops as O
from owncheck.core.span import Span

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_BORROW_KINDS = {
	"shared_borrow": O.BorrowKind.SHARED,
	"exclusive_borrow": O.BorrowKind.EXCLUSIVE,
}


def parse_script(source: str, *, file: Optional[str] = None) -> List[O.Operation]:
	tree = _PARSER.parse(source)
	out: List[O.Operation] = []
	_build_items(tree.children, file, out)
	return out


def _names(node: Tree) -> List[Token]:
	return [c for c in node.children if isinstance(c, Token) and c.type == "NAME"]


def _subtree(node: Tree, *rules: str) -> Optional[Tree]:
	return next((c for c in node.children if isinstance(c, Tree) and c.data in rules), None)


def _classification(node: Optional[Tree], default: O.Classification) -> O.Classification:
	if node is None:
		return default
	return O.Classification.COPY if node.data == "copy_class" else O.Classification.MOVE


def _borrow_parts(node: Tree) -> tuple[str, O.BorrowKind]:
	borrow = _subtree(node, *_BORROW_KINDS)
	if borrow is None:
		raise TypeError(f"{node.data} missing borrow expression")
	return str(_names(borrow)[0]), _BORROW_KINDS[str(borrow.data)]


def _build_items(nodes: list, file: Optional[str], out: List[O.Operation]) -> None:
	for node in nodes:
		if isinstance(node, Tree):
			_build_item(node, file, out)


def _build_item(node: Tree, file: Optional[str], out: List[O.Operation]) -> None:
	kind = str(node.data)
	span = Span.from_meta(node.meta, file=file)
	names = _names(node)
	if kind == "block":
		lbrace, rbrace = (c for c in node.children if isinstance(c, Token) and c.type in ("LBRACE", "RBRACE"))
		out.append(O.ScopeBegin(span=Span.from_meta(lbrace, file=file)))
		_build_items(node.children, file, out)
		out.append(O.ScopeEnd(span=Span.from_meta(rbrace, file=file)))
	elif kind == "let_value":
		cls = _classification(_subtree(node, "copy_class", "move_class"), O.Classification.MOVE)
		out.append(O.Declare(str(names[0]), cls, span=span))
	elif kind == "let_ref":
		out.append(O.DeclareRef(str(names[0]), span=span))
	elif kind in ("let_borrow", "assign_borrow"):
		target, borrow_kind = _borrow_parts(node)
		out.append(O.BorrowUse(target, borrow_kind, ref=str(names[0]), assign=kind == "assign_borrow", span=span))
	elif kind == "borrow_stmt":
		target, borrow_kind = _borrow_parts(node)
		out.append(O.BorrowUse(target, borrow_kind, span=span))
	elif kind == "let_pack":
		cls = _classification(_subtree(node, "copy_class", "move_class"), O.Classification.MOVE)
		fields_node = _subtree(node, "pack_fields")
		fields = tuple(_build_field(f) for f in fields_node.children) if fields_node is not None else ()
		out.append(O.Pack(str(names[0]), str(names[1]), fields, cls, span=span))
	elif kind == "move_stmt":
		out.append(O.MoveUse(str(names[0]), span=span))
	elif kind == "read_stmt":
		out.append(O.Read(str(names[0]), span=span))
	elif kind == "use_stmt":
		out.append(O.UseRef(str(names[0]), span=span))
	elif kind == "swap_stmt":
		out.append(O.Swap(str(names[0]), str(names[1]), span=span))
	else:
		raise TypeError(f"unexpected script node {kind}")


def _build_field(node: Tree) -> O.PackField:
	name = str(_names(node)[0])
	if node.data == "ref_field":
		lifetime = next(c for c in node.children if isinstance(c, Token) and c.type == "LIFETIME")
		return O.PackField(name, str(lifetime)[1:])
	return O.PackField(name)


__all__ = ["parse_script"]
