# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Verification engine: one fail-fast pass over an operation stream.

Pipeline per `verify` call:
  1. compute_extents: last use of every borrow creation site (look-ahead is
	 confined to this step);
  2. walk operations in order, dispatching to the value table, scope tree,
	 borrow ledger and lifetime solver;
  3. after each operation, finalize the borrows whose last use was that
	 operation and mirror open borrows into the value table.

The first OwnershipViolation raised by a component becomes the Verdict; no
later operation is looked at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from owncheck import ops as O
from owncheck.borrow_ledger import Borrow, BorrowId, BorrowLedger
from owncheck.config import EngineConfig
from owncheck.core.diagnostics import Diagnostic
from owncheck.core.errors import ErrorKind, MalformedStreamError, OwnershipViolation
from owncheck.core.span import Span
from owncheck.extents import BorrowKey, ExtentMap, compute_extents
from owncheck.lifetime_solver import LifetimeGroup, LifetimeSolver
from owncheck.scope_tree import ROOT_SCOPE, ScopeId, ScopeTree
from owncheck.value_table import ValueTable, VarId

logger = logging.getLogger(__name__)


@dataclass
class Reference:
	"""
	A named reference binding.

	`borrows[0]` is the borrow the reference was created from; any further
	entries are borrows stored in the borrowed aggregate, which the reference
	keeps alive as well.
	"""

	name: str
	scope: ScopeId
	declared_at: int
	borrows: Tuple[BorrowId, ...] = ()
	assigned: bool = False


Binding = Union[VarId, Reference]


@dataclass(frozen=True)
class Verdict:
	"""Outcome of a verification run; `op_index`/`span` locate the first violation."""

	accepted: bool
	op_index: Optional[int] = None
	kind: Optional[ErrorKind] = None
	message: str = ""
	span: Span = field(default_factory=Span)
	variable: Optional[str] = None
	borrow_id: Optional[int] = None
	notes: Tuple[str, ...] = ()
	operations: int = 0

	@classmethod
	def accept(cls, operations: int) -> "Verdict":
		return cls(accepted=True, operations=operations)

	@classmethod
	def reject(cls, op_index: int, span: Span, err: OwnershipViolation, *, operations: int) -> "Verdict":
		return cls(
			accepted=False,
			op_index=op_index,
			kind=err.kind,
			message=err.message,
			span=span,
			variable=err.variable,
			borrow_id=err.borrow_id,
			notes=err.notes,
			operations=operations,
		)

	@property
	def position(self) -> Span:
		return self.span

	@property
	def is_malformed(self) -> bool:
		"""True when the stream producer, not the program, is at fault."""
		return self.kind is ErrorKind.MALFORMED_STREAM

	def to_diagnostic(self) -> Optional[Diagnostic]:
		if self.accepted:
			return None
		return Diagnostic(
			message=self.message,
			code=self.kind.value if self.kind else None,
			phase="borrowcheck",
			severity="error",
			span=self.span,
			notes=[*self.notes, f"rejected at op {self.op_index}"],
		)

	def __str__(self) -> str:
		if self.accepted:
			return f"accepted ({self.operations} operations)"
		return f"rejected at op {self.op_index}: {self.kind.value if self.kind else '?'}: {self.message}"


@dataclass
class VerificationEngine:
	"""
	Ownership & borrow verifier.

	The component tables are rebuilt by every `verify` call and left in place
	afterwards so callers (and tests) can inspect the final state.
	"""

	config: EngineConfig = field(default_factory=EngineConfig)
	values: ValueTable = field(init=False, default_factory=ValueTable)
	scopes: ScopeTree = field(init=False, default_factory=ScopeTree)
	ledger: BorrowLedger = field(init=False, default_factory=BorrowLedger)
	_frames: List[Tuple[ScopeId, Dict[str, Binding]]] = field(init=False, default_factory=list, repr=False)
	_extents: ExtentMap = field(init=False, default_factory=ExtentMap, repr=False)
	_ends: Dict[BorrowId, int] = field(init=False, default_factory=dict, repr=False)
	_due: Dict[int, List[BorrowId]] = field(init=False, default_factory=dict, repr=False)
	_touched: Set[VarId] = field(init=False, default_factory=set, repr=False)
	_keys: Dict[BorrowId, BorrowKey] = field(init=False, default_factory=dict, repr=False)

	def __post_init__(self) -> None:
		self._reset()

	def _reset(self) -> None:
		self.values = ValueTable()
		self.scopes = ScopeTree()
		self.ledger = BorrowLedger()
		self.solver = LifetimeSolver(self.ledger, self.values, self.scopes)
		self._frames = [(ROOT_SCOPE, {})]
		self._extents = ExtentMap()
		self._ends = {}
		self._due = {}
		self._touched = set()
		self._keys = {}

	def verify(self, operations: Iterable[O.Operation]) -> Verdict:
		stream = list(operations)
		self._reset()
		self._extents = compute_extents(stream, nll=self.config.nll)
		for index, op in enumerate(stream):
			logger.debug("op %d: %s", index, op)
			try:
				self._step(index, op)
				self._finalize_due(index)
			except OwnershipViolation as err:
				verdict = Verdict.reject(index, op.span, err, operations=len(stream))
				logger.debug("%s", verdict)
				return verdict
		try:
			while len(self._frames) > 1:
				self._close_current(len(stream))
			self._close_current(len(stream))
		except OwnershipViolation as err:
			return Verdict.reject(len(stream), Span(), err, operations=len(stream))
		logger.debug("accepted %d operations", len(stream))
		return Verdict.accept(len(stream))

	# Dispatch

	def _step(self, index: int, op: O.Operation) -> None:
		if isinstance(op, O.Declare):
			self._declare_var(op.name, op.classification, index)
		elif isinstance(op, O.DeclareRef):
			self._check_fresh_ref(op.name)
			self._bind(op.name, Reference(op.name, self._scope, index))
		elif isinstance(op, O.ScopeBegin):
			scope = self.scopes.open_scope(self._scope, at=index)
			self._frames.append((scope, {}))
		elif isinstance(op, O.ScopeEnd):
			if len(self._frames) == 1:
				raise MalformedStreamError("scope end without a matching scope begin")
			self._close_current(index)
		elif isinstance(op, (O.MoveUse, O.Read, O.UseRef)):
			self._use_name(op, index)
		elif isinstance(op, O.BorrowUse):
			self._borrow(op, index)
		elif isinstance(op, O.Swap):
			self._swap(op, index)
		elif isinstance(op, O.Pack):
			self._pack(op, index)
		else:
			raise MalformedStreamError(f"unsupported operation {type(op).__name__}")

	# Names

	@property
	def _scope(self) -> ScopeId:
		return self._frames[-1][0]

	def _bind(self, name: str, binding: Binding) -> None:
		self._frames[-1][1][name] = binding

	def _resolve(self, name: str) -> Binding:
		for _, names in reversed(self._frames):
			binding = names.get(name)
			if binding is not None:
				return binding
		raise MalformedStreamError(f"`{name}` is not bound", variable=name)

	def _check_ref_clash(self, name: str) -> None:
		existing = self._frames[-1][1].get(name)
		if isinstance(existing, Reference) and not self.config.allow_shadowing:
			raise OwnershipViolation(
				ErrorKind.DUPLICATE_BINDING,
				f"`{name}` is already bound in this scope",
				variable=name,
				notes=[f"reference declared at op {existing.declared_at}"],
			)

	def _check_fresh_ref(self, name: str) -> None:
		self._check_ref_clash(name)
		var_id = self.values.lookup_local(self._scope, name)
		if var_id is not None and self.values.get(var_id).live and not self.config.allow_shadowing:
			raise OwnershipViolation(
				ErrorKind.DUPLICATE_BINDING,
				f"`{name}` is already bound in this scope",
				variable=name,
			)

	def _declare_var(
		self,
		name: str,
		classification: O.Classification,
		index: int,
		held: Tuple[BorrowId, ...] = (),
	) -> VarId:
		self._check_ref_clash(name)
		var_id = self.values.declare(
			name,
			classification,
			self._scope,
			at=index,
			held_borrows=held,
			allow_shadowing=self.config.allow_shadowing,
		)
		self.scopes.add_variable(self._scope, var_id)
		self._bind(name, var_id)
		return var_id

	# Borrow plumbing

	def _new_borrow(
		self,
		var_id: VarId,
		kind: O.BorrowKind,
		index: int,
		slot: int,
		label: Optional[str] = None,
		parent: Optional[BorrowId] = None,
	) -> BorrowId:
		var = self.values.get(var_id)
		borrow_id = self.ledger.create_borrow(var_id, kind, index, label=label, var_name=var.name, parent=parent)
		self._keys[borrow_id] = (index, slot)
		end = max(self._extents.end_for((index, slot)), index)
		self._ends[borrow_id] = end
		self._due.setdefault(end, []).append(borrow_id)
		self._touched.add(var_id)
		return borrow_id

	def _use_borrows(self, borrows: Iterable[BorrowId], index: int) -> None:
		for borrow_id in borrows:
			borrow = self.ledger.get(borrow_id)
			self.ledger.record_use(borrow_id, index, var_name=self.values.get(borrow.var).name)

	def _use_ref(self, ref: Reference, index: int) -> None:
		if not ref.assigned:
			raise MalformedStreamError(f"reference `{ref.name}` used before it was assigned", variable=ref.name)
		self._check_reborrows(ref, index)
		self._use_borrows(ref.borrows, index)

	def _check_reborrows(self, ref: Reference, index: int) -> None:
		# Only exclusive reborrows take child loans.
		for child in self.ledger.live_reborrows(ref.borrows[0], index):
			parent = self.ledger.get(ref.borrows[0])
			raise OwnershipViolation(
				ErrorKind.CONFLICTING_BORROW,
				f"cannot use `{ref.name}` while it is reborrowed exclusively",
				variable=ref.name,
				borrow_id=child.id,
				notes=[f"{child.describe()} is nested in {parent.describe()}"],
			)

	def _finalize_due(self, index: int) -> None:
		for borrow_id in self._due.pop(index, []):
			self._touched.add(self.ledger.finalize(borrow_id).var)
		for var_id in self._touched:
			open_borrows = self.ledger.open_borrows(var_id)
			self.values.sync_borrows(
				var_id,
				tuple(b.id for b in open_borrows),
				exclusive=any(b.kind is O.BorrowKind.EXCLUSIVE for b in open_borrows),
			)
		self._touched.clear()

	def _close_current(self, index: int) -> None:
		scope, _ = self._frames.pop()
		for var_id in self.scopes.close_scope(scope, index):
			for borrow in self.ledger.borrows_of(var_id):
				self._check_outlives(var_id, borrow, index)
			self.values.mark_out_of_extent(var_id, index)
			self.ledger.bound_by_scope(var_id, index)

	def _check_outlives(self, var_id: VarId, borrow: Borrow, index: int) -> None:
		if self._ends[borrow.id] <= index:
			return
		key = self._keys[borrow.id]
		next_use = self._extents.next_use(key, index)
		if next_use is not None and self._extents.stored_in_group(key, next_use):
			# Lifetime unification at that Pack reports the group as a whole.
			return
		name = self.values.get(var_id).name
		if next_use is None:
			note = f"{borrow.describe()} is still in scope when `{name}` is dropped"
		else:
			note = f"{borrow.describe()} is used again at op {next_use}"
		raise OwnershipViolation(
			ErrorKind.BORROW_OUTLIVES_OWNER,
			f"`{name}` does not live long enough",
			variable=name,
			borrow_id=borrow.id,
			notes=[note],
		)

	# Operations

	def _use_name(self, op: Union[O.MoveUse, O.Read, O.UseRef], index: int) -> None:
		binding = self._resolve(op.name)
		if isinstance(binding, Reference):
			self._use_ref(binding, index)
			return
		if isinstance(op, O.MoveUse):
			var = self.values.move_out(binding, index)
		else:
			var = self.values.read(binding, index)
		self._use_borrows(var.held_borrows, index)

	def _borrow(self, op: O.BorrowUse, index: int) -> None:
		target = self._resolve(op.target)
		if isinstance(target, Reference):
			# Reborrow: a shared one aliases the borrows of the old reference, an
			# exclusive one takes a child loan nested in them.
			self._use_ref(target, index)
			primary = self.ledger.get(target.borrows[0])
			if op.kind is O.BorrowKind.EXCLUSIVE and primary.kind is O.BorrowKind.SHARED:
				raise OwnershipViolation(
					ErrorKind.CONFLICTING_BORROW,
					f"cannot borrow through shared reference `{target.name}` exclusively",
					variable=target.name,
					borrow_id=primary.id,
				)
			if op.kind is O.BorrowKind.EXCLUSIVE:
				child = self._new_borrow(primary.var, op.kind, index, 0, label=op.ref, parent=primary.id)
				borrows = (child, *target.borrows)
			else:
				borrows = target.borrows
		else:
			var = self.values.require_usable(target, index)
			borrow_id = self._new_borrow(target, op.kind, index, 0, label=op.ref)
			self._use_borrows(var.held_borrows, index)
			borrows = (borrow_id, *var.held_borrows)
		if op.ref is None:
			return
		if op.assign:
			slot = self._resolve(op.ref)
			if not isinstance(slot, Reference):
				raise MalformedStreamError(f"cannot assign a borrow to value `{op.ref}`", variable=op.ref)
			slot.borrows = borrows
			slot.assigned = True
			return
		self._check_fresh_ref(op.ref)
		self._bind(op.ref, Reference(op.ref, self._scope, index, borrows, assigned=True))

	def _swap(self, op: O.Swap, index: int) -> None:
		claimed: List[BorrowId] = []
		for slot, name in enumerate((op.left, op.right)):
			binding = self._resolve(name)
			if isinstance(binding, Reference):
				if not binding.assigned:
					raise MalformedStreamError(f"reference `{name}` used before it was assigned", variable=name)
				primary = self.ledger.get(binding.borrows[0])
				if primary.kind is O.BorrowKind.SHARED:
					raise OwnershipViolation(
						ErrorKind.CONFLICTING_BORROW,
						f"cannot swap through shared reference `{name}`",
						variable=name,
						borrow_id=primary.id,
					)
				if primary.id in claimed:
					raise OwnershipViolation(
						ErrorKind.CONFLICTING_BORROW,
						f"`{name}` is used for both sides of one swap",
						variable=name,
						borrow_id=primary.id,
					)
				self._use_ref(binding, index)
				claimed.append(primary.id)
			else:
				var = self.values.require_usable(binding, index)
				claimed.append(self._new_borrow(binding, O.BorrowKind.EXCLUSIVE, index, slot))
				self._use_borrows(var.held_borrows, index)

	def _pack(self, op: O.Pack, index: int) -> None:
		groups: Dict[str, List[BorrowId]] = {}
		stored: List[BorrowId] = []
		for f in op.fields:
			binding = self._resolve(f.name)
			if f.lifetime is None:
				if isinstance(binding, Reference):
					raise OwnershipViolation(
						ErrorKind.LIFETIME_CONFLICT,
						f"reference `{f.name}` stored in `{op.struct}` without a lifetime parameter",
						variable=f.name,
						borrow_id=binding.borrows[0] if binding.borrows else None,
					)
				var = self.values.move_out(binding, index)
				if op.classification is O.Classification.COPY and not var.is_copy:
					raise MalformedStreamError(
						f"Copy aggregate `{op.struct}` cannot hold Move value `{f.name}`",
						variable=f.name,
					)
				stored.extend(var.held_borrows)
				continue
			if not isinstance(binding, Reference):
				raise MalformedStreamError(
					f"field '{f.lifetime} of `{op.struct}` expects a reference, `{f.name}` is a value",
					variable=f.name,
				)
			if not binding.assigned:
				raise MalformedStreamError(f"reference `{f.name}` used before it was assigned", variable=f.name)
			self._check_reborrows(binding, index)
			groups.setdefault(f.lifetime, []).append(binding.borrows[0])
			stored.extend(binding.borrows)
		for param in op.lifetime_params():
			interval = self.solver.unify(LifetimeGroup(param, tuple(groups[param])))
			logger.debug("lifetime '%s of %s resolved to %s", param, op.struct, interval)
		self._use_borrows(stored, index)
		self._declare_var(op.name, op.classification, index, tuple(dict.fromkeys(stored)))


def verify(operations: Iterable[O.Operation], config: Optional[EngineConfig] = None) -> Verdict:
	"""Verify one operation stream with a fresh engine."""
	return VerificationEngine(config or EngineConfig()).verify(operations)


__all__ = ["Reference", "Verdict", "VerificationEngine", "verify"]
