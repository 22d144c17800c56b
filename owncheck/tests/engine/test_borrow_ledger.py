# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Borrow ledger: exclusion rule, watermarks, finalization and scope bounds."""

import pytest

from owncheck.borrow_ledger import BorrowLedger
from owncheck.core.errors import ErrorKind, OwnershipViolation
from owncheck.ops import BorrowKind

SHARED = BorrowKind.SHARED
EXCL = BorrowKind.EXCLUSIVE


def _violation(fn, *args, **kwargs) -> OwnershipViolation:
	with pytest.raises(OwnershipViolation) as info:
		fn(*args, **kwargs)
	return info.value


def test_shared_borrows_coexist():
	ledger = BorrowLedger()
	a = ledger.create_borrow(0, SHARED, 1)
	b = ledger.create_borrow(0, SHARED, 2)
	assert [x.id for x in ledger.live_borrows(0, 2)] == [a, b]


def test_exclusive_conflicts_with_live_shared():
	ledger = BorrowLedger()
	shared = ledger.create_borrow(0, SHARED, 1, label="r")
	err = _violation(ledger.create_borrow, 0, EXCL, 2, var_name="x")
	assert err.kind is ErrorKind.CONFLICTING_BORROW
	assert err.borrow_id == shared
	assert err.variable == "x"
	assert "`r`" in err.notes[0]


def test_shared_conflicts_with_live_exclusive():
	ledger = BorrowLedger()
	ledger.create_borrow(0, EXCL, 1)
	err = _violation(ledger.create_borrow, 0, SHARED, 2)
	assert err.kind is ErrorKind.CONFLICTING_BORROW


def test_second_exclusive_conflicts():
	ledger = BorrowLedger()
	ledger.create_borrow(0, EXCL, 1)
	assert _violation(ledger.create_borrow, 0, EXCL, 2).kind is ErrorKind.CONFLICTING_BORROW


def test_finalized_borrow_no_longer_conflicts():
	ledger = BorrowLedger()
	shared = ledger.create_borrow(0, SHARED, 1)
	ledger.record_use(shared, 3)
	borrow = ledger.finalize(shared)
	assert (borrow.start, borrow.end) == (1, 3)
	assert borrow.live_at(3)
	assert not borrow.live_at(4)
	ledger.create_borrow(0, EXCL, 4)


def test_borrows_of_other_variables_never_conflict():
	ledger = BorrowLedger()
	ledger.create_borrow(0, EXCL, 1)
	ledger.create_borrow(1, EXCL, 2)
	assert len(ledger.open_borrows(0)) == 1
	assert len(ledger.open_borrows(1)) == 1


def test_use_after_finalize_is_stale():
	ledger = BorrowLedger()
	b = ledger.create_borrow(0, SHARED, 1)
	ledger.finalize(b)
	err = _violation(ledger.record_use, b, 5)
	assert err.kind is ErrorKind.STALE_USE
	assert "already finalized" in err.notes[0]


def test_out_of_order_use_is_stale():
	ledger = BorrowLedger()
	b = ledger.create_borrow(0, SHARED, 1)
	ledger.record_use(b, 6)
	assert _violation(ledger.record_use, b, 4).kind is ErrorKind.STALE_USE


def test_use_past_owner_scope_outlives_owner():
	ledger = BorrowLedger()
	b = ledger.create_borrow(0, SHARED, 2)
	ledger.bound_by_scope(0, 4)
	ledger.record_use(b, 4)
	err = _violation(ledger.record_use, b, 5, var_name="x")
	assert err.kind is ErrorKind.BORROW_OUTLIVES_OWNER
	assert err.message == "`x` does not live long enough"


def test_finalize_twice_is_an_internal_error():
	ledger = BorrowLedger()
	b = ledger.create_borrow(0, SHARED, 0)
	ledger.finalize(b)
	with pytest.raises(AssertionError):
		ledger.finalize(b)


def test_describe_mentions_kind_and_label():
	ledger = BorrowLedger()
	b = ledger.create_borrow(0, EXCL, 2, label="mx")
	assert ledger.get(b).describe() == "borrow #0 `mx` (&mut, created at op 2, last used at op 2)"


def test_reborrow_is_nested_in_its_parent():
	ledger = BorrowLedger()
	parent = ledger.create_borrow(0, EXCL, 1, label="m")
	child = ledger.create_borrow(0, EXCL, 2, label="m2", parent=parent)
	assert ledger.get(child).parent == parent
	assert [b.id for b in ledger.live_reborrows(parent, 2)] == [child]
	assert ledger.live_reborrows(child, 2) == []


def test_sibling_reborrows_conflict():
	ledger = BorrowLedger()
	parent = ledger.create_borrow(0, EXCL, 1)
	first = ledger.create_borrow(0, EXCL, 2, parent=parent)
	err = _violation(ledger.create_borrow, 0, EXCL, 3, parent=parent)
	assert err.kind is ErrorKind.CONFLICTING_BORROW
	assert err.borrow_id == first


def test_finished_reborrow_is_not_live():
	ledger = BorrowLedger()
	parent = ledger.create_borrow(0, EXCL, 1)
	child = ledger.create_borrow(0, EXCL, 2, parent=parent)
	ledger.record_use(child, 3)
	ledger.finalize(child)
	assert ledger.live_reborrows(parent, 4) == []
