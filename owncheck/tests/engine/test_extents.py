"""Last-use analysis for borrow creation sites."""

from owncheck import ops as O
from owncheck.extents import compute_extents

MOVE = O.Classification.MOVE
SHARED = O.BorrowKind.SHARED
EXCL = O.BorrowKind.EXCLUSIVE


def test_unused_reference_ends_at_creation():
	ops = [O.Declare("x", MOVE), O.BorrowUse("x", SHARED, ref="r")]
	assert compute_extents(ops).end_for((1, 0)) == 1


def test_reference_ends_at_last_use():
	ops = [
		O.Declare("x", MOVE),
		O.BorrowUse("x", SHARED, ref="r"),
		O.UseRef("r"),
		O.Read("x"),
		O.UseRef("r"),
	]
	assert compute_extents(ops).end_for((1, 0)) == 4


def test_use_through_aggregate_extends_borrow():
	ops = [
		O.Declare("s", MOVE),
		O.BorrowUse("s", SHARED, ref="r"),
		O.Pack("c", "Holder", (O.PackField("r", "a"),)),
		O.Read("c"),
	]
	assert compute_extents(ops).end_for((1, 0)) == 3


def test_assigned_slot_tracks_new_borrow():
	ops = [
		O.DeclareRef("r"),
		O.Declare("x", MOVE),
		O.BorrowUse("x", SHARED, ref="r", assign=True),
		O.UseRef("r"),
	]
	assert compute_extents(ops).end_for((2, 0)) == 3


def test_shadowed_reference_does_not_extend_outer_borrow():
	ops = [
		O.Declare("x", MOVE),
		O.BorrowUse("x", SHARED, ref="r"),
		O.ScopeBegin(),
		O.Declare("y", MOVE),
		O.BorrowUse("y", SHARED, ref="r"),
		O.UseRef("r"),
		O.ScopeEnd(),
	]
	extents = compute_extents(ops)
	assert extents.end_for((1, 0)) == 1
	assert extents.end_for((4, 0)) == 5


def test_lexical_mode_extends_to_scope_end():
	ops = [
		O.ScopeBegin(),
		O.Declare("x", MOVE),
		O.BorrowUse("x", EXCL, ref="m"),
		O.Read("x"),
		O.ScopeEnd(),
	]
	assert compute_extents(ops, nll=True).end_for((2, 0)) == 2
	assert compute_extents(ops, nll=False).end_for((2, 0)) == 4


def test_lexical_mode_root_scope_runs_past_last_op():
	ops = [O.Declare("x", MOVE), O.BorrowUse("x", SHARED, ref="r")]
	assert compute_extents(ops, nll=False).end_for((1, 0)) == 2


def test_temporary_borrow_is_not_extended_in_lexical_mode():
	ops = [O.Declare("x", MOVE), O.BorrowUse("x", SHARED), O.Read("x")]
	assert compute_extents(ops, nll=False).end_for((1, 0)) == 1


def test_next_use_after_an_index():
	ops = [
		O.Declare("x", MOVE),
		O.BorrowUse("x", SHARED, ref="r"),
		O.UseRef("r"),
		O.Declare("y", MOVE),
		O.UseRef("r"),
	]
	extents = compute_extents(ops)
	assert extents.next_use((1, 0), 2) == 4
	assert extents.next_use((1, 0), 4) is None


def test_only_shared_lifetime_parameters_mark_group_stores():
	ops = [
		O.Declare("x", MOVE),
		O.BorrowUse("x", SHARED, ref="r"),
		O.BorrowUse("x", SHARED, ref="q"),
		O.Pack("p", "P", (O.PackField("r", "a"), O.PackField("q", "a"))),
		O.Pack("t", "T", (O.PackField("r", "a"), O.PackField("q", "b"))),
	]
	extents = compute_extents(ops)
	assert extents.stored_in_group((1, 0), 3)
	assert extents.stored_in_group((2, 0), 3)
	assert not extents.stored_in_group((1, 0), 4)
	assert not extents.stored_in_group((2, 0), 4)
