#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Loan windows and aliasing conflicts."""

from borrowck.config import AnalysisOptions
from borrowck.core.diagnostics import (
	AliasConflictError,
	BorrowOfMovedValueError,
	MoveWhileBorrowedError,
	MutabilityError,
	UseAfterMoveError,
	WriteWhileBorrowedError,
)
from borrowck.core.loans import LoanKind
from borrowck.test_support import analyze_sketch, findings_of

HELPERS = """
extern fn print(&);
extern fn mutate(&mut);
extern fn consume(_);
struct Pair { a: String, b: String }
"""


def test_shared_borrow_ends_at_last_use():
	"""A shared borrow no longer used does not block a later exclusive one."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r1 = &x;
			print(r1);
			let r2 = &mut x;
			mutate(r2);
		}
		"""
	)
	assert report.findings == []


def test_shared_borrow_while_exclusive_is_live():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r1 = &mut x;
			let r2 = &x;
			print(r1);
			print(r2);
		}
		"""
	)
	assert len(report.findings) == 1
	err = report.findings[0]
	assert isinstance(err, AliasConflictError)
	assert err.pos == 3
	assert (err.existing.kind, err.existing.start, err.existing.end) == (LoanKind.EXCLUSIVE, 2, 4)
	assert err.requested.kind is LoanKind.SHARED
	assert (err.requested.start, err.requested.end) == (3, 3)


def test_two_exclusive_borrows_conflict():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r1 = &mut x;
			let r2 = &mut x;
			mutate(r1);
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert [e.pos for e in errs] == [3]
	assert errs[0].requested.kind is LoanKind.EXCLUSIVE


def test_many_shared_borrows_coexist():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let x = "a";
			let r1 = &x;
			let r2 = &x;
			print(r1);
			print(r2);
			print(x);
		}
		"""
	)
	assert report.findings == []


def test_auto_borrowed_argument_conflicts_with_live_exclusive_borrow():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r = &mut x;
			print(x);
			mutate(r);
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert [e.pos for e in errs] == [3]


def test_read_while_exclusively_borrowed():
	report = analyze_sketch(
		HELPERS
		+ """
		extern fn bump(&mut);
		fn main() {
			let mut n = 1;
			let r = &mut n;
			let m = n + 1;
			bump(r);
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert len(errs) == 1
	assert errs[0].pos == 3
	assert errs[0].requested.kind is LoanKind.SHARED


def test_disjoint_fields_may_be_borrowed_exclusively_together():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(mut p: Pair) {
			let x = &mut p.a;
			let y = &mut p.b;
			print(x);
			print(y);
		}
		"""
	)
	assert report.findings == []


def test_borrow_of_whole_conflicts_with_borrow_of_field():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(mut p: Pair) {
			let x = &mut p.a;
			let y = &p;
			print(x);
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert [e.pos for e in errs] == [3]
	assert errs[0].existing.place == "p.a"


def test_move_while_borrowed():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let s = "a";
			let r = &s;
			consume(s);
			print(r);
		}
		"""
	)
	assert len(report.findings) == 1
	err = report.findings[0]
	assert isinstance(err, MoveWhileBorrowedError)
	assert err.pos == 3
	assert (err.borrow.start, err.borrow.end) == (2, 4)


def test_move_while_borrowed_can_be_switched_off():
	source = (
		HELPERS
		+ """
		fn main() {
			let s = "a";
			let r = &s;
			consume(s);
			print(r);
		}
		"""
	)
	report = analyze_sketch(source, options=AnalysisOptions(report_moves_while_borrowed=False))
	assert findings_of(report.findings, MoveWhileBorrowedError) == []


def test_borrow_of_moved_value():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let s = "a";
			consume(s);
			let r = &s;
		}
		"""
	)
	errs = findings_of(report.findings, BorrowOfMovedValueError)
	assert [(e.pos, e.prior_move_location) for e in errs] == [(3, 2)]


def test_write_while_borrowed():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut s = "a";
			let r = &s;
			s = "b";
			print(r);
		}
		"""
	)
	assert len(report.findings) == 1
	err = report.findings[0]
	assert isinstance(err, WriteWhileBorrowedError)
	assert err.pos == 3
	assert err.existing.start == 2


def test_write_through_exclusive_reference_is_allowed():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut s = "a";
			let r = &mut s;
			*r = "b";
			print(r);
		}
		"""
	)
	assert report.findings == []


def test_reborrow_is_allowed_while_the_reference_is_live():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut s = "a";
			let r = &mut s;
			let q = &*r;
			print(q);
			mutate(r);
		}
		"""
	)
	assert report.findings == []


def test_copying_a_reference_extends_the_loan():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut s = "a";
			let r = &s;
			let q = r;
			let m = &mut s;
			print(q);
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert [e.pos for e in errs] == [4]
	assert errs[0].existing.end == 5


def test_reassigned_holder_releases_old_loan():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut a = "a";
			let b = "b";
			let mut r = &a;
			r = &b;
			let m = &mut a;
			print(r);
			mutate(m);
		}
		"""
	)
	assert report.findings == []


def test_copy_taken_after_reassignment_holds_only_the_new_loan():
	"""`t` copies `r` after `r = &y`, so the loan on `x` stays with `s` alone."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let y = "b";
			let mut r = &x;
			let s = r;
			r = &y;
			let t = r;
			print(s);
			let m = &mut x;
			mutate(m);
			print(t);
		}
		"""
	)
	assert report.findings == []


def test_exclusive_reference_moves_instead_of_copying():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r1 = &mut x;
			let r2 = r1;
			mutate(r1);
			mutate(r2);
		}
		"""
	)
	assert len(report.findings) == 1
	err = report.findings[0]
	assert isinstance(err, UseAfterMoveError)
	assert (err.pos, err.binding, err.prior_move_location) == (4, "r1", 3)


def test_exclusive_reference_passed_to_borrowing_parameters_stays_usable():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut x = "a";
			let r = &mut x;
			mutate(r);
			mutate(r);
			print(r);
		}
		"""
	)
	assert report.findings == []


def test_mutability_is_only_checked_when_enabled():
	source = (
		HELPERS
		+ """
		fn main() {
			let s = "a";
			let r = &mut s;
			mutate(r);
		}
		"""
	)
	assert analyze_sketch(source).findings == []
	report = analyze_sketch(source, options=AnalysisOptions(check_mutability=True))
	errs = findings_of(report.findings, MutabilityError)
	assert [(e.pos, e.binding, e.action) for e in errs] == [(2, "s", "borrow")]


def test_assignment_to_immutable_binding():
	report = analyze_sketch(
		"""
		fn main() {
			let s = "a";
			s = "b";
			let t: String;
			t = "c";
			let mut u = "d";
			u = "e";
		}
		""",
		options=AnalysisOptions(check_mutability=True),
	)
	errs = findings_of(report.findings, MutabilityError)
	assert [(e.pos, e.binding, e.action) for e in errs] == [(2, "s", "assign")]
