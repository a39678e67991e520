#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Borrows that outlive their source, and loans carried around loops."""

from borrowck.config import AnalysisOptions
from borrowck.core.diagnostics import AliasConflictError, DanglingBorrowError
from borrowck.test_support import analyze_sketch, findings_of

HELPERS = """
extern fn print(&);
extern fn mutate(&mut);
struct Pair { a: String, b: String }
"""

INNER_SCOPE = (
	HELPERS
	+ """
	fn main() {
		let r: &String;
		{
			let s = "inner";
			r = &s;
		}
		print(r);
	}
	"""
)

INNER_SCOPE_UNUSED = (
	HELPERS
	+ """
	fn main() {
		let r: &String;
		{
			let s = "inner";
			r = &s;
		}
	}
	"""
)


def test_borrow_stored_outside_its_source_scope_dangles():
	report = analyze_sketch(INNER_SCOPE)
	errs = findings_of(report.findings, DanglingBorrowError)
	assert len(errs) == 1
	err = errs[0]
	assert err.pos == 5
	assert err.source_scope_end == 5
	assert (err.borrow.start, err.borrow.end) == (4, 6)
	assert err.borrow.place == "s"
	assert not err.escapes_via_return


def test_stored_but_unused_borrow_still_dangles_by_default():
	report = analyze_sketch(INNER_SCOPE_UNUSED)
	assert len(findings_of(report.findings, DanglingBorrowError)) == 1


def test_later_use_requirement_is_optional():
	opts = AnalysisOptions(dangling_requires_later_use=True)
	assert findings_of(analyze_sketch(INNER_SCOPE_UNUSED, options=opts).findings, DanglingBorrowError) == []
	assert len(findings_of(analyze_sketch(INNER_SCOPE, options=opts).findings, DanglingBorrowError)) == 1


def test_holder_redefined_before_scope_end_does_not_dangle():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let outer = "o";
			let mut r = &outer;
			{
				let s = "inner";
				r = &s;
				print(r);
				r = &outer;
			}
			print(r);
		}
		"""
	)
	assert findings_of(report.findings, DanglingBorrowError) == []


def test_returning_borrow_of_local_escapes():
	report = analyze_sketch(
		"""
		fn make() -> &String {
			let s = "a";
			return &s;
		}
		"""
	)
	errs = findings_of(report.findings, DanglingBorrowError)
	assert len(errs) == 1
	assert errs[0].pos == 2
	assert errs[0].escapes_via_return
	assert errs[0].source_scope_end == 3


def test_returning_borrow_through_reference_parameter_is_fine():
	report = analyze_sketch(
		HELPERS
		+ """
		fn first(p: &Pair) -> &String {
			return &p.a;
		}
		"""
	)
	assert report.findings == []


def test_returning_copied_reference_to_local_escapes():
	report = analyze_sketch(
		"""
		fn make() -> &String {
			let s = "a";
			let r = &s;
			return r;
		}
		"""
	)
	errs = findings_of(report.findings, DanglingBorrowError)
	assert [e.pos for e in errs] == [3]


def test_loan_carried_around_loop_conflicts_on_every_iteration():
	"""`r` is read on the next iteration, so `s` stays shared across the loop."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let mut s = "a";
			let r = &s;
			while c {
				print(r);
				let m = &mut s;
			}
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert len(errs) == 1
	assert errs[0].pos == 7
	assert errs[0].existing.start == 3


def test_loan_not_used_in_loop_ends_before_it():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let mut s = "a";
			let r = &s;
			print(r);
			while c {
				let m = &mut s;
				mutate(m);
			}
		}
		"""
	)
	assert report.findings == []


def test_borrow_taken_fresh_in_each_iteration_does_not_conflict_with_itself():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let mut s = "a";
			while c {
				let m = &mut s;
				mutate(m);
			}
		}
		"""
	)
	assert report.findings == []


def test_loop_holder_reading_previous_iteration_keeps_loan():
	"""`r` is read before being replaced, so the loan from the last iteration is live."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let mut s = "a";
			let t = "t";
			let mut r = &t;
			while c {
				print(r);
				let m = &mut s;
				r = &s;
			}
		}
		"""
	)
	errs = findings_of(report.findings, AliasConflictError)
	assert [e.pos for e in errs] == [8]
