#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Moves, re-initialization and control-flow merges of ownership state."""

from borrowck.core.diagnostics import UseAfterMoveError, UseOfUninitializedError
from borrowck.test_support import analyze_sketch, findings_of

HELPERS = """
extern fn consume(_);
extern fn print(&);
struct Pair { a: String, b: String }
"""


def test_use_after_move_reported_once_with_prior_site():
	"""Passing a String by value twice reports the second use."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let s = "a";
			consume(s);
			consume(s);
		}
		"""
	)
	assert len(report.findings) == 1
	err = report.findings[0]
	assert isinstance(err, UseAfterMoveError)
	assert err.pos == 3
	assert err.prior_move_location == 2
	assert err.place == "s"
	assert err.span.line is not None


def test_copy_values_are_never_moved():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let n = 1;
			consume(n);
			consume(n);
			let m = n + 2;
		}
		"""
	)
	assert report.findings == []


def test_reassignment_reinitializes():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let mut s = "a";
			consume(s);
			s = "b";
			consume(s);
		}
		"""
	)
	assert report.findings == []


def test_move_in_one_branch_is_a_move_after_the_join():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let s = "a";
			if c {
				consume(s);
			}
			consume(s);
		}
		"""
	)
	errs = findings_of(report.findings, UseAfterMoveError)
	assert len(errs) == 1
	assert errs[0].pos == 7
	assert errs[0].prior_move_location == 5


def test_branch_that_returns_does_not_contribute_to_the_join():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let s = "a";
			if c {
				consume(s);
				return;
			}
			consume(s);
		}
		"""
	)
	assert report.findings == []


def test_move_inside_loop_reported_on_next_iteration_only_once():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let s = "a";
			while c {
				consume(s);
			}
		}
		"""
	)
	errs = findings_of(report.findings, UseAfterMoveError)
	assert len(errs) == 1
	assert errs[0].pos == 5
	assert errs[0].prior_move_location == 5


def test_value_created_inside_loop_may_be_moved_each_iteration():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			while c {
				let s = "a";
				consume(s);
			}
		}
		"""
	)
	assert report.findings == []


def test_use_of_uninitialized_binding():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let s: String;
			consume(s);
		}
		"""
	)
	errs = findings_of(report.findings, UseOfUninitializedError)
	assert [(e.pos, e.binding) for e in errs] == [(2, "s")]


def test_initialized_on_one_path_only_is_uninitialized():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let s: String;
			if c {
				s = "a";
			}
			consume(s);
		}
		"""
	)
	errs = findings_of(report.findings, UseOfUninitializedError)
	assert [e.pos for e in errs] == [7]


def test_initialized_on_every_path_is_usable():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(c: Bool) {
			let s: String;
			if c {
				s = "a";
			} else {
				s = "b";
			}
			consume(s);
		}
		"""
	)
	assert report.findings == []


def test_partial_move_blocks_whole_use_but_not_sibling():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(p: Pair) {
			consume(p.a);
			print(p.b);
			consume(p);
		}
		"""
	)
	errs = findings_of(report.findings, UseAfterMoveError)
	assert len(errs) == 1
	assert errs[0].pos == 4
	assert errs[0].place == "p"
	assert errs[0].moved_place == "p.a"
	assert errs[0].prior_move_location == 2


def test_field_write_into_moved_aggregate_is_reported():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(mut p: Pair) {
			consume(p);
			p.a = "x";
		}
		"""
	)
	errs = findings_of(report.findings, UseAfterMoveError)
	assert [e.pos for e in errs] == [3]


def test_moving_through_a_reference_is_only_a_read():
	"""A value behind `&` is not owned by the function and cannot be moved out."""
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(p: &Pair) {
			let x = p.a;
			let y = p.a;
		}
		"""
	)
	assert findings_of(report.findings, UseAfterMoveError) == []


def test_constructor_consumes_its_arguments():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let a = "a";
			let b = "b";
			let p = Pair(a, b);
			consume(a);
		}
		"""
	)
	errs = findings_of(report.findings, UseAfterMoveError)
	assert [(e.pos, e.place) for e in errs] == [(4, "a")]
