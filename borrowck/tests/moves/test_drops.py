#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Destruction schedule: what is dropped where, and in which order."""

from borrowck.move_tracker import DropRecord
from borrowck.test_support import analyze_sketch

HELPERS = """
extern fn consume(_);
struct Pair { a: String, b: String }
"""


def test_bindings_drop_in_reverse_declaration_order_at_scope_end():
	report = analyze_sketch(
		"""
		fn main() {
			let a = "1";
			let b = "2";
			{
				let c = "3";
			}
		}
		"""
	)
	assert report.drops == [DropRecord("c", 4, 5), DropRecord("b", 2, 6), DropRecord("a", 1, 6)]


def test_shadowed_bindings_are_told_apart_by_declaration():
	report = analyze_sketch(
		"""
		fn main() {
			let s = "a";
			let s = "b";
		}
		"""
	)
	assert report.drops == [DropRecord("s", 2, 3), DropRecord("s", 1, 3)]


def test_moved_binding_is_not_dropped():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main() {
			let s = "a";
			consume(s);
		}
		"""
	)
	assert report.drops == []


def test_partially_moved_binding_drops_remaining_fields():
	report = analyze_sketch(
		HELPERS
		+ """
		fn main(p: Pair) {
			consume(p.a);
		}
		"""
	)
	assert report.drops == [DropRecord("p", 1, 3, partial=True, moved_fields=("a",))]


def test_return_drops_every_open_scope_at_the_return():
	report = analyze_sketch(
		"""
		fn main() {
			let a = "1";
			{
				let b = "2";
				return;
			}
		}
		"""
	)
	assert report.drops == [DropRecord("b", 3, 4), DropRecord("a", 1, 4)]


def test_loop_body_drop_recorded_once():
	report = analyze_sketch(
		"""
		fn main(c: Bool) {
			while c {
				let t = "x";
			}
		}
		"""
	)
	assert [d for d in report.drops if d.binding == "t"] == [DropRecord("t", 4, 5)]
