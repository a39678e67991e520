#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Types of bindings and places inferred inside one body."""

from borrowck.context import FunctionContext
from borrowck.place_types import RefType
from borrowck.places import FieldProj, Place
from borrowck.test_support import parse_sketch


def _ctx(source):
	program = parse_sketch(source)
	return FunctionContext.build(program, program.functions[-1])


def _binding(ctx, name):
	return next(b for b in ctx.tree.bindings if b.name == name)


def test_let_without_annotation_takes_initializer_type():
	ctx = _ctx(
		"""
		struct Pair { a: String, b: Int }
		extern fn make() -> Pair;
		fn main() {
			let p = make();
			let r = &mut p.a;
			let n = p.b + 1;
			let ok = n < 3;
		}
		"""
	)
	table = ctx.program.type_table
	typer = ctx.typer
	assert typer.binding_type(_binding(ctx, "p")) == table.lookup("Pair")
	assert typer.binding_type(_binding(ctx, "r")) == RefType(table.lookup("String"), True)
	assert typer.binding_type(_binding(ctx, "n")) == table.lookup("Int")
	assert typer.binding_type(_binding(ctx, "ok")) == table.lookup("Bool")
	assert typer.describe(typer.binding_type(_binding(ctx, "r"))) == "&mut String"
	assert not typer.is_copy(typer.binding_type(_binding(ctx, "r")))


def test_ref_prefix_looks_through_auto_deref():
	ctx = _ctx(
		"""
		struct Pair { a: String, b: Int }
		fn main(p: &Pair, q: Pair) { }
		"""
	)
	p = _binding(ctx, "p")
	q = _binding(ctx, "q")
	typer = ctx.typer
	assert typer.ref_prefix(Place(p, (FieldProj("a"),))) == Place(p)
	assert typer.ref_prefix(Place(q, (FieldProj("a"),))) is None
	assert typer.type_of_place(Place(p, (FieldProj("a"),))) == ctx.program.type_table.lookup("String")
	assert typer.is_copy(typer.binding_type(p))
	assert not typer.is_copy(typer.binding_type(q))


def test_arm_binders_follow_variant_fields():
	ctx = _ctx(
		"""
		type Opt = Some(String, Int) | Nothing;
		fn main(o: Opt) {
			match o {
				Some(s, n) => { },
				ref Some(t, _) => { },
				_ => { },
			}
		}
		"""
	)
	table = ctx.program.type_table
	assert ctx.typer.binding_type(_binding(ctx, "s")) == table.lookup("String")
	assert ctx.typer.binding_type(_binding(ctx, "n")) == table.lookup("Int")
	assert ctx.typer.binding_type(_binding(ctx, "t")) == RefType(table.lookup("String"), False)
