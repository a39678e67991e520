#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Place construction, overlap and rendering."""

from borrowck import program as P
from borrowck.places import DerefProj, FieldProj, Place, PlaceState, merge_place_state, place_from_expr, places_overlap
from borrowck.scope_tree import build_scope_tree


def _bindings():
	fn = P.FunctionDecl("f", params=[P.Param("x"), P.Param("y")])
	tree = build_scope_tree(fn)
	x, y = tree.root.bindings
	return x, y


def test_overlap_rules():
	x, y = _bindings()
	xa = Place(x, (FieldProj("a"),))
	xb = Place(x, (FieldProj("b"),))
	xab = Place(x, (FieldProj("a"), FieldProj("b")))
	assert places_overlap(Place(x), xa)
	assert places_overlap(xab, xa)
	assert not places_overlap(xa, xb)
	assert not places_overlap(Place(x), Place(y))
	assert places_overlap(Place(x, (DerefProj(),)), Place(x, (FieldProj("a"),)))


def test_prefixes_and_describe():
	x, _ = _bindings()
	p = Place(x, (DerefProj(), FieldProj("name")))
	assert p.prefixes() == (Place(x), Place(x, (DerefProj(),)))
	assert p.describe() == "*x.name"
	assert Place(x, (FieldProj("a"), DerefProj())).describe() == "(*x.a)"
	assert p.through_deref
	assert Place(x).is_prefix_of(p)
	assert not p.is_prefix_of(Place(x))


def test_place_from_expr_ignores_rvalues():
	field = P.Field(P.Deref(P.Var("x")), "a")
	fn = P.FunctionDecl("f", params=[P.Param("x")], body=P.Block([P.ExprStmt(field)]))
	tree = build_scope_tree(fn)
	place = place_from_expr(field, tree)
	assert place.projections == (DerefProj(), FieldProj("a"))
	assert place_from_expr(P.Call("make"), tree) is None
	assert place_from_expr(P.Literal(1), tree) is None


def test_state_merge_prefers_moved_then_uninit():
	assert merge_place_state(PlaceState.OWNED, PlaceState.MOVED) is PlaceState.MOVED
	assert merge_place_state(PlaceState.UNINIT, PlaceState.MOVED) is PlaceState.MOVED
	assert merge_place_state(PlaceState.OWNED, PlaceState.UNINIT) is PlaceState.UNINIT
	assert merge_place_state(PlaceState.OWNED, PlaceState.OWNED) is PlaceState.OWNED
