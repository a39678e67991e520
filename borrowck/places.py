# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Places: the "where" of values.

A Place is a binding plus a path of projections, so `(*r).name` is base `r`
with projections `Deref`, `.name`. Moves, borrows and writes are all tracked
per Place; `places_overlap` is the single source of truth for when two
places may alias.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple

from borrowck import program as P
from borrowck.scope_tree import Binding, ScopeTree


@dataclass(frozen=True)
class FieldProj:
	"""Field access projection (e.g., `.name`)."""

	name: str


@dataclass(frozen=True)
class DerefProj:
	"""Dereference projection (`*p`)."""


Projection = FieldProj | DerefProj


class PlaceState(Enum):
	"""Ownership state recorded for a place."""

	UNINIT = auto()
	OWNED = auto()
	MOVED = auto()


def merge_place_state(a: PlaceState, b: PlaceState) -> PlaceState:
	"""
	Join of two states at a control-flow merge.

	MOVED dominates (moved on any path means moved), then UNINIT (maybe
	uninitialized is uninitialized), then OWNED.
	"""
	if a is b:
		return a
	if PlaceState.MOVED in (a, b):
		return PlaceState.MOVED
	return PlaceState.UNINIT


@dataclass(frozen=True)
class Place:
	"""
	A borrowable/moveable storage location.

	`base` is a Binding (hashed by identity). `projections` capture field and
	deref steps from the base.
	"""

	base: Binding
	projections: Tuple[Projection, ...] = field(default_factory=tuple)

	def with_projection(self, proj: Projection) -> "Place":
		"""Return a new Place with an additional projection appended."""
		return Place(self.base, self.projections + (proj,))

	def prefixes(self) -> Tuple["Place", ...]:
		"""Strict prefixes, shortest first (`x`, `x.a` for `x.a.b`)."""
		return tuple(Place(self.base, self.projections[:n]) for n in range(len(self.projections)))

	def is_prefix_of(self, other: "Place") -> bool:
		return self.base is other.base and other.projections[: len(self.projections)] == self.projections

	@property
	def through_deref(self) -> bool:
		"""True when the place lives behind a reference/box rather than in the binding."""
		return any(isinstance(p, DerefProj) for p in self.projections)

	def describe(self) -> str:
		text = self.base.name
		for proj in self.projections:
			if isinstance(proj, FieldProj):
				text = f"{text}.{proj.name}"
			elif isinstance(proj, DerefProj):
				text = f"(*{text})" if "." in text else f"*{text}"
			else:
				raise AssertionError(f"unhandled projection {proj!r}")
		return text

	def __str__(self) -> str:
		return self.describe()


def places_overlap(a: Place, b: Place) -> bool:
	"""
	Return True when two places may refer to overlapping storage.

	- Different bases never overlap.
	- Prefix overlap counts: `x` overlaps `x.field`.
	- Field projections are disjoint when the field names differ.
	- Any other mismatch at the same depth is treated as overlapping.
	"""
	if a.base is not b.base:
		return False
	ap = a.projections
	bp = b.projections
	for pa, pb in zip(ap, bp):
		if pa == pb:
			continue
		if isinstance(pa, FieldProj) and isinstance(pb, FieldProj):
			return False
		return True
	return True


def place_from_expr(expr: P.Expr, tree: ScopeTree) -> Optional[Place]:
	"""
	Construct a Place from an expression when it denotes storage.

	Returns None for rvalues (calls, literals, binops, constructors) and for
	names that are not local bindings.
	"""
	if isinstance(expr, P.Var):
		binding = tree.binding_for(expr)
		if binding is None:
			return None
		return Place(binding)
	if isinstance(expr, P.Field):
		base = place_from_expr(expr.subject, tree)
		if base is None:
			return None
		return base.with_projection(FieldProj(expr.name))
	if isinstance(expr, P.Deref):
		base = place_from_expr(expr.subject, tree)
		if base is None:
			return None
		return base.with_projection(DerefProj())
	return None


__all__ = [
	"FieldProj",
	"DerefProj",
	"Projection",
	"PlaceState",
	"merge_place_state",
	"Place",
	"places_overlap",
	"place_from_expr",
]
