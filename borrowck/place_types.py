# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Static types of bindings, places and expressions inside one function.

Bindings declared without a type take it from their initializer. Reference
types produced by `&x` are represented locally (`RefType`) instead of being
interned into the program's TypeTable, so the table is never written during
analysis and concurrent function analyses can share it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from borrowck import program as P
from borrowck.core.types_core import TypeDef, TypeId, TypeKind, TypeTable
from borrowck.places import DerefProj, FieldProj, Place, place_from_expr
from borrowck.scope_tree import Binding, EventKind, ScopeTree


@dataclass(frozen=True)
class RefType:
	"""Reference produced inside the body (`&x`, `&mut x`, `ref` match binders)."""

	inner: "LocalType"
	is_mut: bool = False


LocalType = Union[TypeId, RefType, None]

_COMPARISONS = {
	P.BinaryOp.EQ,
	P.BinaryOp.NE,
	P.BinaryOp.LT,
	P.BinaryOp.LE,
	P.BinaryOp.GT,
	P.BinaryOp.GE,
	P.BinaryOp.AND,
	P.BinaryOp.OR,
}


class PlaceTyper:
	"""
	Types for one function body, computed once in program order.

	`None` means "unknown"; unknown values are treated as owning.
	"""

	def __init__(self, program: P.Program, tree: ScopeTree) -> None:
		self.program = program
		self.table: TypeTable = program.type_table
		self.tree = tree
		self._binding_types: Dict[int, LocalType] = {}
		self._compute()

	# Queries

	def binding_type(self, binding: Binding) -> LocalType:
		return self._binding_types.get(binding.index)

	def type_of_place(self, place: Place) -> LocalType:
		ty = self.binding_type(place.base)
		for proj in place.projections:
			if ty is None:
				return None
			if isinstance(proj, DerefProj):
				ty = self.pointee(ty)
			elif isinstance(proj, FieldProj):
				ty = self.field_type(ty, proj.name)
			else:
				raise AssertionError(f"unhandled projection {proj!r}")
		return ty

	def type_of_expr(self, expr: Optional[P.Expr]) -> LocalType:
		if expr is None:
			return None
		if isinstance(expr, P.Literal):
			# bool before int: bool is an int subclass
			if isinstance(expr.value, bool):
				return self.table.lookup("Bool")
			if isinstance(expr.value, int):
				return self.table.lookup("Int")
			if isinstance(expr.value, str):
				return self.table.lookup("String")
			return None
		if isinstance(expr, (P.Var, P.Field, P.Deref)):
			place = place_from_expr(expr, self.tree)
			if place is not None:
				return self.type_of_place(place)
			if isinstance(expr, P.Field):
				return self.field_type(self.type_of_expr(expr.subject), expr.name)
			if isinstance(expr, P.Deref):
				return self.pointee(self.type_of_expr(expr.subject))
			return None
		if isinstance(expr, P.Borrow):
			return RefType(self.type_of_expr(expr.subject), expr.is_mut)
		if isinstance(expr, P.Call):
			sig = self.program.signature_for(expr.callee)
			return sig.return_type if sig is not None else None
		if isinstance(expr, P.Construct):
			return self.table.lookup(expr.type_name)
		if isinstance(expr, P.Binary):
			if expr.op in _COMPARISONS:
				return self.table.lookup("Bool")
			return self.type_of_expr(expr.left)
		raise AssertionError(f"unhandled expression {type(expr).__name__}")

	def is_copy(self, ty: LocalType) -> bool:
		if isinstance(ty, RefType):
			return not ty.is_mut
		return self.table.is_copy(ty)

	def is_ref(self, ty: LocalType) -> bool:
		if isinstance(ty, RefType):
			return True
		return ty is not None and self.table.get(ty).kind is TypeKind.REF

	def is_mut_ref(self, ty: LocalType) -> bool:
		if isinstance(ty, RefType):
			return ty.is_mut
		return ty is not None and self.table.get(ty).kind is TypeKind.REF and bool(self.table.get(ty).ref_mut)

	def pointee(self, ty: LocalType) -> LocalType:
		if ty is None:
			return None
		if isinstance(ty, RefType):
			return ty.inner
		return self.table.pointee(ty)

	def field_type(self, ty: LocalType, name: str) -> LocalType:
		"""Field of a struct, looking through references and boxes (auto-deref)."""
		td = self.aggregate_def(ty, TypeKind.STRUCT)
		if td is None:
			return None
		fs = td.field_named(name)
		return fs.type_id if fs is not None else None

	def aggregate_def(self, ty: LocalType, kind: TypeKind) -> Optional[TypeDef]:
		"""TypeDef of `kind` reached from `ty` through any number of references/boxes."""
		while ty is not None:
			if isinstance(ty, RefType):
				ty = ty.inner
			else:
				td = self.table.get(ty)
				if td.kind is kind:
					return td
				if td.kind not in (TypeKind.REF, TypeKind.BOX):
					return None
				ty = self.table.pointee(ty)
		return None

	def ref_prefix(self, place: Place) -> Optional[Place]:
		"""
		The longest prefix of `place` that is a reference the rest of the path
		looks through (`*r`, or `r.f` with auto-deref), None for owned storage.
		"""
		found: Optional[Place] = None
		for n in range(len(place.projections)):
			prefix = Place(place.base, place.projections[:n])
			if self.is_ref(self.type_of_place(prefix)):
				found = prefix
		return found

	def describe(self, ty: LocalType) -> str:
		if isinstance(ty, RefType):
			sigil = "&mut " if ty.is_mut else "&"
			return f"{sigil}{self.describe(ty.inner)}"
		return self.table.name_of(ty)

	def scrutinee_type(self, match: P.Match) -> LocalType:
		if match.scrutinee_type is not None:
			return match.scrutinee_type
		return self.type_of_expr(match.scrutinee)

	def arm_binder_types(self, match: P.Match, arm: P.MatchArm) -> List[LocalType]:
		"""
		Types of an arm's binders, in binder order (`_` included).

		Binders are references when the arm is `ref` or the scrutinee itself is
		a reference.
		"""
		scrut_ty = self.scrutinee_type(match)
		td = self.aggregate_def(scrut_ty, TypeKind.VARIANT)
		as_ref = arm.by_ref or self.is_ref(scrut_ty)
		out: List[LocalType] = []
		arm_schema = td.arm_named(arm.variant) if td is not None and arm.variant is not None else None
		for i, _name in enumerate(arm.binders):
			field_ty: LocalType = None
			if arm_schema is not None and i < len(arm_schema.fields):
				field_ty = arm_schema.fields[i].type_id
			out.append(RefType(field_ty, self.is_mut_ref(scrut_ty) and not arm.by_ref) if as_ref else field_ty)
		return out

	# Construction

	def _compute(self) -> None:
		arm_parent: Dict[int, P.Match] = {}
		for ev in self.tree.events:
			if ev.kind is not EventKind.STMT:
				continue
			node = ev.node
			if isinstance(node, P.Param):
				for b in self.tree.bindings_declared_by(node):
					self._binding_types[b.index] = node.type_id
			elif isinstance(node, P.Let):
				ty: LocalType = node.type_id
				if ty is None:
					ty = self.type_of_expr(node.value)
				for b in self.tree.bindings_declared_by(node):
					self._binding_types[b.index] = ty
			elif isinstance(node, P.Match):
				for arm in node.arms:
					arm_parent[id(arm)] = node
			elif isinstance(node, P.MatchArm):
				match = arm_parent.get(id(node))
				if match is None:
					continue
				declared = iter(self.tree.bindings_declared_by(node))
				for name, ty in zip(node.binders, self.arm_binder_types(match, node)):
					if name == "_":
						continue
					b = next(declared)
					self._binding_types[b.index] = ty


__all__ = ["RefType", "LocalType", "PlaceTyper"]
