# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type core and copy classification.

TypeIds are opaque ints indexing into a TypeTable. The universe is small:
scalars, heap-owning leaves, owning boxes, references, structs and variants
(sum types). Structs and variants can be declared before their fields are
known so recursive declarations (through a Box) can be expressed.

Copy classification (`TypeTable.is_copy`) is a pure function of type
structure, memoized per TypeId:
- scalars and shared references are Copy (a reference owns nothing),
- an exclusive reference is unique, so it moves like an owned value,
- owned leaves, boxes and unknown types are not,
- a struct/variant is Copy only if every field of every arm is Copy.

Boxes and references never look at their pointee, which is what makes
recursive types legal. A struct or variant that reaches itself *by value*
would be infinitely sized and raises CyclicTypeError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Sequence

from borrowck.core.errors import CyclicTypeError

logger = logging.getLogger(__name__)

TypeId = int  # opaque handle into the TypeTable


class TypeKind(Enum):
	"""Kinds of types understood by the type core."""

	SCALAR = auto()
	OWNED = auto()
	BOX = auto()
	REF = auto()
	STRUCT = auto()
	VARIANT = auto()
	UNKNOWN = auto()


@dataclass(frozen=True)
class FieldSchema:
	"""Named, typed field of a struct or of a variant arm."""

	name: str
	type_id: TypeId


@dataclass(frozen=True)
class VariantArmSchema:
	"""One alternative of a sum type."""

	name: str
	fields: tuple[FieldSchema, ...] = ()

	def field_named(self, name: str) -> Optional[FieldSchema]:
		for f in self.fields:
			if f.name == name:
				return f
		return None


@dataclass
class TypeDef:
	"""
	Definition of a type stored in the TypeTable.

	`param_types` holds the pointee for BOX/REF. `fields` is only meaningful for
	STRUCT and `arms` only for VARIANT; both are filled when the declaration is
	completed, which is why TypeDef is not frozen.
	"""

	kind: TypeKind
	name: str
	param_types: List[TypeId] = field(default_factory=list)
	ref_mut: bool | None = None  # only meaningful for TypeKind.REF
	fields: List[FieldSchema] = field(default_factory=list)
	arms: List[VariantArmSchema] = field(default_factory=list)

	def arm_named(self, name: str) -> Optional[VariantArmSchema]:
		for arm in self.arms:
			if arm.name == name:
				return arm
		return None

	def field_named(self, name: str) -> Optional[FieldSchema]:
		for f in self.fields:
			if f.name == name:
				return f
		return None

	@property
	def variant_names(self) -> tuple[str, ...]:
		return tuple(arm.name for arm in self.arms)


class TypeTable:
	"""
	Owns TypeIds and answers structural questions about them.

	Named types (scalars, owned leaves, structs, variants) are registered under
	their name so front ends can resolve type references with `lookup`.
	"""

	def __init__(self) -> None:
		self._defs: Dict[TypeId, TypeDef] = {}
		self._by_name: Dict[str, TypeId] = {}
		self._next_id: TypeId = 1  # reserve 0 for "invalid"
		self._ref_cache: Dict[tuple[TypeId, bool], TypeId] = {}
		self._box_cache: Dict[TypeId, TypeId] = {}
		# Copy memo. Writes are idempotent (classification is pure), so
		# concurrent analyses may share one table without locking.
		self._copy_memo: Dict[TypeId, bool] = {}

	# Registration

	def new_scalar(self, name: str) -> TypeId:
		"""Register a scalar (Copy) type such as Int or Bool."""
		return self._add_named(TypeKind.SCALAR, name)

	def new_owned(self, name: str) -> TypeId:
		"""Register a heap-owning leaf type such as String or Vec."""
		return self._add_named(TypeKind.OWNED, name)

	def ensure_int(self) -> TypeId:
		return self._ensure_named(TypeKind.SCALAR, "Int")

	def ensure_bool(self) -> TypeId:
		return self._ensure_named(TypeKind.SCALAR, "Bool")

	def ensure_string(self) -> TypeId:
		return self._ensure_named(TypeKind.OWNED, "String")

	def ensure_unknown(self) -> TypeId:
		return self._ensure_named(TypeKind.UNKNOWN, "Unknown")

	def ensure_ref(self, inner: TypeId) -> TypeId:
		"""Return a stable shared reference TypeId to `inner`."""
		return self._ensure_ref(inner, is_mut=False)

	def ensure_ref_mut(self, inner: TypeId) -> TypeId:
		"""Return a stable exclusive reference TypeId to `inner`."""
		return self._ensure_ref(inner, is_mut=True)

	def ensure_box(self, inner: TypeId) -> TypeId:
		"""Return a stable owning-pointer TypeId to `inner`."""
		if inner not in self._box_cache:
			name = f"Box<{self.get(inner).name}>"
			self._box_cache[inner] = self._add(TypeDef(kind=TypeKind.BOX, name=name, param_types=[inner]))
		return self._box_cache[inner]

	def declare_struct(self, name: str, fields: Optional[Sequence[FieldSchema]] = None) -> TypeId:
		"""Register a struct; fields may be supplied later via `define_struct_fields`."""
		ty = self._add_named(TypeKind.STRUCT, name)
		if fields is not None:
			self.define_struct_fields(ty, fields)
		return ty

	def define_struct_fields(self, ty: TypeId, fields: Sequence[FieldSchema]) -> None:
		td = self.get(ty)
		if td.kind is not TypeKind.STRUCT:
			raise ValueError(f"'{td.name}' is not a struct")
		td.fields = list(fields)
		self._copy_memo.clear()

	def declare_variant(self, name: str, arms: Optional[Sequence[VariantArmSchema]] = None) -> TypeId:
		"""Register a sum type; arms may be supplied later via `define_variant_arms`."""
		ty = self._add_named(TypeKind.VARIANT, name)
		if arms is not None:
			self.define_variant_arms(ty, arms)
		return ty

	def define_variant_arms(self, ty: TypeId, arms: Sequence[VariantArmSchema]) -> None:
		td = self.get(ty)
		if td.kind is not TypeKind.VARIANT:
			raise ValueError(f"'{td.name}' is not a variant")
		td.arms = list(arms)
		self._copy_memo.clear()

	# Queries

	def get(self, ty: TypeId) -> TypeDef:
		"""Fetch the TypeDef for a given TypeId."""
		return self._defs[ty]

	def lookup(self, name: str) -> Optional[TypeId]:
		"""Resolve a named type (None when unknown)."""
		return self._by_name.get(name)

	def name_of(self, ty: Optional[TypeId]) -> str:
		if ty is None:
			return "<unknown>"
		return self.get(ty).name

	def is_copy(self, ty: Optional[TypeId]) -> bool:
		"""
		Return True if values of `ty` may be duplicated bitwise.

		Missing type information is treated as owning (not Copy).
		Raises CyclicTypeError for by-value self-containing types.
		"""
		if ty is None:
			return False
		return self._classify(ty, [])

	def pointee(self, ty: TypeId) -> Optional[TypeId]:
		"""Inner type of a reference or box, None for anything else."""
		td = self.get(ty)
		if td.kind in (TypeKind.REF, TypeKind.BOX) and td.param_types:
			return td.param_types[0]
		return None

	def field_type(self, ty: TypeId, name: str) -> Optional[TypeId]:
		"""Type of struct field `name`, None when absent or not a struct."""
		td = self.get(ty)
		if td.kind is not TypeKind.STRUCT:
			return None
		fs = td.field_named(name)
		return fs.type_id if fs is not None else None

	# Internals

	def _classify(self, ty: TypeId, in_progress: List[TypeId]) -> bool:
		memo = self._copy_memo.get(ty)
		if memo is not None:
			return memo
		td = self.get(ty)
		if td.kind is TypeKind.SCALAR:
			result = True
		elif td.kind is TypeKind.REF:
			result = not td.ref_mut
		elif td.kind in (TypeKind.OWNED, TypeKind.BOX, TypeKind.UNKNOWN):
			result = False
		elif td.kind is TypeKind.STRUCT or td.kind is TypeKind.VARIANT:
			if ty in in_progress:
				start = in_progress.index(ty)
				cycle = [self.get(t).name for t in in_progress[start:]] + [td.name]
				raise CyclicTypeError(td.name, cycle)
			in_progress.append(ty)
			try:
				result = True
				for fs in self._aggregate_fields(td):
					# Keep walking after the first non-Copy field so by-value
					# cycles are reported no matter where they sit.
					if not self._classify(fs.type_id, in_progress):
						result = False
			finally:
				in_progress.pop()
		else:
			raise AssertionError(f"unhandled type kind {td.kind}")
		self._copy_memo[ty] = result
		logger.debug("classified %s as %s", td.name, "copy" if result else "owning")
		return result

	@staticmethod
	def _aggregate_fields(td: TypeDef) -> List[FieldSchema]:
		if td.kind is TypeKind.STRUCT:
			return list(td.fields)
		out: List[FieldSchema] = []
		for arm in td.arms:
			out.extend(arm.fields)
		return out

	def _ensure_named(self, kind: TypeKind, name: str) -> TypeId:
		existing = self._by_name.get(name)
		if existing is not None:
			return existing
		return self._add_named(kind, name)

	def _ensure_ref(self, inner: TypeId, *, is_mut: bool) -> TypeId:
		key = (inner, is_mut)
		if key not in self._ref_cache:
			prefix = "&mut " if is_mut else "&"
			name = f"{prefix}{self.get(inner).name}"
			self._ref_cache[key] = self._add(TypeDef(kind=TypeKind.REF, name=name, param_types=[inner], ref_mut=is_mut))
		return self._ref_cache[key]

	def _add_named(self, kind: TypeKind, name: str) -> TypeId:
		if name in self._by_name:
			raise ValueError(f"type '{name}' is already declared")
		ty = self._add(TypeDef(kind=kind, name=name))
		self._by_name[name] = ty
		return ty

	def _add(self, td: TypeDef) -> TypeId:
		ty_id = self._next_id
		self._next_id += 1
		self._defs[ty_id] = td
		return ty_id


__all__ = ["TypeId", "TypeKind", "TypeDef", "FieldSchema", "VariantArmSchema", "TypeTable"]
