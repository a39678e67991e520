# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Findings produced by the analysis, and their conversion to diagnostics.

A `Finding` is the structured record of one rule violation in the analyzed
program. The set of finding classes is closed: every consumer dispatches over
all of them (see `describe_finding`) and treats anything else as an internal
bug. Findings carry a `pos` (statement order position inside the function)
used for ordering and a best-effort `span`.

`Diagnostic` is the flat message/code/span record external renderers consume.
The core never prints; it only builds these values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import ClassVar, Optional, Tuple

from borrowck.core.loans import BorrowInfo, LoanKind
from borrowck.core.span import Span


class Component(IntEnum):
	"""Producing component; the value is the ordering priority at equal positions."""

	OWNERSHIP = 0
	BORROW = 1
	EXHAUSTIVENESS = 2


class FindingKind(Enum):
	"""Stable codes for every user-code violation."""

	USE_AFTER_MOVE = "E_USE_AFTER_MOVE"
	USE_OF_UNINITIALIZED = "E_USE_UNINIT"
	MOVE_WHILE_BORROWED = "E_MOVE_WHILE_BORROWED"
	ALIAS_CONFLICT = "E_ALIAS_CONFLICT"
	BORROW_OF_MOVED = "E_BORROW_OF_MOVED"
	DANGLING_BORROW = "E_DANGLING_BORROW"
	WRITE_WHILE_BORROWED = "E_WRITE_WHILE_BORROWED"
	MUTABILITY = "E_MUTABILITY"
	NON_EXHAUSTIVE_MATCH = "E_MATCH_NONEXHAUSTIVE"
	UNREACHABLE_ARM = "E_MATCH_UNREACHABLE_ARM"
	UNKNOWN_VARIANT = "E_MATCH_UNKNOWN_VARIANT"
	NON_VARIANT_SCRUTINEE = "E_MATCH_NOT_VARIANT"


@dataclass(frozen=True, kw_only=True)
class Finding:
	"""Base record: where the violation was detected."""

	kind: ClassVar[FindingKind]
	component: ClassVar[Component]

	pos: int
	span: Span = field(default_factory=Span)

	@property
	def code(self) -> str:
		return self.kind.value


# Ownership stream


@dataclass(frozen=True, kw_only=True)
class UseAfterMoveError(Finding):
	"""`place` was used after `moved_place` (a prefix, sub-place or itself) was moved."""

	kind = FindingKind.USE_AFTER_MOVE
	component = Component.OWNERSHIP

	binding: str
	place: str
	moved_place: str
	prior_move_location: int
	prior_move_span: Span = field(default_factory=Span)


@dataclass(frozen=True, kw_only=True)
class UseOfUninitializedError(Finding):
	kind = FindingKind.USE_OF_UNINITIALIZED
	component = Component.OWNERSHIP

	binding: str


@dataclass(frozen=True, kw_only=True)
class MoveWhileBorrowedError(Finding):
	kind = FindingKind.MOVE_WHILE_BORROWED
	component = Component.OWNERSHIP

	binding: str
	place: str
	borrow: BorrowInfo


# Borrow stream


@dataclass(frozen=True, kw_only=True)
class AliasConflictError(Finding):
	"""
	A borrow (or read) was requested while an incompatible borrow was live.

	`requested` has `start == end == pos`; `existing` is the live borrow with its
	computed window.
	"""

	kind = FindingKind.ALIAS_CONFLICT
	component = Component.BORROW

	binding: str
	existing: BorrowInfo
	requested: BorrowInfo


@dataclass(frozen=True, kw_only=True)
class BorrowOfMovedValueError(Finding):
	kind = FindingKind.BORROW_OF_MOVED
	component = Component.BORROW

	binding: str
	place: str
	moved_place: str
	prior_move_location: int


@dataclass(frozen=True, kw_only=True)
class DanglingBorrowError(Finding):
	"""A borrow is still live where its source is destroyed (scope end or return)."""

	kind = FindingKind.DANGLING_BORROW
	component = Component.BORROW

	borrow: BorrowInfo
	source_scope_end: int
	escapes_via_return: bool = False


@dataclass(frozen=True, kw_only=True)
class WriteWhileBorrowedError(Finding):
	kind = FindingKind.WRITE_WHILE_BORROWED
	component = Component.BORROW

	binding: str
	place: str
	existing: BorrowInfo


@dataclass(frozen=True, kw_only=True)
class MutabilityError(Finding):
	"""Exclusive borrow of, or re-assignment to, an immutable binding."""

	kind = FindingKind.MUTABILITY
	component = Component.BORROW

	binding: str
	action: str  # "borrow" | "assign"


# Exhaustiveness stream


@dataclass(frozen=True, kw_only=True)
class NonExhaustiveMatchError(Finding):
	kind = FindingKind.NON_EXHAUSTIVE_MATCH
	component = Component.EXHAUSTIVENESS

	type_name: str
	missing_variants: Tuple[str, ...]


@dataclass(frozen=True, kw_only=True)
class UnreachableArmError(Finding):
	"""
	An arm can never be selected.

	`variant` is None for a wildcard arm. `first_arm_pos` points at the arm that
	shadows this one.
	"""

	kind = FindingKind.UNREACHABLE_ARM
	component = Component.EXHAUSTIVENESS

	variant: Optional[str]
	first_arm_pos: int
	after_wildcard: bool = False


@dataclass(frozen=True, kw_only=True)
class UnknownVariantError(Finding):
	kind = FindingKind.UNKNOWN_VARIANT
	component = Component.EXHAUSTIVENESS

	type_name: str
	variant: str


@dataclass(frozen=True, kw_only=True)
class NonVariantScrutineeError(Finding):
	kind = FindingKind.NON_VARIANT_SCRUTINEE
	component = Component.EXHAUSTIVENESS

	type_name: str


@dataclass
class Diagnostic:
	"""Flat diagnostic record (message plus code/span/notes) for renderers."""

	message: str
	code: str | None = None
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()


def _borrow_text(info: BorrowInfo) -> str:
	return f"{info.kind.sigil} {info.place}"


def describe_finding(finding: Finding) -> Tuple[str, list[str]]:
	"""Return (message, notes) for a finding."""
	if isinstance(finding, UseAfterMoveError):
		notes = [f"value moved at position {finding.prior_move_location} ({finding.prior_move_span.describe()})"]
		if finding.moved_place != finding.place:
			notes.append(f"'{finding.moved_place}' was moved")
		return f"use after move of '{finding.place}'", notes
	if isinstance(finding, UseOfUninitializedError):
		return f"use of possibly uninitialized '{finding.binding}'", []
	if isinstance(finding, MoveWhileBorrowedError):
		return (
			f"cannot move '{finding.place}' while borrowed",
			[f"borrow `{_borrow_text(finding.borrow)}` taken at {finding.borrow.start} is live until {finding.borrow.end}"],
		)
	if isinstance(finding, AliasConflictError):
		req = finding.requested
		if req.kind is LoanKind.EXCLUSIVE:
			msg = f"cannot borrow '{req.place}' as mutable while it is borrowed"
		else:
			msg = f"cannot access '{req.place}' while it is mutably borrowed"
		ex = finding.existing
		return msg, [f"borrow `{_borrow_text(ex)}` taken at {ex.start} is live until {ex.end}"]
	if isinstance(finding, BorrowOfMovedValueError):
		return (
			f"cannot borrow '{finding.place}': value moved",
			[f"'{finding.moved_place}' moved at position {finding.prior_move_location}"],
		)
	if isinstance(finding, DanglingBorrowError):
		b = finding.borrow
		if finding.escapes_via_return:
			return f"borrow of '{b.place}' escapes the function", [f"'{b.place}' is destroyed at {finding.source_scope_end}"]
		return (
			f"'{b.place}' does not live long enough",
			[f"borrowed at {b.start}, destroyed at {finding.source_scope_end}, borrow still used at {b.end}"],
		)
	if isinstance(finding, WriteWhileBorrowedError):
		ex = finding.existing
		return (
			f"cannot write to '{finding.place}' while it is borrowed",
			[f"borrow `{_borrow_text(ex)}` taken at {ex.start} is live until {ex.end}"],
		)
	if isinstance(finding, MutabilityError):
		if finding.action == "borrow":
			return f"cannot borrow immutable binding '{finding.binding}' as mutable", []
		return f"cannot assign twice to immutable binding '{finding.binding}'", []
	if isinstance(finding, NonExhaustiveMatchError):
		missing = ", ".join(finding.missing_variants)
		return f"non-exhaustive match over '{finding.type_name}' (missing: {missing})", []
	if isinstance(finding, UnreachableArmError):
		what = "wildcard arm" if finding.variant is None else f"arm for '{finding.variant}'"
		reason = "follows a wildcard" if finding.after_wildcard else "duplicates an earlier arm"
		return f"unreachable {what}: {reason}", [f"earlier arm at position {finding.first_arm_pos}"]
	if isinstance(finding, UnknownVariantError):
		return f"'{finding.type_name}' has no variant '{finding.variant}'", []
	if isinstance(finding, NonVariantScrutineeError):
		return f"cannot match on non-variant type '{finding.type_name}'", []
	raise AssertionError(f"unhandled finding type {type(finding).__name__}")


_PHASES = {
	Component.OWNERSHIP: "borrowcheck",
	Component.BORROW: "borrowcheck",
	Component.EXHAUSTIVENESS: "matchcheck",
}


def to_diagnostic(finding: Finding) -> Diagnostic:
	message, notes = describe_finding(finding)
	return Diagnostic(
		message=message,
		code=finding.code,
		phase=_PHASES[finding.component],
		severity="error",
		span=finding.span,
		notes=notes,
	)


__all__ = [
	"Component",
	"FindingKind",
	"Finding",
	"UseAfterMoveError",
	"UseOfUninitializedError",
	"MoveWhileBorrowedError",
	"AliasConflictError",
	"BorrowOfMovedValueError",
	"DanglingBorrowError",
	"WriteWhileBorrowedError",
	"MutabilityError",
	"NonExhaustiveMatchError",
	"UnreachableArmError",
	"UnknownVariantError",
	"NonVariantScrutineeError",
	"Diagnostic",
	"describe_finding",
	"to_diagnostic",
]
