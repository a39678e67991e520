# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow checker pass over one function body.

Runs on top of the move tracker (same walk, same ownership state) and adds
loans:

- `&x` / `&mut x` and auto-borrowed call arguments request a loan on a place,
- a shared request conflicts with a live exclusive loan on an overlapping
  place, an exclusive request with any live overlapping loan,
- a loan's window ends at the last use of the bindings that hold it (a holder
  stops holding when it is re-assigned); a loan nobody holds ends at its own
  statement,
- copying or moving a reference makes the new binding a holder as well,
- a holder declared outside a loop that is used again on the next iteration
  keeps the loan alive for the whole loop,
- reading, moving or writing a place while an incompatible loan is live is
  reported, as is a loan that outlives the scope owning its source.

Writes through `*r` never conflict: an exclusive reference is the only way to
reach its pointee while it is live.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from borrowck import program as P
from borrowck.context import FunctionContext
from borrowck.core.diagnostics import (
	AliasConflictError,
	BorrowOfMovedValueError,
	DanglingBorrowError,
	MoveWhileBorrowedError,
	MutabilityError,
	UseOfUninitializedError,
	WriteWhileBorrowedError,
)
from borrowck.core.loans import BorrowInfo, LoanKind
from borrowck.core.span import Span
from borrowck.move_tracker import MoveTracker
from borrowck.place_types import LocalType, RefType
from borrowck.places import Place, PlaceState, places_overlap
from borrowck.scope_tree import Binding, LoopRange, Scope

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Loan:
	"""
	A borrow of `place` taken at `start`.

	`end` grows as holders are attached. `loop` is set when the loan is carried
	around a loop back edge; it is then live everywhere inside that loop.
	"""

	id: int
	place: Place
	kind: LoanKind
	start: int
	span: Span
	end: int
	holders: List[Tuple[Binding, int]] = field(default_factory=list)
	loop: Optional[LoopRange] = None

	def active_at(self, pos: int) -> bool:
		if self.start <= pos <= self.end:
			return True
		return self.loop is not None and self.loop.contains(pos)

	def info(self) -> BorrowInfo:
		return BorrowInfo(place=self.place.describe(), kind=self.kind, start=self.start, end=self.end)


class BorrowChecker(MoveTracker):
	"""Ownership tracking plus loan bookkeeping for one function."""

	def __init__(self, ctx: FunctionContext) -> None:
		super().__init__(ctx)
		self.loans: List[Loan] = []
		self._loans_by_key: Dict[Tuple[Place, LoanKind, int], Loan] = {}
		self._dangling_reported: set[int] = set()

	# Loan windows

	def _holder_window(self, holder: Binding, since: int) -> Tuple[int, Optional[LoopRange]]:
		"""
		Last position `holder` still reads the value it got at `since`.

		Uses are counted up to and including the next re-definition (which may
		read the old value, as in `r = f(r)`).
		"""
		uses = self.tree.uses_of(holder)
		defs = self.tree.defs_of(holder)
		next_def = next((d for d in defs if d > since), None)
		end = since
		for u in uses:
			if u <= since:
				continue
			if next_def is not None and u > next_def:
				break
			end = u
		carried: Optional[LoopRange] = None
		for lp in self.tree.loops:
			if lp.contains(holder.decl_pos):
				continue
			loop_uses = [u for u in uses if lp.contains(u)]
			if not loop_uses:
				continue
			loop_defs = [d for d in defs if lp.contains(d)]
			if since < lp.start:
				# held into the loop and never replaced there: read on every iteration
				crosses = not loop_defs and (next_def is None or next_def > lp.end)
			elif lp.contains(since):
				# a use that no in-loop definition precedes reads the value
				# left by the previous iteration
				crosses = any(u <= since and not any(d < u for d in loop_defs) for u in loop_uses)
			else:
				continue
			if crosses and (carried is None or lp.start < carried.start):
				carried = lp
		if carried is not None:
			end = max(end, carried.end)
		return end, carried

	def _attach_holder(self, loan: Loan, holder: Binding, since: int) -> None:
		if any(h is holder and s == since for h, s in loan.holders):
			return
		loan.holders.append((holder, since))
		end, loop = self._holder_window(holder, since)
		loan.end = max(loan.end, end)
		if loop is not None and (loan.loop is None or loop.start < loan.loop.start):
			loan.loop = loop
		logger.debug("%s: %s holds loan %d (%s) until %d", self.ctx.fn.name, holder.name, loan.id, loan.place, loan.end)

	def _live_loans(self, place: Place, pos: int, *, exclusive_only: bool = False, skip: Optional[Loan] = None) -> List[Loan]:
		out: List[Loan] = []
		for loan in self.loans:
			if loan is skip:
				continue
			if exclusive_only and loan.kind is not LoanKind.EXCLUSIVE:
				continue
			if loan.active_at(pos) and places_overlap(loan.place, place):
				out.append(loan)
		return out

	# Hooks

	def _borrow_place(self, place: Place, kind: LoanKind, pos: int, span: Span) -> List:
		base_state = self._state.place_states.get(Place(place.base))
		if base_state is PlaceState.UNINIT:
			self._report(UseOfUninitializedError(pos=pos, span=span, binding=place.base.name))
			return []
		moved = self._moved_conflict(place)
		if moved is not None:
			site_pos, _site_span = self._state.move_sites.get(moved, (-1, Span()))
			self._report(
				BorrowOfMovedValueError(
					pos=pos,
					span=span,
					binding=place.base.name,
					place=place.describe(),
					moved_place=moved.describe(),
					prior_move_location=site_pos,
				)
			)
			return []
		ref = self.typer.ref_prefix(place)
		if (
			kind is LoanKind.EXCLUSIVE
			and self.ctx.options.check_mutability
			and ref is None
			and not place.base.mutable
		):
			self._report(MutabilityError(pos=pos, span=span, binding=place.base.name, action="borrow"))
			return []
		key = (place, kind, pos)
		same = self._loans_by_key.get(key)
		conflicts = self._live_loans(place, pos, exclusive_only=kind is LoanKind.SHARED, skip=same)
		if conflicts:
			existing = conflicts[0]
			self._report(
				AliasConflictError(
					pos=pos,
					span=span,
					binding=place.base.name,
					existing=existing.info(),
					requested=BorrowInfo(place=place.describe(), kind=kind, start=pos, end=pos),
				)
			)
			return []
		loan = same
		if loan is None:
			loan = Loan(id=len(self.loans), place=place, kind=kind, start=pos, span=span, end=pos)
			self.loans.append(loan)
			self._loans_by_key[key] = loan
			logger.debug("%s: loan %d %s%s at %d", self.ctx.fn.name, loan.id, kind.sigil, place, pos)
		carried: List = [loan]
		if ref is not None:
			# a reborrow through `r` keeps whatever `r` borrows alive as well
			carried.extend(self._carried_by(ref, pos))
		return carried

	def _carried_by(self, place: Place, pos: int) -> List:
		return [
			loan
			for loan in self.loans
			if loan.active_at(pos) and any(h is place.base and self._still_holds(h, since, pos) for h, since in loan.holders)
		]

	def _still_holds(self, holder: Binding, since: int, pos: int) -> bool:
		# a re-definition in between replaced the value; one at `pos` itself
		# happens after `pos` reads the old value
		return not any(since < d < pos for d in self.tree.defs_of(holder))

	def _bind_carried(self, carried: List, binding: Binding, pos: int) -> None:
		for loan in carried:
			self._attach_holder(loan, binding, pos)

	def _on_read(self, place: Place, pos: int, span: Span) -> None:
		conflicts = self._live_loans(place, pos, exclusive_only=True)
		if conflicts:
			self._report(
				AliasConflictError(
					pos=pos,
					span=span,
					binding=place.base.name,
					existing=conflicts[0].info(),
					requested=BorrowInfo(place=place.describe(), kind=LoanKind.SHARED, start=pos, end=pos),
				)
			)

	def _on_move(self, place: Place, pos: int, span: Span) -> None:
		if not self.ctx.options.report_moves_while_borrowed:
			return
		conflicts = self._live_loans(place, pos)
		if conflicts:
			self._report(
				MoveWhileBorrowedError(
					pos=pos,
					span=span,
					binding=place.base.name,
					place=place.describe(),
					borrow=conflicts[0].info(),
				)
			)

	def _on_write(self, place: Place, pos: int, span: Span) -> None:
		b = place.base
		if self.ctx.options.check_mutability and not b.mutable:
			if self._state.place_states.get(Place(b)) is not PlaceState.UNINIT:
				self._report(MutabilityError(pos=pos, span=span, binding=b.name, action="assign"))
		if not self.ctx.options.report_writes_while_borrowed:
			return
		conflicts = self._live_loans(place, pos)
		if conflicts:
			self._report(
				WriteWhileBorrowedError(
					pos=pos,
					span=span,
					binding=b.name,
					place=place.describe(),
					existing=conflicts[0].info(),
				)
			)

	def _on_return(self, carried: List, pos: int, span: Span) -> None:
		for loan in carried:
			if self.typer.ref_prefix(loan.place) is not None:
				continue
			self._dangling_reported.add(loan.id)
			self._report(
				DanglingBorrowError(
					pos=pos,
					span=span,
					borrow=loan.info(),
					source_scope_end=loan.place.base.scope.end,
					escapes_via_return=True,
				)
			)

	def _on_scope_exit(self, scope: Scope) -> None:
		for loan in self.loans:
			if loan.id in self._dangling_reported or loan.place.base.scope is not scope:
				continue
			if self.typer.ref_prefix(loan.place) is not None:
				continue
			if not self._outlives(loan, scope):
				continue
			self._dangling_reported.add(loan.id)
			self._report(
				DanglingBorrowError(
					pos=scope.end,
					span=loan.span,
					borrow=loan.info(),
					source_scope_end=scope.end,
				)
			)

	def _outlives(self, loan: Loan, scope: Scope) -> bool:
		"""True when a holder of `loan` still holds it after `scope` is destroyed."""
		for holder, since in loan.holders:
			if scope.encloses(holder.scope):
				continue
			if any(since < d <= scope.end for d in self.tree.defs_of(holder)):
				continue
			if self.ctx.options.dangling_requires_later_use:
				end, _loop = self._holder_window(holder, since)
				if end <= scope.end:
					continue
			return True
		return False

	def _on_arm_bound(
		self,
		arm: P.MatchArm,
		binders: List[Binding],
		types: List[LocalType],
		scrutinee: Optional[Place],
		pos: int,
		span: Span,
	) -> None:
		if scrutinee is None:
			return
		ref_binders = [b for b, ty in zip(binders, types) if isinstance(ty, RefType)]
		if not ref_binders:
			return
		if arm.by_ref:
			carried = self._borrow_place(scrutinee, LoanKind.SHARED, pos, span)
		else:
			carried = self._carried_by(scrutinee, pos)
		for b in ref_binders:
			self._bind_carried(carried, b, pos)


def check_borrows(ctx: FunctionContext) -> FunctionContext:
	"""Run ownership and borrow checking for the function in `ctx`."""
	checker = BorrowChecker(ctx)
	checker.run()
	logger.debug("%s: %d loan(s), %d finding(s)", ctx.fn.name, len(checker.loans), len(ctx.findings))
	return ctx


__all__ = ["Loan", "BorrowChecker", "check_borrows"]
