# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow kinds and the frozen borrow summary carried by findings.

The live loan records used during checking live in `borrow_checker_pass`; this
module only holds what outlives a checker run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class LoanKind(Enum):
	"""Shared (`&`) or exclusive (`&mut`) access."""

	SHARED = auto()
	EXCLUSIVE = auto()

	@property
	def sigil(self) -> str:
		return "&mut" if self is LoanKind.EXCLUSIVE else "&"


@dataclass(frozen=True)
class BorrowInfo:
	"""
	Snapshot of a borrow for reporting.

	`start` is the position the borrow was taken at; `end` the last position it
	is considered live (equal to `start` for a request that was never granted).
	"""

	place: str
	kind: LoanKind
	start: int
	end: int


__all__ = ["LoanKind", "BorrowInfo"]
