# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Internal-consistency failures.

These are raised (never reported as findings) when the program tree handed to
the engine is malformed: unbalanced scope markers, infinitely sized types, or
node shapes the engine does not know. They abort analysis of the affected
function and must not be attributed to the author of the analyzed program.
"""

from __future__ import annotations

from typing import Optional, Sequence


class InternalConsistencyError(RuntimeError):
	"""Base class for fatal, malformed-input failures."""

	def __init__(self, message: str) -> None:
		super().__init__(message)
		# Filled in by `analyze` so callers know which body was aborted.
		self.function_name: Optional[str] = None


class UnbalancedScopeError(InternalConsistencyError):
	"""Block-exit without a matching block-entry, or a block left open."""

	def __init__(self, message: str, *, position: Optional[int] = None) -> None:
		super().__init__(message)
		self.position = position


class CyclicTypeError(InternalConsistencyError):
	"""A type contains itself by value (no owning indirection on the cycle)."""

	def __init__(self, type_name: str, cycle: Sequence[str]) -> None:
		path = " -> ".join(cycle)
		super().__init__(f"type '{type_name}' contains itself without indirection: {path}")
		self.type_name = type_name
		self.cycle = tuple(cycle)


class MalformedProgramError(InternalConsistencyError):
	"""A node shape the engine does not understand (unknown node class, bad place)."""


__all__ = [
	"InternalConsistencyError",
	"UnbalancedScopeError",
	"CyclicTypeError",
	"MalformedProgramError",
]
