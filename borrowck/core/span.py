# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span attached to program nodes and findings.

The engine never reads source text itself; spans are whatever the producer of
the program tree (a parser, a test builder) chose to record. `Span()` is the
explicit "unknown location" sentinel so consumers never have to handle None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column location of a node."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@property
	def is_known(self) -> bool:
		return self.line is not None

	@classmethod
	def from_meta(cls, meta: Any, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from a parser position record.

		Works with lark's `Tree.meta` (with `propagate_positions=True`) and any
		object exposing the same attribute names. Empty metas (no tokens were
		consumed) map to the sentinel.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		return cls(
			file=file,
			line=getattr(meta, "line", None),
			column=getattr(meta, "column", None),
			end_line=getattr(meta, "end_line", None),
			end_column=getattr(meta, "end_column", None),
		)

	def describe(self) -> str:
		"""Render as `file:line:col` (parts omitted when unknown)."""
		parts = []
		if self.file:
			parts.append(self.file)
		if self.line is not None:
			col = self.column if self.column is not None else 0
			parts.append(f"{self.line}:{col}")
		return ":".join(parts) if parts else "<unknown location>"


__all__ = ["Span"]
