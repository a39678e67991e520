# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Merge the per-stream finding lists of one function into report order."""

from __future__ import annotations

from itertools import chain
from typing import Iterable, List, Sequence

from borrowck.core.diagnostics import Diagnostic, Finding, to_diagnostic


def collect(results: Iterable[Sequence[Finding]]) -> List[Finding]:
	"""
	Concatenate finding streams and order them by position, then by component
	(ownership, borrow, exhaustiveness). The sort is stable, so findings of the
	same component at the same position keep their detection order.
	"""
	return sorted(chain.from_iterable(results), key=lambda f: (f.pos, f.component))


def to_diagnostics(findings: Iterable[Finding]) -> List[Diagnostic]:
	return [to_diagnostic(f) for f in findings]


__all__ = ["collect", "to_diagnostics"]
