# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Analysis options and their TOML loading.

Options can be built directly or read from the `[tool.borrowck]` table of a
TOML file (typically the analyzed project's pyproject.toml or a dedicated
borrowck.toml):

	[tool.borrowck]
	workers = 4
	check_mutability = true
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
	"""
	Knobs for one `analyze` run.

	workers: function bodies analyzed concurrently (1 = sequential).
	check_mutability: report `&mut` of, and re-assignment to, immutable bindings.
	report_moves_while_borrowed: report moving a place that has a live borrow.
	report_writes_while_borrowed: report assigning a place that has a live borrow.
	dangling_requires_later_use: only report a borrow stored past its source's
	  scope when the holder is actually used after that scope ends.
	check_exhaustiveness: run the match exhaustiveness stream.
	"""

	workers: int = 1
	check_mutability: bool = False
	report_moves_while_borrowed: bool = True
	report_writes_while_borrowed: bool = True
	dangling_requires_later_use: bool = False
	check_exhaustiveness: bool = True

	def __post_init__(self) -> None:
		if self.workers < 1:
			raise ValueError(f"workers must be >= 1 (got {self.workers})")


def options_from_mapping(data: Mapping[str, Any]) -> AnalysisOptions:
	"""Build options from a plain mapping; unknown keys are rejected."""
	known = {f.name: f for f in fields(AnalysisOptions)}
	kwargs: dict[str, Any] = {}
	for key, value in data.items():
		if key not in known:
			raise ValueError(f"unknown borrowck option '{key}'")
		expected = int if known[key].name == "workers" else bool
		if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
			raise ValueError(f"option '{key}' must be {expected.__name__}, got {type(value).__name__}")
		kwargs[key] = value
	return AnalysisOptions(**kwargs)


def load_options(path: Path) -> AnalysisOptions:
	"""
	Read options from the `[tool.borrowck]` table of a TOML file.

	A file without the table yields default options.
	"""
	with open(path, "rb") as f:
		data = tomllib.load(f)
	table = data.get("tool", {}).get("borrowck")
	if table is None:
		logger.debug("no [tool.borrowck] table in %s; using defaults", path)
		return AnalysisOptions()
	return options_from_mapping(table)


__all__ = ["AnalysisOptions", "options_from_mapping", "load_options"]
