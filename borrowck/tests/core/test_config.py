#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Analysis options and their TOML loading."""

import pytest

from borrowck.config import AnalysisOptions, load_options, options_from_mapping


def test_defaults():
	opts = AnalysisOptions()
	assert opts.workers == 1
	assert not opts.check_mutability
	assert opts.report_moves_while_borrowed
	assert opts.report_writes_while_borrowed
	assert not opts.dangling_requires_later_use
	assert opts.check_exhaustiveness


def test_load_options_reads_tool_table(tmp_path):
	path = tmp_path / "pyproject.toml"
	path.write_text('[project]\nname = "demo"\n\n[tool.borrowck]\nworkers = 3\ncheck_mutability = true\n')
	opts = load_options(path)
	assert opts.workers == 3
	assert opts.check_mutability


def test_load_options_without_table_gives_defaults(tmp_path):
	path = tmp_path / "borrowck.toml"
	path.write_text('[tool.other]\nx = 1\n')
	assert load_options(path) == AnalysisOptions()


def test_unknown_option_is_rejected():
	with pytest.raises(ValueError, match="unknown borrowck option"):
		options_from_mapping({"strict": True})


def test_option_types_are_checked():
	with pytest.raises(ValueError):
		options_from_mapping({"workers": "4"})
	with pytest.raises(ValueError):
		options_from_mapping({"workers": True})
	with pytest.raises(ValueError):
		options_from_mapping({"check_mutability": 1})


def test_workers_must_be_positive():
	with pytest.raises(ValueError):
		AnalysisOptions(workers=0)
