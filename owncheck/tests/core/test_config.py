# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Engine configuration documents and CLI overrides."""

import json
from pathlib import Path

import pytest

from owncheck.config import EngineConfig, config_from_json, load_config


def _doc(**extra) -> dict:
	return {"format": "owncheck-config", "version": 0, **extra}


def test_defaults_enable_nll():
	cfg = EngineConfig()
	assert cfg.nll is True
	assert cfg.allow_shadowing is False


def test_config_from_json_reads_flags():
	cfg = config_from_json(_doc(nll=False, allow_shadowing=True))
	assert cfg == EngineConfig(nll=False, allow_shadowing=True)


def test_missing_keys_keep_defaults():
	assert config_from_json(_doc()) == EngineConfig()


@pytest.mark.parametrize(
	"doc",
	[
		[],
		{"format": "owncheck-config", "version": 1},
		{"format": "other", "version": 0},
		{"format": "owncheck-config", "version": 0, "nll": "yes"},
		{"format": "owncheck-config", "version": 0, "strict": True},
	],
)
def test_bad_config_documents_rejected(doc):
	with pytest.raises(ValueError):
		config_from_json(doc)


def test_with_overrides_only_touches_given_values():
	cfg = EngineConfig(nll=False)
	assert cfg.with_overrides() is cfg
	assert cfg.with_overrides(allow_shadowing=True) == EngineConfig(nll=False, allow_shadowing=True)
	assert cfg.with_overrides(nll=True).nll is True


def test_load_config_from_file(tmp_path: Path):
	path = tmp_path / "owncheck.json"
	path.write_text(json.dumps(_doc(nll=False)), encoding="utf-8")
	assert load_config(path).nll is False


def test_load_config_invalid_json(tmp_path: Path):
	path = tmp_path / "owncheck.json"
	path.write_text("{nll: false", encoding="utf-8")
	with pytest.raises(ValueError, match="not valid JSON"):
		load_config(path)
