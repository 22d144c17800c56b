# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Engine configuration.

Two knobs change verdicts:
  * `nll` (default on): borrows end at their last use. With it off, a named
	borrow lives until the end of the scope that binds it, which is how the
	discipline behaved before non-lexical lifetimes.
  * `allow_shadowing`: permit re-declaring a live name in the same scope
	(creating a fresh variable) instead of reporting DuplicateBinding.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

CONFIG_FORMAT = "owncheck-config"
CONFIG_VERSION = 0


@dataclass(frozen=True)
class EngineConfig:
	nll: bool = True
	allow_shadowing: bool = False

	def with_overrides(self, *, nll: Optional[bool] = None, allow_shadowing: Optional[bool] = None) -> "EngineConfig":
		"""Apply CLI overrides; `None` keeps the configured value."""
		changes: dict[str, Any] = {}
		if nll is not None:
			changes["nll"] = nll
		if allow_shadowing is not None:
			changes["allow_shadowing"] = allow_shadowing
		return replace(self, **changes) if changes else self


def config_from_json(obj: Mapping[str, Any]) -> EngineConfig:
	"""
	Build an EngineConfig from a decoded config document.

	Format (pinned for v0, JSON):
	{
	  "format": "owncheck-config",
	  "version": 0,
	  "nll": true,               // optional
	  "allow_shadowing": false   // optional
	}
	"""
	if not isinstance(obj, dict):
		raise ValueError("config must be a JSON object")
	if obj.get("format") != CONFIG_FORMAT or obj.get("version") != CONFIG_VERSION:
		raise ValueError("unsupported config format/version")
	unknown = sorted(set(obj) - {"format", "version", "nll", "allow_shadowing"})
	if unknown:
		raise ValueError(f"unknown config key(s): {', '.join(unknown)}")
	values: dict[str, bool] = {}
	for key in ("nll", "allow_shadowing"):
		if key in obj:
			if not isinstance(obj[key], bool):
				raise ValueError(f"config key '{key}' must be a boolean")
			values[key] = obj[key]
	return EngineConfig(**values)


def load_config(path: Path) -> EngineConfig:
	"""Load a config file; raises ValueError on malformed content."""
	try:
		obj = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise ValueError(f"config is not valid JSON: {err}") from err
	return config_from_json(obj)


__all__ = ["EngineConfig", "config_from_json", "load_config", "CONFIG_FORMAT", "CONFIG_VERSION"]
