"""
Run Configuration
=================
Single source of truth for crawler defaults.

Values are layered, later layers winning:

1. ``_DEFAULTS`` below
2. the ``skills.yaml`` configuration document
3. environment variables (``.env`` is loaded by the CLI via python-dotenv)
4. command-line flags

A malformed document never aborts a run: it is logged and the defaults are
used, unless ``strict=True`` is requested.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import yaml

from .exceptions import ConfigError
from .fetcher import DEFAULT_USER_AGENT
from .rules import RuleConfig, load_rule_file

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "skills.yaml"

ENV_USER_AGENT = "SKILLS_CRAWLER_USER_AGENT"
ENV_WORKERS = "SKILLS_CRAWLER_WORKERS"


# ---------------------------------------------------------------------------
# Canonical defaults
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "output": ".skillscache",
    "flat": False,
    "config": ".skillscontext",       # plain-text rule file
    "file_rename": None,
    "workers": 4,
    "timeout": 30,                    # seconds per request
    "max_retries": 2,
    "user_agent": DEFAULT_USER_AGENT,
}


@dataclass
class SkillsRunConfig:
    """
    Configuration consumed by the crawler and the CLI.

    Populate via:
      - ``SkillsRunConfig()``                    → all defaults
      - ``load_run_config("skills.yaml")``        → from the document
      - ``cfg.apply_env_overrides()`` / ``cfg.apply_cli_overrides(ns)``
    """

    # ---- Output ----
    output: str = _DEFAULTS["output"]
    flat: bool = _DEFAULTS["flat"]
    file_rename: Optional[str] = _DEFAULTS["file_rename"]

    # ---- Rules ----
    config: str = _DEFAULTS["config"]
    patterns: List[str] = field(default_factory=list)
    rules: List[RuleConfig] = field(default_factory=list)
    extra_rules: List[RuleConfig] = field(default_factory=list)

    # ---- Crawl tuning ----
    workers: int = _DEFAULTS["workers"]
    timeout: float = _DEFAULTS["timeout"]
    max_retries: int = _DEFAULTS["max_retries"]
    user_agent: str = _DEFAULTS["user_agent"]

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SkillsRunConfig":
        """
        Build a config from a parsed configuration document.

        Raises:
            ConfigError: if a key has the wrong type
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError(f"configuration must be a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)} - {"extra_rules"}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"[CONFIG] Ignoring unknown keys: {', '.join(map(str, unknown))}")

        cfg = cls()
        for key in ("output", "config", "user_agent"):
            if data.get(key) is not None:
                setattr(cfg, key, _expect(key, data[key], str))
        if data.get("file_rename") is not None:
            cfg.file_rename = _expect("file_rename", data["file_rename"], str) or None
        if data.get("flat") is not None:
            cfg.flat = _expect("flat", data["flat"], bool)
        for key in ("workers", "max_retries"):
            if data.get(key) is not None:
                setattr(cfg, key, _positive_int(key, data[key], allow_zero=key == "max_retries"))
        if data.get("timeout") is not None:
            timeout = data["timeout"]
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ConfigError(f"'timeout' must be a positive number, got {timeout!r}")
            cfg.timeout = timeout

        patterns = data.get("patterns") or []
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ConfigError("'patterns' must be a list of strings")
        cfg.patterns = list(patterns)

        rules = data.get("rules") or []
        if not isinstance(rules, list):
            raise ConfigError("'rules' must be a list")
        cfg.rules = []
        for raw in rules:
            try:
                cfg.rules.append(RuleConfig.from_dict(raw))
            except ConfigError as e:
                logger.warning(f"[CONFIG] Skipping rule: {e}")
        return cfg

    # -----------------------------------------------------------------------
    # Overrides
    # -----------------------------------------------------------------------
    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "SkillsRunConfig":
        """Apply ``SKILLS_CRAWLER_*`` environment variables."""
        environ = os.environ if environ is None else environ

        user_agent = environ.get(ENV_USER_AGENT, "").strip()
        if user_agent:
            self.user_agent = user_agent

        workers = environ.get(ENV_WORKERS, "").strip()
        if workers:
            try:
                self.workers = _positive_int(ENV_WORKERS, int(workers))
            except (ValueError, ConfigError):
                logger.warning(f"[CONFIG] Ignoring invalid {ENV_WORKERS}={workers!r}")
        return self

    def apply_cli_overrides(self, args) -> "SkillsRunConfig":
        """Apply flags from an argparse Namespace; unset flags keep current values."""
        if getattr(args, "output", None):
            self.output = args.output
        if getattr(args, "config", None):
            self.config = args.config
        if getattr(args, "flat", False):
            self.flat = True
        if getattr(args, "rename", None):
            self.file_rename = args.rename
        if getattr(args, "workers", None):
            self.workers = max(1, args.workers)
        return self

    # -----------------------------------------------------------------------
    # Rule collection
    # -----------------------------------------------------------------------
    def collect_rules(self) -> List[Union[str, RuleConfig]]:
        """
        All raw rules in merge order: rule file, ``patterns``, ``rules``,
        then scanned dependency rules.
        """
        merged: List[Union[str, RuleConfig]] = []
        if self.config:
            merged.extend(load_rule_file(self.config))
        merged.extend(self.patterns)
        merged.extend(self.rules)
        merged.extend(self.extra_rules)
        return merged

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("SKILLS CRAWL CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Output:           {self.output} ({'flat' if self.flat else 'hierarchical'})")
        if self.file_rename:
            logger.info(f"  Skill File Name:  {self.file_rename}")
        logger.info(f"  Rule File:        {self.config}")
        logger.info(f"  Patterns:         {len(self.patterns)}")
        logger.info(f"  Rules:            {len(self.rules)}")
        if self.extra_rules:
            logger.info(f"  Dependency Rules: {len(self.extra_rules)}")
        logger.info(f"  Workers:          {self.workers}")
        logger.info(f"  Timeout:          {self.timeout}s per request")
        logger.info(f"  Max Retries:      {self.max_retries}")
        logger.info("=" * 60)


def _expect(key: str, value: Any, kind: type) -> Any:
    if not isinstance(value, kind):
        raise ConfigError(f"'{key}' must be of type {kind.__name__}, got {value!r}")
    return value


def _positive_int(key: str, value: Any, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"'{key}' must be positive, got {value}")
    return value


def load_run_config(
    path: Union[str, Path] = DEFAULT_SETTINGS_FILE,
    strict: bool = False,
) -> SkillsRunConfig:
    """
    Load the configuration document at *path*.

    A missing file yields the defaults.  Invalid YAML or wrong value types
    are logged and the defaults are used, or raised as ``ConfigError`` when
    *strict* is set.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f"[CONFIG] No configuration document at {path}, using defaults")
        return SkillsRunConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        cfg = SkillsRunConfig.from_dict(data)
    except (OSError, yaml.YAMLError, ConfigError) as e:
        if strict:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"could not load {path}: {e}") from e
        logger.warning(f"[CONFIG] Could not load {path}: {e}. Using defaults.")
        return SkillsRunConfig()

    logger.info(f"[CONFIG] Loaded configuration from {path}")
    return cfg
