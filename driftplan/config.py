"""TOML-based planner configuration.

Loads ~/.driftplan/defaults.toml (global) and driftplan.toml (project),
merges them, and resolves the result into a PlannerConfig.

Example driftplan.toml::

    [planner]
    recreate_deployment = false
    skip_drain = false

    [dns]
    domain_name = "bosh"

    [logging]
    level = "DEBUG"
    console = true
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeAlias

from driftplan.constants import DEFAULT_DNS_DOMAIN
from driftplan.observability.logging import LogConfig

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".driftplan" / "defaults.toml"
PROJECT_CONFIG_NAME = "driftplan.toml"

_SECTIONS = ("planner", "dns", "logging")
_PLANNER_KEYS = frozenset({"recreate_deployment", "skip_drain"})
_DNS_KEYS = frozenset({"domain_name"})
_LOGGING_KEYS = frozenset({"level", "file", "console", "rotation", "retention"})


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def _check_keys(section: str, raw: RawConfig, allowed: frozenset[str]) -> None:
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(
            f"Unknown key(s) in [{section}]: {', '.join(sorted(unknown))}. "
            f"Valid: {', '.join(sorted(allowed))}"
        )


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    for section in _SECTIONS:
        merged.setdefault(section, {})
    return merged


@dataclass(frozen=True, slots=True)
class PlannerConfig:
    """Settings applied to every plan the planner builds.

    Attributes:
        recreate_deployment: Force the recreate change on every plan.
        skip_drain: Carried on plans for the convergence stage.
        dns_domain: Top-level domain of generated DNS record names.
        log: Logging sinks.
    """

    recreate_deployment: bool = False
    skip_drain: bool = False
    dns_domain: str = DEFAULT_DNS_DOMAIN
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_dict(cls, raw: RawConfig) -> PlannerConfig:
        unknown = set(raw) - set(_SECTIONS)
        if unknown:
            raise ValueError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

        planner = dict(raw.get("planner") or {})
        dns = dict(raw.get("dns") or {})
        logging_ = dict(raw.get("logging") or {})
        _check_keys("planner", planner, _PLANNER_KEYS)
        _check_keys("dns", dns, _DNS_KEYS)
        _check_keys("logging", logging_, _LOGGING_KEYS)

        if "level" in logging_:
            logging_["level"] = str(logging_["level"]).upper()
        if logging_.get("file") == "":
            logging_["file"] = None

        return cls(
            recreate_deployment=bool(planner.get("recreate_deployment", False)),
            skip_drain=bool(planner.get("skip_drain", False)),
            dns_domain=dns.get("domain_name", DEFAULT_DNS_DOMAIN),
            log=LogConfig(**logging_),
        )


def resolve_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> PlannerConfig:
    return PlannerConfig.from_dict(load_config(project_dir=project_dir, global_path=global_path))
