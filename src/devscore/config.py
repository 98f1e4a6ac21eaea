"""Load engine configuration from YAML with environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from devscore.errors import ConfigError
from devscore.models import EventKind

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "DEVSCORE_CONFIG"
ECOSYSTEMS_PATH_ENV = "DEVSCORE_ECOSYSTEMS"
TOKEN_ENV = "GITHUB_TOKEN"

_DEFAULT_BASE_WEIGHTS: dict[str, float] = {
    EventKind.PULL_REQUEST.value: 3.0,
    EventKind.REVIEW.value: 2.0,
    EventKind.COMMIT.value: 1.0,
    EventKind.ISSUE.value: 0.5,
}

_DEFAULT_TIERS: tuple[tuple[float, str], ...] = (
    (80.0, "Elite"),
    (60.0, "Expert"),
    (40.0, "Advanced"),
    (20.0, "Intermediate"),
    (0.0, "Beginner"),
)


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    """Scoring policy injected into the normalizer and aggregator."""

    base_weights: dict[str, float] = field(default_factory=lambda: dict(_DEFAULT_BASE_WEIGHTS))
    maintainer_bonus_rate: float = 0.5
    maintainer_bonus_cap: float = 10.0
    cross_ecosystem_scale: float = 2.0
    cross_ecosystem_cap: float = 10.0
    fork_discount: float = 1.0
    tiers: tuple[tuple[float, str], ...] = _DEFAULT_TIERS

    def weight_for(self, kind: EventKind) -> float:
        return self.base_weights.get(kind.value, 0.0)


@dataclass(frozen=True, slots=True)
class FetchConfig:
    per_page: int = 100
    max_pages: int = 10
    fetch_budget_seconds: float = 12.0
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 8.0
    repo_concurrency: int = 5
    requests_per_second: float = 10.0
    burst: int = 10


@dataclass(frozen=True, slots=True)
class EngineConfig:
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    github_token: str = ""
    api_base_url: str = "https://api.github.com"
    request_timeout_seconds: float = 25.0
    now_granularity_seconds: int = 60
    default_window_days: int = 180
    max_window_days: int = 365
    ecosystems_path: str = ""
    ecosystems_reload_seconds: float = 0.0


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Build an EngineConfig from defaults, an optional YAML file, and env vars.

    Resolution order: explicit ``path``, then ``$DEVSCORE_CONFIG``. A missing
    file is an error only when a path was given explicitly.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    explicit = path is not None
    raw_path = str(path) if explicit else os.environ.get(CONFIG_PATH_ENV, "")
    data: dict = {}
    if raw_path:
        config_file = Path(raw_path)
        if config_file.exists():
            data = _read_yaml(config_file)
        elif explicit:
            raise ConfigError(f"Config file not found: {config_file}")
        else:
            logger.warning(
                "%s points to missing file %s, using defaults", CONFIG_PATH_ENV, raw_path
            )

    config = parse_config(data)

    env_token = os.environ.get(TOKEN_ENV, "").strip()
    env_ecosystems = os.environ.get(ECOSYSTEMS_PATH_ENV, "").strip()
    overrides: dict[str, object] = {}
    if env_token:
        overrides["github_token"] = env_token
    if env_ecosystems:
        overrides["ecosystems_path"] = env_ecosystems
    if overrides:
        config = replace(config, **overrides)  # type: ignore[arg-type]
    return config


def parse_config(data: dict) -> EngineConfig:
    """Validate a raw mapping (as read from YAML) into an EngineConfig."""
    if not isinstance(data, dict):
        raise ConfigError("Invalid config format: expected a YAML mapping.")

    scoring_raw = _section(data, "scoring")
    fetch_raw = _section(data, "fetch")

    weights = dict(_DEFAULT_BASE_WEIGHTS)
    for kind, value in _section(scoring_raw, "base_weights").items():
        try:
            EventKind(kind)
        except ValueError:
            raise ConfigError(f"Unknown event kind in base_weights: '{kind}'") from None
        weights[kind] = _non_negative(f"base_weights.{kind}", value)

    tiers = _DEFAULT_TIERS
    if "tiers" in scoring_raw:
        tiers = _parse_tiers(scoring_raw["tiers"])

    defaults = ScoringConfig()
    scoring = ScoringConfig(
        base_weights=weights,
        maintainer_bonus_rate=_non_negative(
            "maintainer_bonus_rate",
            scoring_raw.get("maintainer_bonus_rate", defaults.maintainer_bonus_rate),
        ),
        maintainer_bonus_cap=_non_negative(
            "maintainer_bonus_cap",
            scoring_raw.get("maintainer_bonus_cap", defaults.maintainer_bonus_cap),
        ),
        cross_ecosystem_scale=_non_negative(
            "cross_ecosystem_scale",
            scoring_raw.get("cross_ecosystem_scale", defaults.cross_ecosystem_scale),
        ),
        cross_ecosystem_cap=_non_negative(
            "cross_ecosystem_cap",
            scoring_raw.get("cross_ecosystem_cap", defaults.cross_ecosystem_cap),
        ),
        fork_discount=_non_negative(
            "fork_discount", scoring_raw.get("fork_discount", defaults.fork_discount)
        ),
        tiers=tiers,
    )

    fetch_defaults = FetchConfig()
    fetch = FetchConfig(
        per_page=min(
            100, _positive_int("per_page", fetch_raw.get("per_page", fetch_defaults.per_page))
        ),
        max_pages=_positive_int("max_pages", fetch_raw.get("max_pages", fetch_defaults.max_pages)),
        fetch_budget_seconds=_positive(
            "fetch_budget_seconds",
            fetch_raw.get("fetch_budget_seconds", fetch_defaults.fetch_budget_seconds),
        ),
        max_retries=int(
            _non_negative("max_retries", fetch_raw.get("max_retries", fetch_defaults.max_retries))
        ),
        backoff_base_seconds=_non_negative(
            "backoff_base_seconds",
            fetch_raw.get("backoff_base_seconds", fetch_defaults.backoff_base_seconds),
        ),
        backoff_max_seconds=_non_negative(
            "backoff_max_seconds",
            fetch_raw.get("backoff_max_seconds", fetch_defaults.backoff_max_seconds),
        ),
        repo_concurrency=_positive_int(
            "repo_concurrency", fetch_raw.get("repo_concurrency", fetch_defaults.repo_concurrency)
        ),
        requests_per_second=_positive(
            "requests_per_second",
            fetch_raw.get("requests_per_second", fetch_defaults.requests_per_second),
        ),
        burst=_positive_int("burst", fetch_raw.get("burst", fetch_defaults.burst)),
    )

    engine_defaults = EngineConfig()
    github_raw = _section(data, "github")
    return EngineConfig(
        scoring=scoring,
        fetch=fetch,
        github_token=str(github_raw.get("token", "")),
        api_base_url=str(github_raw.get("api_base_url", engine_defaults.api_base_url)).rstrip("/"),
        request_timeout_seconds=_positive(
            "request_timeout_seconds",
            data.get("request_timeout_seconds", engine_defaults.request_timeout_seconds),
        ),
        now_granularity_seconds=_positive_int(
            "now_granularity_seconds",
            data.get("now_granularity_seconds", engine_defaults.now_granularity_seconds),
        ),
        default_window_days=_positive_int(
            "default_window_days",
            data.get("default_window_days", engine_defaults.default_window_days),
        ),
        max_window_days=_positive_int(
            "max_window_days", data.get("max_window_days", engine_defaults.max_window_days)
        ),
        ecosystems_path=str(data.get("ecosystems_path", "") or ""),
        ecosystems_reload_seconds=_non_negative(
            "ecosystems_reload_seconds", data.get("ecosystems_reload_seconds", 0.0)
        ),
    )


# ── Parsing helpers ──────────────────────────────────────────


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config file '{path}': {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config format in {path}: expected a YAML mapping.")
    return data


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping.")
    return value


def _number(name: str, value: object) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"Config value '{name}' must be a number, got {value!r}")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigError(f"Config value '{name}' must be a number, got {value!r}") from None


def _non_negative(name: str, value: object) -> float:
    number = _number(name, value)
    if number < 0:
        raise ConfigError(f"Config value '{name}' must not be negative, got {number}")
    return number


def _positive(name: str, value: object) -> float:
    number = _number(name, value)
    if number <= 0:
        raise ConfigError(f"Config value '{name}' must be positive, got {number}")
    return number


def _positive_int(name: str, value: object) -> int:
    return int(_positive(name, value))


def _parse_tiers(raw: object) -> tuple[tuple[float, str], ...]:
    if not isinstance(raw, dict) or not raw:
        raise ConfigError("Config value 'tiers' must be a non-empty mapping of name to threshold.")
    tiers = [
        (_non_negative(f"tiers.{name}", threshold), str(name)) for name, threshold in raw.items()
    ]
    tiers.sort(key=lambda item: item[0], reverse=True)
    return tuple(tiers)
