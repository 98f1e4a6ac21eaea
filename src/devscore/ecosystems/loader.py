"""Load ecosystem definitions from YAML files or the built-in preset."""

from __future__ import annotations

import importlib.resources
import logging
import time
from pathlib import Path

import yaml

from devscore.errors import ConfigError
from devscore.models import EcosystemDefinition, EcosystemSnapshot

logger = logging.getLogger(__name__)

BUILTIN_PRESET = "default"


def load_ecosystems(path: str | Path | None = None) -> EcosystemSnapshot:
    """Load ecosystem definitions from ``path``, or the built-in preset.

    Raises:
        ConfigError: If the file is missing or cannot be parsed.
    """
    if path:
        return _load_from_file(Path(path))
    return _load_builtin(BUILTIN_PRESET)


def _load_builtin(name: str) -> EcosystemSnapshot:
    """Load a built-in preset from package resources."""
    try:
        ref = importlib.resources.files("devscore.ecosystems") / "presets" / f"{name}.yaml"
        text = ref.read_text(encoding="utf-8")
        return parse_ecosystems(text, source=f"builtin:{name}")
    except FileNotFoundError:
        raise ConfigError(f"Built-in ecosystem preset '{name}' not found.") from None


def _load_from_file(path: Path) -> EcosystemSnapshot:
    if not path.exists():
        raise ConfigError(f"Ecosystem file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read ecosystem file '{path}': {exc}") from exc
    return parse_ecosystems(text, source=str(path))


def parse_ecosystems(text: str, source: str = "") -> EcosystemSnapshot:
    """Parse YAML text into an immutable EcosystemSnapshot.

    Entries without a tag are skipped. Duplicate tags are rejected since a
    tag must identify exactly one definition.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in ecosystem definitions {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid ecosystem format in {source}: expected a YAML mapping.")

    entries = data.get("ecosystems", [])
    if not isinstance(entries, list):
        raise ConfigError(f"Invalid ecosystem format in {source}: 'ecosystems' must be a list.")

    definitions: list[EcosystemDefinition] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        tag = str(entry.get("tag", "")).strip()
        if not tag:
            logger.warning("Skipping ecosystem entry without a tag in %s", source)
            continue
        if tag in seen:
            raise ConfigError(f"Duplicate ecosystem tag '{tag}' in {source}.")
        seen.add(tag)
        definitions.append(
            EcosystemDefinition(
                tag=tag,
                description=str(entry.get("description", "")),
                repos=tuple(_strings(entry.get("repos"), lower=True)),
                topics=frozenset(_strings(entry.get("topics"), lower=True)),
                languages=frozenset(_strings(entry.get("languages"), lower=True)),
                keywords=frozenset(_strings(entry.get("keywords"), lower=True)),
                strict=bool(entry.get("strict", False)),
            )
        )

    return EcosystemSnapshot(definitions=tuple(definitions), source=source, loaded_at=time.time())


def _strings(value: object, *, lower: bool = False) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [v.lower() for v in items] if lower else items
