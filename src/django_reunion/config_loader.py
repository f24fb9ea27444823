"""TOML loader for the ticket tier catalog.

Loads and validates a tier catalog file (see ``examples/tiers.example.toml``)
so that admission, apparel, and add-on tiers can be created or brought up to
date programmatically.
"""

import tomllib
from pathlib import Path
from typing import Any

from django.utils.text import slugify

_REQUIRED_TIER_FIELDS: set[str] = {"name", "price_cents"}
_TIER_KINDS: frozenset[str] = frozenset({"admission", "apparel", "addon"})
_OPTIONAL_INT_FIELDS: tuple[str, ...] = ("age_min", "age_max", "inventory", "position")


def _ensure_slugs(items: list[dict[str, Any]], label: str) -> None:
    """Add a ``slug`` key derived from ``name`` to each item that lacks one."""
    for idx, item in enumerate(items):
        if "slug" not in item:
            item["slug"] = slugify(item["name"])
        if not isinstance(item["slug"], str) or not item["slug"]:
            msg = f"{label}[{idx}].slug must be a non-empty string"
            raise ValueError(msg)


def _validate_unique_slugs(items: list[dict[str, Any]], label: str) -> None:
    """Ensure no two items share a slug."""
    seen: set[str] = set()
    duplicates: set[str] = set()
    for item in items:
        slug = item["slug"]
        if slug in seen:
            duplicates.add(slug)
        seen.add(slug)

    if duplicates:
        msg = f"{label} has duplicate slugs: {', '.join(sorted(duplicates))}"
        raise ValueError(msg)


def _validate_non_negative_int(value: object, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"{label} must be a non-negative integer"
        raise ValueError(msg)


def _validate_tier(tier: dict[str, Any], label: str) -> None:
    _validate_mapping(tier, _REQUIRED_TIER_FIELDS, label)

    if not isinstance(tier["name"], str) or not tier["name"].strip():
        msg = f"{label}.name must be a non-empty string"
        raise ValueError(msg)

    _validate_non_negative_int(tier["price_cents"], f"{label}.price_cents")
    for field in _OPTIONAL_INT_FIELDS:
        if field in tier:
            _validate_non_negative_int(tier[field], f"{label}.{field}")

    kind = tier.setdefault("kind", "admission")
    if kind not in _TIER_KINDS:
        msg = f"{label}.kind must be one of: {', '.join(sorted(_TIER_KINDS))}"
        raise ValueError(msg)

    age_min = tier.get("age_min")
    age_max = tier.get("age_max")
    if age_min is not None and age_max is not None and age_min > age_max:
        msg = f"{label} has age_min ({age_min}) greater than age_max ({age_max})"
        raise ValueError(msg)


def load_tier_config(path: str | Path) -> list[dict[str, Any]]:
    """Load and validate a tier catalog TOML file.

    The file holds an array of ``[[tiers]]`` tables. Each needs ``name`` and
    ``price_cents``; ``kind`` defaults to ``"admission"``, and age bounds
    (``age_min``/``age_max``), ``inventory``, ``position``, ``description``,
    ``currency``, and ``is_active`` are optional. Slugs are derived from the
    name when not given.

    Args:
        path: Filesystem path to the TOML file.

    Returns:
        The validated list of tier mappings.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TypeError: If a tier entry is not a table.
        ValueError: If required keys are missing, values are out of range,
            or the file is not valid TOML.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Tier config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as fh:
        try:
            data: dict[str, Any] = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc

    tiers = data.get("tiers")
    if not isinstance(tiers, list) or not tiers:
        msg = "Missing required [[tiers]] entries in config file"
        raise ValueError(msg)

    for idx, tier in enumerate(tiers):
        _validate_tier(tier, f"tiers[{idx}]")

    _ensure_slugs(tiers, "tiers")
    _validate_unique_slugs(tiers, "tiers")
    return tiers


def _validate_mapping(mapping: object, required: set[str], label: str) -> None:
    """Validate that *mapping* is a dict containing all *required* keys.

    Raises:
        TypeError: If *mapping* is not a dict.
        ValueError: If *mapping* is missing required keys.
    """
    if not isinstance(mapping, dict):
        msg = f"{label} must be a mapping, got {type(mapping).__name__}"
        raise TypeError(msg)
    missing = required - mapping.keys()
    if missing:
        msg = f"{label} is missing required fields: {', '.join(sorted(missing))}"
        raise ValueError(msg)
