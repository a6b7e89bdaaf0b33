"""Loads a local site directory into assets and settings.

The site's ``ws-resources.json`` (when present) supplies headers, routes,
metadata, the site name and the published object id. Its ``ignore`` list
holds regular expressions matched against each file's site path; matching
files are not published. The settings file itself is never an asset.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from siteforge.models.manifest import Asset, SiteSettings

logger = logging.getLogger(__name__)

WS_RESOURCES_FILE = "ws-resources.json"


class SiteLoadError(ValueError):
    """Raised when a site directory or its settings file cannot be read."""


def read_ws_resources(path: Path) -> dict[str, Any]:
    """Parse a ``ws-resources.json`` document."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SiteLoadError(f"Settings file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SiteLoadError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SiteLoadError(f"{path} must contain a JSON object")
    return data


def is_ignored(site_path: str, patterns: Sequence[str | re.Pattern[str]]) -> bool:
    return any(re.match(pattern, site_path) for pattern in patterns)


def parse_settings(raw: dict[str, Any], source: Path | None = None) -> SiteSettings:
    """Validate a parsed settings document into ``SiteSettings``."""
    for key in ("headers", "routes"):
        if raw.get(key) is not None and not isinstance(raw[key], dict):
            raise SiteLoadError(f"{source}: '{key}' must be a JSON object")
    try:
        return SiteSettings.from_ws_resources(raw)
    except ValidationError as exc:
        raise SiteLoadError(f"Invalid settings in {source}: {exc}") from exc


def compile_ignore(patterns: Any, source: Path | None = None) -> list[re.Pattern[str]]:
    if patterns is None:
        return []
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise SiteLoadError(f"{source}: 'ignore' must be a list of strings")
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise SiteLoadError(f"{source}: invalid ignore pattern {pattern!r}: {exc}") from exc
    return compiled


def load_site_directory(
    site_dir: Path, settings_path: Path | None = None
) -> tuple[list[Asset], SiteSettings]:
    """Read every file under *site_dir* as an asset.

    Parameters
    ----------
    site_dir:
        Root of the built site; file paths are taken relative to it.
    settings_path:
        Explicit settings file. Defaults to ``site_dir/ws-resources.json``
        when that file exists.
    """
    if not site_dir.is_dir():
        raise SiteLoadError(f"Not a directory: {site_dir}")

    if settings_path is None and (site_dir / WS_RESOURCES_FILE).is_file():
        settings_path = site_dir / WS_RESOURCES_FILE
    raw = read_ws_resources(settings_path) if settings_path is not None else {}
    settings = parse_settings(raw, settings_path)
    ignore = compile_ignore(raw.get("ignore"), settings_path)

    assets: list[Asset] = []
    for file in sorted(p for p in site_dir.rglob("*") if p.is_file()):
        if settings_path is not None and file.resolve() == settings_path.resolve():
            continue
        site_path = "/" + file.relative_to(site_dir).as_posix()
        if is_ignored(site_path, ignore):
            logger.debug("Ignoring %s", site_path)
            continue
        assets.append(Asset.from_content(site_path, file.read_bytes()))

    logger.info("Loaded %d assets from %s", len(assets), site_dir)
    return assets, settings
