"""Tests for loading a local site directory."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from siteforge.core.site_loader import (
    WS_RESOURCES_FILE,
    SiteLoadError,
    compile_ignore,
    is_ignored,
    load_site_directory,
    read_ws_resources,
)
from siteforge.models.manifest import Header, Metadata, Route


def _write(root: Path, rel: str, content: bytes | str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)
    return path


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    root = tmp_path / "dist"
    _write(root, "index.html", b"<h1>home</h1>")
    _write(root, "assets/app.js", b"run()")
    _write(root, "assets/app.js.map", b"{}")
    return root


class TestLoadSiteDirectory:
    def test_without_settings(self, site_dir: Path):
        assets, settings = load_site_directory(site_dir)
        assert [a.path for a in assets] == ["/assets/app.js", "/assets/app.js.map", "/index.html"]
        assert assets[-1].content == b"<h1>home</h1>"
        assert settings.site_name is None
        assert settings.routes is None

    def test_ws_resources_is_read_and_excluded(self, site_dir: Path):
        _write(
            site_dir,
            WS_RESOURCES_FILE,
            json.dumps(
                {
                    "headers": {"cache-control": "max-age=60"},
                    "routes": {"/*": "/index.html"},
                    "metadata": {"creator": "me"},
                    "site_name": "My site",
                    "object_id": "0x42",
                    "ignore": [r"/.*\.map$"],
                }
            ),
        )
        assets, settings = load_site_directory(site_dir)

        assert [a.path for a in assets] == ["/assets/app.js", "/index.html"]
        assert settings.headers == [Header(key="cache-control", value="max-age=60")]
        assert settings.routes == [Route(route_path="/*", target_path="/index.html")]
        assert settings.metadata == Metadata(creator="me")
        assert settings.site_name == "My site"
        assert settings.object_id == "0x42"

    def test_explicit_settings_path(self, site_dir: Path, tmp_path: Path):
        settings_file = _write(tmp_path, "custom.json", json.dumps({"site_name": "Other"}))
        assets, settings = load_site_directory(site_dir, settings_file)
        assert settings.site_name == "Other"
        assert len(assets) == 3

    def test_not_a_directory(self, tmp_path: Path):
        with pytest.raises(SiteLoadError, match="Not a directory"):
            load_site_directory(tmp_path / "missing")


class TestMalformedSettings:
    @pytest.mark.parametrize(
        "settings, message",
        [
            ({"metadata": "not an object"}, "Invalid settings"),
            ({"headers": {"Cache-Control": 3600}}, "Invalid settings"),
            ({"headers": ["Cache-Control"]}, "'headers' must be a JSON object"),
            ({"routes": "/index.html"}, "'routes' must be a JSON object"),
            ({"ignore": ["(unclosed"]}, "invalid ignore pattern"),
            ({"ignore": "\\.map$"}, "list of strings"),
        ],
    )
    def test_reported_as_load_error(self, site_dir: Path, settings: dict, message: str):
        _write(site_dir, WS_RESOURCES_FILE, json.dumps(settings))
        with pytest.raises(SiteLoadError, match=message):
            load_site_directory(site_dir)


class TestReadWsResources:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(SiteLoadError, match="not found"):
            read_ws_resources(tmp_path / WS_RESOURCES_FILE)

    def test_invalid_json(self, tmp_path: Path):
        path = _write(tmp_path, WS_RESOURCES_FILE, "{not json")
        with pytest.raises(SiteLoadError, match="Invalid JSON"):
            read_ws_resources(path)

    def test_must_be_object(self, tmp_path: Path):
        path = _write(tmp_path, WS_RESOURCES_FILE, "[1, 2]")
        with pytest.raises(SiteLoadError, match="JSON object"):
            read_ws_resources(path)


class TestIsIgnored:
    def test_patterns_match_from_start(self):
        assert is_ignored("/private/key.txt", [r"/private/.*"])
        assert not is_ignored("/public/private/key.txt", [r"/private/.*"])

    def test_no_patterns(self):
        assert not is_ignored("/index.html", [])

    def test_compiled_patterns(self):
        assert is_ignored("/a.js.map", compile_ignore([r".*\.map$"]))
        assert compile_ignore(None) == []
