"""Tests for editable-file filtering."""

import pytest

from sitepilot.tools.repo_io import (
    has_editable_extension,
    is_editable_file,
    should_descend,
)


@pytest.mark.parametrize("path", [
    "content/site.json",
    "app/page.tsx",
    "components/Hero.jsx",
    "styles/globals.css",
    "styles/theme.scss",
    "public/index.html",
    "README.md",
    "lib/util.ts",
    "Docs/GUIDE.MD",
])
def test_editable_files(path):
    assert is_editable_file(path)


@pytest.mark.parametrize("path", [
    "node_modules/react/index.js",
    ".env.local",
    "config/.env.json",
    ".github/workflows/ci.json",
    "package-lock.json",
    "next.config.js",
    "pages/api/hello.ts",
    ".next/server/page.js",
    "dist/bundle.js",
    "build/main.css",
])
def test_excluded_paths(path):
    assert not is_editable_file(path)


def test_exclusion_is_substring_not_segment():
    """Documentation under an api/ directory is still excluded."""
    assert not is_editable_file("api/README.md")
    assert not is_editable_file("docs/api/README.md")
    # "distribution" contains "dist"
    assert not is_editable_file("content/distribution.json")


@pytest.mark.parametrize("path", [
    "public/logo.png",
    "app/main.py",
    "Makefile",
    "styles/site.less",
])
def test_disallowed_extensions(path):
    assert not has_editable_extension(path)
    assert not is_editable_file(path)


def test_should_descend():
    assert should_descend("app")
    assert should_descend("content")
    assert not should_descend("node_modules")
    assert not should_descend("packages/web/dist")
