"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


class TestPackage:
    """Test that the package is importable."""

    def test_version_defined(self):
        import voice_studio

        assert isinstance(voice_studio.__version__, str)
        assert voice_studio.__version__

    def test_modules_importable(self):
        from voice_studio import cli, main
        from voice_studio.api import routes, schemas
        from voice_studio.core import config, errors, metrics
        from voice_studio.tts import chunker, credentials, orchestrator, quota, segments, storage

        for module in (cli, main, routes, schemas, config, errors, metrics,
                       chunker, credentials, orchestrator, quota, segments, storage):
            assert module is not None


class TestPyproject:
    """Test pyproject.toml contents."""

    def _load(self):
        tomllib = pytest.importorskip("tomllib")
        return tomllib.loads((ROOT / "pyproject.toml").read_text(encoding="utf-8"))

    def test_metadata(self):
        project = self._load()["project"]
        assert project["name"] == "voice-studio"
        assert project["requires-python"] == ">=3.10"

    def test_dependencies(self):
        deps = " ".join(self._load()["project"]["dependencies"])
        for name in ("fastapi", "pydantic", "pyyaml", "google-genai", "soundfile", "prometheus-client"):
            assert name in deps

    def test_cli_entry_point(self):
        scripts = self._load()["project"]["scripts"]
        assert scripts["voice-studio"] == "voice_studio.cli:main"

    def test_settings_file_ships(self):
        assert (ROOT / "config" / "settings.yaml").exists()
