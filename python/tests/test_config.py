"""Tests for configuration loading."""

import json

import pytest

from roslyn_session.config import Config, ConfigModel


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setattr(Config, "_config_path", path)
    Config.clear_cache()
    yield path
    Config.clear_cache()


@pytest.mark.asyncio
async def test_defaults_without_file(config_path):
    config = await Config.get()

    assert config.filewatching is True
    assert config.lock_target is False
    assert config.command()[0] == "Microsoft.CodeAnalysis.LanguageServer"
    assert "--stdio" in config.command()


@pytest.mark.asyncio
async def test_reads_file(config_path):
    config_path.write_text(json.dumps({"filewatching": False, "exe": ["dotnet", "roslyn.dll"], "args": ["--stdio"]}))

    config = await Config.get()

    assert config.filewatching is False
    assert config.command() == ["dotnet", "roslyn.dll", "--stdio"]


@pytest.mark.asyncio
async def test_unreadable_file_falls_back_to_defaults(config_path):
    config_path.write_text("{not json")

    config = await Config.get()

    assert config == ConfigModel()


@pytest.mark.asyncio
async def test_update_validates_and_saves(config_path):
    config = await Config.update({"lock_target": "true", "unknown": 1})

    assert config.lock_target is True
    assert json.loads(config_path.read_text())["lock_target"] is True
