from __future__ import annotations

from pathlib import Path

import pytest

from contentflow.config import DEFAULT_SESSION_KEY, ContentFlowConfig, LLMConfig, StoreConfig
from contentflow.paths import ensure_directory, resolve_state_path, session_filename


def test_llm_config_resolve_api_key_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = LLMConfig(api_key_env="CUSTOM", fallback_api_key_envs=("OPENAI_API_KEY",))

    assert cfg.resolve_api_key(override="override-key") == "override-key"

    monkeypatch.setenv("CUSTOM", "primary-key")
    assert cfg.resolve_api_key() == "primary-key"

    monkeypatch.delenv("CUSTOM")
    monkeypatch.setenv("OPENAI_API_KEY", "fallback-key")
    assert cfg.resolve_api_key() == "fallback-key"


def test_llm_config_provider_kwargs_merge() -> None:
    cfg = LLMConfig(
        model="base-model",
        base_url="https://example.com",
        temperature=0.3,
        max_tokens=256,
    )
    kwargs = cfg.provider_kwargs(api_key="inline-key", temperature=0.8)

    assert kwargs["model"] == "base-model"
    assert kwargs["base_url"] == "https://example.com"
    assert kwargs["api_key"] == "inline-key"
    assert kwargs["temperature"] == 0.8
    assert kwargs["max_tokens"] == 256


def test_llm_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTENTFLOW_MODEL", "env-model")
    monkeypatch.setenv("CONTENTFLOW_TEMPERATURE", "0.2")
    monkeypatch.setenv("CONTENTFLOW_MAX_TOKENS", "900")

    cfg = LLMConfig()

    assert cfg.model == "env-model"
    assert cfg.temperature == 0.2
    assert cfg.max_tokens == 900


def test_defaults_without_environment() -> None:
    cfg = ContentFlowConfig()

    assert cfg.llm.model == "gpt-4o-mini"
    assert cfg.llm.temperature == 0.7
    assert cfg.store.session_key == DEFAULT_SESSION_KEY
    assert cfg.store.state_root == Path(".contentflow") / "state"
    assert cfg.strict_catalog is True
    assert cfg.log_level == "WARNING"


def test_environment_overrides_store_and_catalog(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CONTENTFLOW_STATE_ROOT", str(tmp_path))
    monkeypatch.setenv("CONTENTFLOW_SESSION", "desk-3")
    monkeypatch.setenv("CONTENTFLOW_STRICT_CATALOG", "off")

    cfg = ContentFlowConfig()

    assert cfg.store.state_root == tmp_path / "state"
    assert cfg.store.session_key == "desk-3"
    assert cfg.strict_catalog is False


def test_with_store_resolves_and_creates_state_root(tmp_path: Path) -> None:
    state_dir = tmp_path / "sessions"

    cfg = ContentFlowConfig().with_store(state_root=state_dir, session_key="alpha")

    assert cfg.store.session_key == "alpha"
    assert state_dir.exists() is False
    assert cfg.state_root == state_dir
    assert state_dir.is_dir()

    unchanged = cfg.with_store()
    assert unchanged.store.state_root == state_dir
    assert unchanged.store.session_key == "alpha"


def test_store_config_can_skip_directory_creation(tmp_path: Path) -> None:
    store = StoreConfig(state_root=tmp_path / "lazy", create=False)

    assert store.resolved_root() == tmp_path / "lazy"
    assert not (tmp_path / "lazy").exists()


def test_path_helpers(tmp_path: Path) -> None:
    nested = tmp_path / "a" / "b"

    assert ensure_directory(nested) == nested
    assert nested.is_dir()
    assert resolve_state_path(tmp_path / "c", create=False) == tmp_path / "c"
    assert session_filename("workflowContext") == "workflowContext.json"
    assert session_filename("team/alpha beta") == "team%2Falpha%20beta.json"
    assert session_filename("team.alpha") == "team.alpha.json"


def test_session_filenames_never_collide() -> None:
    keys = ["team/alpha", "team_alpha", "team.alpha", "team alpha", "team%2Falpha"]

    assert len({session_filename(key) for key in keys}) == len(keys)
    assert all("/" not in session_filename(key) for key in keys)
    with pytest.raises(ValueError):
        session_filename("")
