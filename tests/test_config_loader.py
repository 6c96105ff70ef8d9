"""Tests for flux_sync.config_loader: hierarchical config loading."""

import textwrap

import pytest

from flux_sync.config_loader import (
    _interpolate_recursive,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME inside tmp_path, no FLUX_SYNC_CONFIG."""
    monkeypatch.delenv("FLUX_SYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("FLUX_TEST_HOST", "localhost")
        assert interpolate_env_vars("${FLUX_TEST_HOST}") == "localhost"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-8080}") == "8080"
        assert interpolate_env_vars("${EMPTY_VAR:-fallback}") == "fallback"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("FLUX_TEST_PORT", "9000")
        assert interpolate_env_vars("${FLUX_TEST_PORT:-3000}") == "9000"

    def test_multiple_vars_in_one_string(self, monkeypatch):
        monkeypatch.setenv("HOST_A", "flux.local")
        monkeypatch.setenv("PORT_A", "8080")
        assert interpolate_env_vars("${HOST_A}:${PORT_A}") == "flux.local:8080"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("SECRET", "s3cret")
        data = {
            "flux": {"password": "${SECRET}", "interval": 30},
            "items": ["${SECRET}", 1, True],
        }
        assert _interpolate_recursive(data) == {
            "flux": {"password": "s3cret", "interval": 30},
            "items": ["s3cret", 1, True],
        }


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    """Tests for discover_config_files() precedence and filtering."""

    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = _write(isolated / "custom.yml", "flux: {}\n")
        _write(isolated / ".flux" / "config.yml", "flux: {}\n")
        monkeypatch.setenv("FLUX_SYNC_CONFIG", str(custom))

        result = discover_config_files()
        assert result[0] == custom.resolve()
        assert len(result) == 2

    def test_project_before_global(self, isolated):
        proj = _write(isolated / ".flux" / "config.yml", "a: 1\n")
        glob = _write(
            isolated / "home" / ".config" / "flux_sync" / "config.yml",
            "b: 2\n",
        )
        result = [p.resolve() for p in discover_config_files()]
        assert result == [proj.resolve(), glob.resolve()]

    def test_yaml_extension(self, isolated):
        alt = _write(isolated / ".flux" / "config.yaml", "a: 1\n")
        result = [p.resolve() for p in discover_config_files()]
        assert result == [alt.resolve()]


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    """Tests for load_hierarchical_config() merge and interpolation."""

    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_global_at_section_level(self, isolated):
        _write(
            isolated / "home" / ".config" / "flux_sync" / "config.yml",
            """\
            flux:
              endpoint: https://global.example.com
              username: globaluser
            logging:
              level: DEBUG
            """,
        )
        _write(
            isolated / ".flux" / "config.yml",
            """\
            flux:
              endpoint: https://project.example.com
            """,
        )

        result = load_hierarchical_config()
        # Shallow merge: the project's flux section replaces the global one
        assert result["flux"] == {"endpoint": "https://project.example.com"}
        assert result["logging"]["level"] == "DEBUG"

    def test_env_var_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_SECRET", "s3cret")
        _write(
            isolated / ".flux" / "config.yml",
            """\
            flux:
              password: "${MY_SECRET}"
            """,
        )
        result = load_hierarchical_config()
        assert result["flux"]["password"] == "s3cret"

    def test_non_dict_root_skipped(self, isolated, monkeypatch):
        bad = _write(isolated / "bad.yml", "- item1\n- item2\n")
        monkeypatch.setenv("FLUX_SYNC_CONFIG", str(bad))
        assert load_hierarchical_config() == {}

    def test_invalid_yaml_raises(self, isolated, monkeypatch):
        bad = _write(isolated / "bad.yml", "flux: [unclosed\n")
        monkeypatch.setenv("FLUX_SYNC_CONFIG", str(bad))
        with pytest.raises(Exception):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# Starter config
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_resolve_default_path(self, isolated):
        expected = isolated / ".flux" / "config.yml"
        assert resolve_config_path().resolve() == expected.resolve()

    def test_creates_starter_file(self, isolated):
        path = ensure_config()
        assert path.resolve() == (isolated / ".flux" / "config.yml").resolve()
        text = path.read_text(encoding="utf-8")
        assert "FLUX_ENDPOINT" in text
        # Everything is commented out, so the file loads as empty
        assert load_hierarchical_config() == {}

    def test_existing_file_untouched(self, isolated):
        existing = _write(isolated / ".flux" / "config.yml", "flux: {}\n")
        assert ensure_config().resolve() == existing.resolve()
        assert existing.read_text() == "flux: {}\n"

    def test_explicit_target(self, isolated):
        target = isolated / "elsewhere" / "flux.yml"
        assert ensure_config(target) == target
        assert target.exists()
