"""
Tests for configuration loading — .toolpack.yaml parsing, layering and env.
"""

import textwrap
from pathlib import Path

import pytest

from toolpack.core.config.loader import CONFIG_FILE, load_config, merge, read_config_file
from toolpack.core.errors import ConfigError
from toolpack.core.models.config import DEFAULT_BRANCH, DEFAULT_REGISTRY_URL


@pytest.fixture
def dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Separate home and project directories with no config files."""
    home = tmp_path / "home"
    cwd = tmp_path / "project"
    home.mkdir()
    cwd.mkdir()
    return home, cwd


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


class TestDefaults:

    def test_no_files(self, dirs):
        home, cwd = dirs
        config = load_config(home=home, cwd=cwd, env={})

        assert config.registry.url == DEFAULT_REGISTRY_URL
        assert config.registry.branch == DEFAULT_BRANCH
        assert config.registry.auth_token is None
        assert config.local.default_path == ".claude"
        assert config.limits.max_entry_count == 10_000

    def test_empty_file(self, dirs):
        home, cwd = dirs
        (cwd / CONFIG_FILE).write_text("")
        assert load_config(home=home, cwd=cwd, env={}).registry.branch == DEFAULT_BRANCH


class TestLayering:

    def test_project_overrides_home_key_by_key(self, dirs):
        home, cwd = dirs
        _write(home / CONFIG_FILE, """\
            registry:
              url: https://github.com/home/tools
              branch: stable
        """)
        _write(cwd / CONFIG_FILE, """\
            registry:
              branch: dev
        """)

        config = load_config(home=home, cwd=cwd, env={})

        assert config.registry.url == "https://github.com/home/tools"
        assert config.registry.branch == "dev"

    def test_explicit_file_wins(self, dirs, tmp_path: Path):
        home, cwd = dirs
        _write(cwd / CONFIG_FILE, "local:\n  default_path: from-project\n")
        explicit = _write(tmp_path / "custom.yaml", "local:\n  default_path: from-flag\n")

        config = load_config(explicit, home=home, cwd=cwd, env={})

        assert config.local.default_path == "from-flag"

    def test_env_wins_over_files(self, dirs):
        home, cwd = dirs
        _write(cwd / CONFIG_FILE, "registry:\n  url: https://github.com/file/tools\n")

        config = load_config(
            home=home,
            cwd=cwd,
            env={
                "TOOLPACK_REGISTRY_URL": "https://github.com/env/tools",
                "TOOLPACK_REGISTRY_BRANCH": "next",
            },
        )

        assert config.registry.url == "https://github.com/env/tools"
        assert config.registry.branch == "next"

    def test_toolpack_token_preferred(self, dirs):
        home, cwd = dirs
        env = {"TOOLPACK_TOKEN": "tp", "GITHUB_TOKEN": "gh"}
        assert load_config(home=home, cwd=cwd, env=env).registry.auth_token == "tp"

    def test_github_token_fallback(self, dirs):
        home, cwd = dirs
        env = {"GITHUB_TOKEN": "gh"}
        assert load_config(home=home, cwd=cwd, env=env).registry.auth_token == "gh"

    def test_limits_from_file(self, dirs):
        home, cwd = dirs
        _write(cwd / CONFIG_FILE, """\
            limits:
              max_entry_count: 50
              max_compression_ratio: 20
        """)

        limits = load_config(home=home, cwd=cwd, env={}).limits

        assert limits.max_entry_count == 50
        assert limits.max_compression_ratio == 20.0


class TestErrors:

    def test_missing_explicit_file(self, dirs, tmp_path: Path):
        home, cwd = dirs
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml", home=home, cwd=cwd, env={})

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write(tmp_path / "bad.yaml", "registry: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            read_config_file(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = _write(tmp_path / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            read_config_file(path)

    def test_invalid_values(self, dirs):
        home, cwd = dirs
        _write(cwd / CONFIG_FILE, "limits:\n  max_entry_count: -1\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(home=home, cwd=cwd, env={})


class TestMerge:

    def test_nested(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        assert merge(base, {"a": {"y": 3}}) == {"a": {"x": 1, "y": 3}, "b": 1}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_scalar_replaces_mapping(self):
        assert merge({"a": {"x": 1}}, {"a": None}) == {"a": None}
