import os

import pytest

from envstack.foundation.config_io import CONFIG_ENV_VAR, find_repo_root, load_config


def test_load_config_base_only(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text("namespace: mu\nrepo:\n  slug: acme/site\n", encoding="utf-8")

    cfg, meta = load_config(start_dir=tmp_path)

    assert cfg == {"namespace": "mu", "repo": {"slug": "acme/site"}}
    assert meta["mode"] == "base"
    assert meta["repo_root"] == str(tmp_path.resolve())
    assert os.path.basename(meta["paths"][0]) == "envstack.yml"


def test_load_config_base_plus_local_overlay(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text(
        "namespace: mu\nrepo:\n  slug: acme/site\n  revision: aaaaaaa\nenvironments:\n  - name: dev\n",
        encoding="utf-8",
    )
    (tmp_path / "envstack.local.yml").write_text(
        "repo:\n  revision: bbbbbbb\nenvironments:\n  - name: sandbox\n",
        encoding="utf-8",
    )

    cfg, meta = load_config(start_dir=tmp_path)

    assert cfg["repo"] == {"slug": "acme/site", "revision": "bbbbbbb"}
    assert cfg["environments"] == [{"name": "sandbox"}]
    assert meta["mode"] == "base+local"
    assert len(meta["paths"]) == 2


def test_load_config_finds_repo_root_from_subdir(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text("namespace: nested\n", encoding="utf-8")
    subdir = tmp_path / "a" / "b"
    subdir.mkdir(parents=True)
    monkeypatch.chdir(subdir)

    cfg, _meta = load_config()

    assert cfg == {"namespace": "nested"}
    assert find_repo_root() == str(tmp_path.resolve())


def test_env_var_selects_exactly_one_file(tmp_path, monkeypatch):
    explicit = tmp_path / "custom.yml"
    explicit.write_text("namespace: fromenv\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(explicit))

    cfg, meta = load_config(start_dir=tmp_path)

    assert cfg == {"namespace": "fromenv"}
    assert meta["mode"] == "env"
    assert meta["paths"] == [os.path.abspath(str(explicit))]


def test_explicit_path_wins_over_env_var(tmp_path, monkeypatch):
    explicit = tmp_path / "explicit.yml"
    explicit.write_text("namespace: explicit\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.yml"))

    cfg, meta = load_config(explicit)

    assert cfg == {"namespace": "explicit"}
    assert meta["mode"] == "explicit"


def test_load_config_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text("repo:\n  slug: x\n", encoding="utf-8")
    (tmp_path / "envstack.local.yml").write_text("repo: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"Invalid config overlay merge at repo"):
        load_config(start_dir=tmp_path)


def test_invalid_yaml_raises_value_error(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text("environments: [1, 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML in"):
        load_config(start_dir=tmp_path)


def test_non_mapping_config_is_rejected(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "envstack.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a YAML mapping"):
        load_config(start_dir=tmp_path)


def test_missing_base_config_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")

    with pytest.raises(FileNotFoundError, match="Missing base config file"):
        load_config(start_dir=tmp_path)
