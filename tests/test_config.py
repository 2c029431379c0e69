from pathlib import Path

import pytest

from cmm_tool.config import ConfigError, load_config


def test_missing_file_gives_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config(tmp_path / "absent.yaml")

    assert config.path is None
    assert config.store.db_path == (tmp_path / "capability_matrix.db").resolve()
    assert config.export.title == "Draft PWS - Capability Matrix"
    assert config.session.debounce_seconds == 0.5


def test_relative_paths_resolve_against_config_dir(tmp_path: Path):
    path = tmp_path / "conf" / "cmm.yaml"
    path.parent.mkdir()
    path.write_text(
        "store:\n"
        "  db_path: data/matrices.db\n"
        "export:\n"
        "  default_version: '3.1'\n"
        "  output_dir: ../exports\n"
        "session:\n"
        "  debounce_seconds: 2\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.store.db_path == (tmp_path / "conf" / "data" / "matrices.db").resolve()
    assert config.store.undo_journal == (tmp_path / "conf" / "last_delete.json").resolve()
    assert config.export.output_dir == (tmp_path / "exports").resolve()
    assert config.export.default_version == "3.1"
    assert config.session.debounce_seconds == 2.0


def test_env_var_selects_config(tmp_path: Path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("export:\n  title: Custom\n", encoding="utf-8")
    monkeypatch.setenv("CMM_CONFIG", str(path))

    assert load_config().export.title == "Custom"


@pytest.mark.parametrize(
    "content",
    [
        "store: [unclosed\n",
        "- just\n- a list\n",
        "store: not-a-mapping\n",
        "session:\n  debounce_seconds: soon\n",
        "session:\n  debounce_seconds: -1\n",
    ],
)
def test_malformed_config_raises(tmp_path: Path, content):
    path = tmp_path / "cmm.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)
