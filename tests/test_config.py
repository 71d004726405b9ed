from pathlib import Path

import pytest

from salary_reveal.config import EngineConfig, RevealPolicy, load_engine_config
from salary_reveal.errors import ConfigError, ExitCode


def _write(tmp_path: Path, text: str) -> str:
    p = tmp_path / "engine.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_defaults_when_sections_missing(tmp_path):
    cfg = load_engine_config(_write(tmp_path, "{}\n"))
    assert cfg.reveal.threshold_k == 3
    assert cfg.reveal.hide_count is True
    assert cfg.reveal.policy is RevealPolicy.FRESH
    assert cfg.submission.min_value == 1
    assert cfg.storage.path is None


def test_empty_file_means_defaults(tmp_path):
    assert load_engine_config(_write(tmp_path, "")) == EngineConfig(raw={})


def test_yaml_values_are_loaded(tmp_path):
    cfg = load_engine_config(_write(tmp_path, """
submission:
  min_value: 1000
  max_value: 500000
reveal:
  threshold_k: 5
  hide_count: false
  policy: Frozen
storage:
  path: /var/lib/salary_reveal/ledger.json
logging:
  environment: development
"""))
    assert cfg.submission.max_value == 500000
    assert cfg.reveal.threshold_k == 5
    assert cfg.reveal.hide_count is False
    assert cfg.reveal.policy is RevealPolicy.FROZEN
    assert cfg.storage.path == "/var/lib/salary_reveal/ledger.json"
    assert cfg.logging.environment == "development"


def test_json_is_accepted(tmp_path):
    cfg = load_engine_config(_write(tmp_path, '{"reveal": {"threshold_k": 10}}'))
    assert cfg.reveal.threshold_k == 10


@pytest.mark.parametrize(
    "text",
    [
        "reveal: {threshold_k: 0}",
        "reveal: {threshold_k: -3}",
        "reveal: {policy: sometimes}",
        "submission: {min_value: 0}",
        "submission: {min_value: 100, max_value: 10}",
        "submission: {max_value: lots}",
        "reveal: {hide_count: 'false'}",
        "reveal: {hide_count: 0}",
    ],
)
def test_invalid_values_raise_config_error(tmp_path, text):
    with pytest.raises(ConfigError) as ei:
        load_engine_config(_write(tmp_path, text))
    assert ei.value.code == "SR_CONFIG_INVALID_VALUE"
    assert ei.value.exit_code == ExitCode.CONFIG_INVALID


def test_section_must_be_mapping(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_engine_config(_write(tmp_path, "reveal: [1, 2]"))
    assert ei.value.code == "SR_CONFIG_SECTION_NOT_OBJECT"


def test_top_level_must_be_mapping(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_engine_config(_write(tmp_path, "- a\n- b\n"))
    assert ei.value.code == "SR_CONFIG_TOPLEVEL_NOT_OBJECT"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_engine_config(str(tmp_path / "nope.yaml"))
    assert ei.value.code == "SR_CONFIG_NOT_FOUND"


def test_unparseable_yaml(tmp_path):
    with pytest.raises(ConfigError) as ei:
        load_engine_config(_write(tmp_path, "reveal: {threshold_k: [\n"))
    assert ei.value.code == "SR_CONFIG_PARSE_ERROR"


def test_shipped_example_config_loads():
    path = Path(__file__).resolve().parents[1] / "examples" / "configs" / "engine.yaml"
    cfg = load_engine_config(str(path))
    assert cfg.reveal.threshold_k == 3
    assert cfg.reveal.policy is RevealPolicy.FRESH
    assert cfg.crypto.key_path == "var/keys.json"
