import pytest

from gantt_stream.core.config import DEFAULT_CONFIG, EngineConfig, EngineConfigError, load_and_merge, load_config_file


def test_defaults():
    assert load_and_merge(None) == DEFAULT_CONFIG
    assert DEFAULT_CONFIG == EngineConfig(max_iterations=10, fenced=True, chunk_size=64)


def test_example_config_overrides():
    config = load_and_merge("examples/engine.yaml")
    assert config == EngineConfig(max_iterations=5, fenced=True, chunk_size=7)


def test_empty_file_means_defaults(tmp_path):
    p = tmp_path / "engine.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_file(str(p)) == {}
    assert load_and_merge(str(p)) == DEFAULT_CONFIG


@pytest.mark.parametrize(
    "body",
    [
        "- 1\n- 2\n",
        "colour: blue\n",
        "max_iterations: 0\n",
        "chunk_size: true\n",
        "fenced: maybe\n",
    ],
)
def test_invalid_config(tmp_path, body):
    p = tmp_path / "engine.yaml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(EngineConfigError):
        load_config_file(str(p))


def test_missing_config_file():
    with pytest.raises(FileNotFoundError):
        load_and_merge("examples/nope.yaml")
