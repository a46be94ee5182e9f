import json

import pytest

import config
from config import AppConfig, MediaConfig, ParserConfig, load_config


def _no_default_files(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "_default_config_candidates", lambda: [tmp_path / "absent.json"])


def test_missing_config_file_means_defaults(monkeypatch, tmp_path):
    _no_default_files(monkeypatch, tmp_path)
    app_config, resolved_path = load_config()
    assert resolved_path is None
    assert app_config == AppConfig()
    assert app_config.parser.base_bpm == 130.0
    assert app_config.parser.max_measures == 1000
    assert app_config.parser.encodings == ["utf-8", "cp932"]


def test_config_file_from_environment_path(monkeypatch, tmp_path):
    config_path = tmp_path / "custom.json"
    config_path.write_text(
        json.dumps({"parser": {"base_bpm": 150, "random_seed": 9}, "media": {"audio_extensions": ["OGG", ".wav"]}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("BMSCHART_CONFIG_PATH", str(config_path))
    app_config, resolved_path = load_config()
    assert resolved_path == config_path
    assert app_config.parser.base_bpm == 150.0
    assert app_config.parser.random_seed == 9
    assert app_config.media.audio_extensions == [".ogg", ".wav"]


def test_environment_overrides_beat_the_file(monkeypatch, tmp_path):
    config_path = tmp_path / "bmschart_config.json"
    config_path.write_text(json.dumps({"parser": {"base_bpm": 150}}), encoding="utf-8")
    monkeypatch.setenv("BMSCHART_BASE_BPM", "175.5")
    monkeypatch.setenv("BMSCHART_ENCODINGS", "shift_jis, utf-8")
    monkeypatch.setenv("BMSCHART_SKIP_MALFORMED_LINES", "yes")
    app_config, _ = load_config(config_path)
    assert app_config.parser.base_bpm == 175.5
    assert app_config.parser.encodings == ["shift_jis", "utf-8"]
    assert app_config.parser.skip_malformed_lines is True


def test_missing_explicit_environment_path(monkeypatch, tmp_path):
    monkeypatch.setenv("BMSCHART_CONFIG_PATH", str(tmp_path / "nope.json"))
    with pytest.raises(FileNotFoundError):
        load_config()


@pytest.mark.parametrize(
    "payload",
    [
        {"parser": {"base_bpm": 0}},
        {"parser": {"max_measures": 0}},
        {"parser": {"encodings": ["no-such-codec"]}},
        {"parser": {"encodings": []}},
    ],
)
def test_invalid_values_are_rejected(tmp_path, payload):
    config_path = tmp_path / "bad.json"
    config_path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError, match="Config validation failed"):
        load_config(config_path)


def test_non_object_root_is_rejected(tmp_path):
    config_path = tmp_path / "list.json"
    config_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="JSON object"):
        load_config(config_path)


def test_media_config_feeds_extensions():
    media = MediaConfig(image_extensions=["png", ".BMP"]).to_media_extensions()
    assert media.image == (".png", ".bmp")
    assert media.family_of(".PNG") == (".png", ".bmp")
    assert media.family_of(".txt") == ()


def test_parser_config_drops_blank_encodings():
    assert ParserConfig(encodings=[" utf-8 ", ""]).encodings == ["utf-8"]
