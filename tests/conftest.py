import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import bms_store  # noqa: E402
from config import AppConfig, ParserConfig  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_bmschart_env(monkeypatch):
    for name in (
        "BMSCHART_CONFIG_PATH",
        "BMSCHART_BASE_BPM",
        "BMSCHART_MAX_MEASURES",
        "BMSCHART_RANDOM_SEED",
        "BMSCHART_ENCODINGS",
        "BMSCHART_SKIP_MALFORMED_LINES",
    ):
        monkeypatch.delenv(name, raising=False)


def _draw_one(upper):
    return 1


@pytest.fixture
def parse(tmp_path):
    """Parse chart text held in memory; keyword arguments feed ParserConfig.

    Draws always return 1 unless another rng (or None for the seeded default) is given.
    """

    def _parse(text, *, rng=_draw_one, **parser_options):
        config = AppConfig(parser=ParserConfig(**parser_options))
        return bms_store.parse_chart_lines(
            text.strip().splitlines(),
            base_dir=tmp_path,
            config=config,
            rng=rng,
        )

    return _parse
