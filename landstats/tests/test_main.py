"""Tests for the startup settings summary."""

from landstats import config
from landstats.main import startup_summary


def test_startup_summary_reflects_config():
    summary = startup_summary()

    assert summary["land_id_start"] == config.LAND_ID_START
    assert summary["land_count"] == config.LAND_ID_END - config.LAND_ID_START + 1
    assert summary["tokens_per_period"] == config.RATE_LIMIT_TOKENS_PER_PERIOD
    assert summary["daily_sweep_utc"] == "06:30"
    assert summary["recovery_hours_utc"] == "1/8"
