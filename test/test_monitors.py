import asyncio

from monitors.base_monitor import NullMediaMonitor, PlaybackState


def test_format_time():
    assert PlaybackState.format_time(0) == "00:00:00"
    assert PlaybackState.format_time(3725.9) == "01:02:05"
    assert PlaybackState.format_time(-3) == "00:00:00"


def test_null_monitor_reports_nothing():
    monitor = NullMediaMonitor()
    assert asyncio.run(monitor.list_sessions()) == []
    assert asyncio.run(monitor.get_playback_state("PotPlayer64")) is None
    assert monitor.get_foreground_window_aumid() is None
