"""观察者和日志初始化的测试。"""

import logging
import os
from contextlib import contextmanager
from types import SimpleNamespace

from conftest import make_event
from danmaku_observer import CompositeObserver, EngineStats, LoggingObserver
from logger_setup import setup_logging


def test_composite_forwards_to_every_observer(make_scheduler, clock):
    first, second = EngineStats(), EngineStats()
    scheduler = make_scheduler()
    scheduler.observer = CompositeObserver(first, None, second, LoggingObserver())
    scheduler.load([make_event("hello", 1.0), make_event("hello", 1.2)])
    scheduler.tick(1.0, True)

    for stats in (first, second):
        assert stats.loaded == 1
        assert stats.admitted == 1
        assert stats.activated == 1
        assert stats.dropped["duplicate"] == 1


def test_stats_reset(make_scheduler, stats):
    scheduler = make_scheduler([make_event("hello", 1.0)])
    scheduler.tick(1.0, True)
    assert stats.activated == 1
    stats.reset()
    assert stats.activated == 0
    assert not stats.dropped


def test_logging_observer_writes_debug(caplog, make_scheduler, clock):
    scheduler = make_scheduler()
    scheduler.observer = LoggingObserver()
    scheduler.load([make_event("hello", 10.0)])
    with caplog.at_level(logging.DEBUG):
        scheduler.tick(10.0, True)
        clock.advance(0.1)
        scheduler.tick(90.0, True)
    assert "10.0s -> 90.0s" in caplog.text


@contextmanager
def preserved_root_logger():
    """setup_logging 会替换根logger的处理器，测试结束后恢复原状。"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield root
    finally:
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)


def test_setup_logging_to_stdout_only(tmp_path):
    config = SimpleNamespace(log_level="debug", log_to_file=False)
    with preserved_root_logger() as root:
        assert setup_logging(config, str(tmp_path / "logs")) is None
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
    assert not os.path.exists(tmp_path / "logs")


def test_setup_logging_with_file(tmp_path):
    config = SimpleNamespace(log_level="warning", log_to_file=True)
    with preserved_root_logger() as root:
        log_file = setup_logging(config, str(tmp_path / "logs"))
        assert root.level == logging.WARNING
        assert len(root.handlers) == 2
    assert log_file is not None
    assert os.path.exists(log_file)


def test_setup_logging_unknown_level_falls_back_to_info(tmp_path):
    config = SimpleNamespace(log_level="verbose", log_to_file=False)
    with preserved_root_logger() as root:
        setup_logging(config, str(tmp_path))
        assert root.level == logging.INFO
