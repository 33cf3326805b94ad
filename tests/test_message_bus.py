"""
Tests for the audit event bus and component logging.
"""
import logging

from config import AppConfig
from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from engine.base import BaseComponent
from engine.conflict_detector import ConflictDetector

from tests.helpers import MONDAY


def message(sender, msg_type=MessageType.STATUS, receiver=None, content="ok"):
    return Message(msg_type=msg_type, sender=sender, receiver=receiver, content=content)


def test_broadcast_skips_sender():
    bus = MessageBus()
    received = {"a": [], "b": []}
    bus.register("a", received["a"].append)
    bus.register("b", received["b"].append)

    bus.send(message("a"))

    assert received["a"] == []
    assert len(received["b"]) == 1


def test_direct_message_reaches_only_receiver():
    bus = MessageBus()
    received = []
    bus.register("a")
    bus.register("b", received.append)
    bus.register("c", lambda m: received.append(("c", m)))

    bus.send(message("a", receiver="b"))

    assert len(received) == 1
    assert received[0].receiver == "b"


def test_history_filters_and_export():
    bus = MessageBus()
    bus.send(message("a", MessageType.CONFLICT))
    bus.send(message("b", MessageType.ERROR, content="boom"))

    assert [m.sender for m in bus.get_history(msg_type=MessageType.ERROR)] == ["b"]
    assert [m.sender for m in bus.get_history(sender="a")] == ["a"]
    exported = bus.export_log()
    assert exported[1]["msg_type"] == "error"
    assert exported[1]["content"] == "boom"

    bus.clear_history()
    assert bus.get_history() == []


def test_unregister_stops_delivery():
    bus = MessageBus()
    received = []
    bus.register("b", received.append)
    bus.unregister("b")

    bus.send(message("a"))

    assert received == []
    assert "b" not in bus.publishers


def test_components_register_as_publishers(clock):
    bus = MessageBus()
    detector = ConflictDetector(config=AppConfig(), message_bus=bus, clock=clock)

    detector.execute([], [], [], reference_date=MONDAY)

    assert "ConflictDetector" in bus.publishers
    assert bus.get_history(sender="ConflictDetector")[0].msg_type == MessageType.CONFLICT


def test_print_summary_renders(capsys):
    bus = MessageBus()
    bus.register("ConflictDetector")
    bus.send(message("ConflictDetector", MessageType.CONFLICT))

    bus.print_summary()

    assert "ConflictDetector" in capsys.readouterr().out


def test_component_logs_through_named_logger(caplog, clock):
    detector = ConflictDetector(config=AppConfig(), clock=clock)

    with caplog.at_level(logging.INFO, logger="shift_engine"):
        detector.execute([], [], [], reference_date=MONDAY)

    records = [r for r in caplog.records if r.name == "shift_engine.ConflictDetector"]
    assert any("No conflicts detected" in r.getMessage() for r in records)


def test_file_logging_writes_timestamped_file(tmp_path, clock):
    try:
        path = BaseComponent.setup_file_logging(str(tmp_path))
        ConflictDetector(config=AppConfig(), clock=clock).execute(
            [], [], [], reference_date=MONDAY
        )
    finally:
        BaseComponent.close_file_logging()

    content = open(path, encoding="utf-8").read()
    assert "SHIFT CONFLICT DETECTION & BALANCING ENGINE" in content
    assert "[ConflictDetector] Scanning 0 shifts" in content
