from __future__ import annotations

import queue
import threading

from memsfcr.app.publisher import FanoutPublisher
from memsfcr.model import messages as m
from memsfcr.model.messages import CommandResult, OutboundMessage
from memsfcr.protocol.dataframe import decode_dataframe
from memsfcr.runtime.state import ConnectionStatus


def a_frame():
    d80 = bytes([28]) + bytes(27)
    d7d = bytes([32]) + bytes(31)
    return decode_dataframe(d80, d7d)


class ListSink:
    def __init__(self):
        self.frames = []
        self.closed = False

    def on_frame(self, frame) -> None:
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True


class BrokenSink(ListSink):
    def on_frame(self, frame) -> None:
        raise OSError("disk full")


def drain(q):
    out = []
    while True:
        try:
            out.append(q.get_nowait())
        except queue.Empty:
            return out


def test_frame_goes_to_ui_and_sinks():
    q = queue.Queue(maxsize=4)
    pub = FanoutPublisher(q)
    sink = ListSink()
    pub.add_sink(sink)
    pub.add_sink(sink)

    frame = a_frame()
    pub.publish_frame(frame)

    msgs = drain(q)
    assert [x.action for x in msgs] == [m.OUT_DATA]
    assert msgs[0].payload["engine_rpm"] == 0
    assert sink.frames == [frame]


def test_full_channel_drops_data_without_blocking():
    q = queue.Queue(maxsize=2)
    pub = FanoutPublisher(q)

    for _ in range(5):
        pub.publish_frame(a_frame())
    pub.publish_result(CommandResult(command="clear_faults", ok=True, value=0))

    assert q.qsize() == 2
    assert pub.dropped == 4


def test_drop_count_exact_under_concurrent_publishers():
    q = queue.Queue(maxsize=1)
    pub = FanoutPublisher(q)
    frame = a_frame()
    threads, per_thread = 8, 250

    def spam():
        for _ in range(per_thread):
            pub.publish_frame(frame)

    workers = [threading.Thread(target=spam) for _ in range(threads)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()

    assert q.qsize() == 1
    assert pub.dropped == threads * per_thread - 1


def test_status_evicts_oldest_when_full():
    q = queue.Queue(maxsize=2)
    pub = FanoutPublisher(q)
    pub.publish_frame(a_frame())
    pub.publish_result(CommandResult(command="reset_ecu", ok=True, value=0))

    pub.publish_status(ConnectionStatus(connected=False, initialised=False))

    msgs = drain(q)
    assert [x.action for x in msgs] == [m.OUT_ECU_RESPONSE, m.OUT_CONNECTION_STATUS]
    assert msgs[-1].payload == {"connected": False, "initialised": False}


def test_failing_sink_does_not_stop_others():
    q = queue.Queue(maxsize=4)
    pub = FanoutPublisher(q)
    good = ListSink()
    pub.add_sink(BrokenSink())
    pub.add_sink(good)

    pub.publish_frame(a_frame())

    assert len(good.frames) == 1


def test_close_closes_and_detaches_sinks():
    q = queue.Queue(maxsize=4)
    pub = FanoutPublisher(q)
    sink = ListSink()
    pub.add_sink(sink)

    pub.close()
    pub.publish_frame(a_frame())

    assert sink.closed is True
    assert sink.frames == []


def test_config_message_is_a_copy():
    q = queue.Queue(maxsize=1)
    pub = FanoutPublisher(q)
    cfg = {"port": "/dev/ttyUSB0"}

    pub.publish_config(cfg)
    cfg["port"] = "changed"

    msg: OutboundMessage = q.get_nowait()
    assert msg.action == m.OUT_CONFIG
    assert msg.payload == {"port": "/dev/ttyUSB0"}
