import json
import socket

from wordpressify.runtime.reload import ReloadBroadcastServer, ReloadMessage, ReloadMode, ReloadSignal


class RecordingTransport:
    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)


class BrokenTransport:
    def send(self, message):
        raise ConnectionResetError("client went away")


def test_scoped_notify_sends_inject_with_match():
    transport = RecordingTransport()

    ReloadSignal(transport).notify(ReloadMode.SCOPED, "**/*.css")

    assert transport.messages == [ReloadMessage(type="inject", match="**/*.css")]


def test_full_notify_sends_reload_without_match():
    transport = RecordingTransport()

    ReloadSignal(transport).notify(ReloadMode.FULL, "theme/**")

    assert transport.messages == [ReloadMessage(type="reload")]


def test_transport_failure_is_not_raised(caplog):
    ReloadSignal(BrokenTransport()).notify(ReloadMode.FULL)

    assert "could not notify reload clients" in caplog.text


def test_notify_without_transport_is_a_no_op():
    ReloadSignal().notify(ReloadMode.SCOPED, "**/*.css")


def _read_line(stream) -> dict:
    return json.loads(stream.readline().decode("utf-8"))


def test_broadcast_server_sends_hello_and_reloads():
    server = ReloadBroadcastServer(host="127.0.0.1", port=0, proxy_target="127.0.0.1:3020")
    server.start()
    try:
        with socket.create_connection(server.address, timeout=5) as client:
            stream = client.makefile("rb")
            assert _read_line(stream) == {"type": "hello", "proxy": "127.0.0.1:3020"}

            ReloadSignal(server).notify(ReloadMode.SCOPED, "**/*.css")
            assert _read_line(stream) == {"type": "inject", "match": "**/*.css"}

            ReloadSignal(server).notify(ReloadMode.FULL)
            assert _read_line(stream) == {"type": "reload"}
            stream.close()
    finally:
        server.shutdown()


def test_send_before_start_is_ignored():
    server = ReloadBroadcastServer(host="127.0.0.1", port=0, proxy_target="127.0.0.1:3020")
    server.send(ReloadMessage(type="reload"))
    server.shutdown()
