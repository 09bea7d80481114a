"""Tests for the UDP log client."""

import socket
import threading
import time

from udplog.client import UDPLogClient, format_record
from udplog.config import Config
from udplog.server import UDPLogServer


def _make_receiver():
    """Create a UDP socket to receive records, returns (sock, address)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5.0)
    return sock, sock.getsockname()


class TestFormatRecord:
    def test_wire_format(self):
        assert format_record("dev1", 42, 12.5, 3, 2, "hello world") == b"dev1 42 12.500 3 2|hello world"


class TestClientSend:
    def test_sends_single_record(self):
        recv_sock, (host, port) = _make_receiver()
        client = UDPLogClient(host, port, device_id="test-dev")
        try:
            client.send(2, "hello")
            data, _ = recv_sock.recvfrom(65536)
        finally:
            client.close()
            recv_sock.close()

        header, msg = data.rstrip(b"\n").split(b"|", 1)
        device_id, seq, _uptime, fd, level = header.split(b" ")
        assert (device_id, seq, fd, level, msg) == (b"test-dev", b"1", b"1", b"2", b"hello")

    def test_sequence_increments(self):
        recv_sock, (host, port) = _make_receiver()
        client = UDPLogClient(host, port)
        try:
            for i in range(5):
                client.send(2, f"msg-{i}")
            seqs = [recv_sock.recvfrom(65536)[0].split(b" ")[1] for _ in range(5)]
        finally:
            client.close()
            recv_sock.close()

        assert seqs == [b"1", b"2", b"3", b"4", b"5"]
        assert client.seq == 5

    def test_send_batch_uses_one_datagram(self):
        recv_sock, (host, port) = _make_receiver()
        client = UDPLogClient(host, port)
        try:
            client.send_batch([(0, "a"), (1, "b"), (2, "c")])
            data, _ = recv_sock.recvfrom(65536)
        finally:
            client.close()
            recv_sock.close()

        assert data.count(b"\n") == 3
        assert [line.split(b"|")[1] for line in data.splitlines()] == [b"a", b"b", b"c"]


class TestClientToServer:
    def test_sample_logs_reach_files(self, tmp_path):
        config = Config(listen_addr="udp://127.0.0.1:0/", log_dir=str(tmp_path / "logs"))
        server = UDPLogServer(config, threading.Event())
        thread = threading.Thread(target=server.start, daemon=True)
        thread.start()

        for _ in range(50):
            if server.server_address is not None:
                break
            time.sleep(0.05)

        try:
            host, port = server.server_address
            client = UDPLogClient(host, port, device_id="sample-dev")
            client.generate_sample_logs(count=5, interval=0)
            client.close()

            for _ in range(100):
                if server.metrics.snapshot()["records_received"] == 5:
                    break
                time.sleep(0.05)
        finally:
            server.stop()
            thread.join(timeout=5)

        device_dir = tmp_path / "logs" / "sample-dev"
        daily = list(device_dir.glob("sample-dev.*.log"))
        assert len(daily) == 1
        assert len(daily[0].read_text().splitlines()) == 5
        assert (device_dir / "sample-dev.log").is_symlink()
