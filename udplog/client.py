"""UDP log client — sends device records in the wire format.

Mostly useful for poking a running server by hand and for tests.
"""

import logging
import random
import socket
import time

logger = logging.getLogger(__name__)

LEVELS = (0, 1, 2, 2, 2, 3, 4)
SAMPLE_MESSAGES = [
    "boot complete",
    "wifi connected, rssi -61",
    "mqtt connected to broker",
    "sensor read timeout | retrying",
    "heap low: 12044 bytes free",
    "ota check: no update",
    "relay 1 on",
    "temperature 21.5C",
]


def format_record(device_id: str, seq: int, uptime: float, fd: int, level: int, message: str) -> bytes:
    """Build one wire record (without the trailing newline)."""
    return f"{device_id} {seq} {uptime:.3f} {fd} {level}|{message}".encode("utf-8")


class UDPLogClient:
    def __init__(self, server_host: str, server_port: int, device_id: str = "udplog-client",
                 fd: int = 1):
        self._server = (server_host, server_port)
        self._device_id = device_id
        self._fd = fd
        self._seq = 0
        self._started = time.monotonic()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    @property
    def seq(self) -> int:
        return self._seq

    def _next_record(self, level: int, message: str) -> bytes:
        self._seq += 1
        uptime = time.monotonic() - self._started
        return format_record(self._device_id, self._seq, uptime, self._fd, level, message)

    def send(self, level: int, message: str):
        """Send a single record in its own datagram."""
        self.send_raw(self._next_record(level, message) + b"\n")
        logger.debug("Sent seq=%d level=%d", self._seq, level)

    def send_batch(self, records):
        """Send several (level, message) records in one datagram."""
        payload = b"".join(self._next_record(level, message) + b"\n" for level, message in records)
        self.send_raw(payload)

    def send_raw(self, payload: bytes):
        self._sock.sendto(payload, self._server)

    def generate_sample_logs(self, count: int, interval: float = 0.1):
        """Send N sample records with random levels."""
        for i in range(count):
            self.send(random.choice(LEVELS), random.choice(SAMPLE_MESSAGES))
            if interval > 0 and i < count - 1:
                time.sleep(interval)
        logger.info("Sent %d sample records as %s", count, self._device_id)

    def close(self):
        self._sock.close()
