"""UDP Log Server — receives device log records and fans them out to sinks."""

import logging
import socket
import threading
from datetime import datetime, timezone

from udplog.config import Config, parse_listen_addr
from udplog.console import ConsoleSink
from udplog.error_tracker import ErrorTracker
from udplog.file_manager import FileManager
from udplog.formatter import (
    compile_file_name_template,
    compile_latest_name_template,
    compile_template,
)
from udplog.metrics import Metrics
from udplog.parser import ParseError, parse_line
from udplog.timestamps import resolve_timestamp_format

logger = logging.getLogger(__name__)


def format_address(addr) -> str:
    """Render a socket address as host:port ([host]:port for IPv6)."""
    host, port = addr[0], addr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def build_console_sink(config: Config) -> ConsoleSink | None:
    if not config.stdout:
        return None
    return ConsoleSink(compile_template(config.stdout_format, "stdout"))


def build_file_manager(config: Config) -> FileManager | None:
    if not config.log_dir:
        return None
    latest = None
    if config.latest_name_format:
        latest = compile_latest_name_template(config.latest_name_format)
    return FileManager(
        config.log_dir,
        compile_template(config.file_format, "file"),
        compile_file_name_template(config.file_name_format),
        latest,
        idle_timeout_sec=config.idle_timeout_sec,
    )


class UDPLogServer:
    """Receive loop plus per-record processing.

    Templates are compiled in the constructor, so an invalid one fails before
    the socket is opened.
    """

    def __init__(self, config: Config, shutdown_event: threading.Event,
                 console: ConsoleSink | None = None, file_manager: FileManager | None = None,
                 clock=None):
        self._config = config
        self._shutdown = shutdown_event
        self._sock = None
        self._timestamp_format = resolve_timestamp_format(config.timestamp_format)
        self._clock = clock or self._now
        self.server_address = None
        self.metrics = Metrics()
        self.error_tracker = ErrorTracker(config.max_errors)
        self.console = console if console is not None else build_console_sink(config)
        self.file_manager = file_manager if file_manager is not None else build_file_manager(config)

    def _now(self) -> datetime:
        if self._config.utc:
            return datetime.now(timezone.utc)
        return datetime.now().astimezone()

    def start(self):
        host, port = parse_listen_addr(self._config.listen_addr)
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM)
        sock.settimeout(1.0)
        sock.bind((host, port))
        self._sock = sock

        self.server_address = sock.getsockname()[:2]
        if host:
            logger.info("Listening on UDP %s...", format_address(self.server_address))
        else:
            logger.info("Listening on UDP port %d...", self.server_address[1])

        while not self._shutdown.is_set():
            try:
                data, addr = sock.recvfrom(self._config.buffer_size)
            except socket.timeout:
                if self.file_manager is not None:
                    self.file_manager.close_idle()
                continue
            except OSError:
                if self._shutdown.is_set():
                    break
                raise

            self.process_datagram(data, addr, self._clock())

    def process_datagram(self, data: bytes, addr, received_at: datetime) -> int:
        """Process every record in one datagram. Returns how many parsed."""
        self.metrics.record_datagram()
        src = format_address(addr)
        parsed = 0
        for line in data.split(b"\n"):
            line = line.rstrip(b"\r\n")
            if not line:
                continue
            if self.process_line(line, src, received_at):
                parsed += 1
        return parsed

    def process_line(self, line: bytes, src: str, received_at: datetime) -> bool:
        try:
            event = parse_line(line, src, received_at, self._timestamp_format)
        except ParseError as exc:
            logger.error("invalid log message %r from %s: %s", line, src, exc)
            self.metrics.record_parse_error(exc.kind)
            self.error_tracker.add(line.decode("utf-8", errors="replace"), src, exc.kind, str(exc))
            return False

        self.metrics.record_event(event.device_id_safe, event.level_char)
        logger.debug("Received from %s: %s", src, event)

        dropped = False
        if self.console is not None and not self.console.write(event):
            dropped = True
        if self.file_manager is not None and not self.file_manager.write_line(event):
            dropped = True
        if dropped:
            self.metrics.record_dropped()
        return True

    def stop(self):
        self._shutdown.set()
        if self._sock:
            self._sock.close()
            self._sock = None
        if self.file_manager is not None:
            self.file_manager.close()
        logger.info("UDP server stopped. Stats: %s", self.metrics.snapshot())
