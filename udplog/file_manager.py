"""Per-device log files with daily rotation and a "latest" symlink."""

import logging
import os
import threading
import time

from udplog.formatter import RecordTemplate, TemplateRenderError
from udplog.models import LogEvent

logger = logging.getLogger(__name__)


class DeviceFile:
    """The open file for one device. Only touched under FileManager's lock."""

    def __init__(self, now: float):
        self.file = None
        self.filename = None
        self.last_used = now

    @property
    def is_open(self) -> bool:
        return self.file is not None

    def open(self, filename: str):
        os.makedirs(os.path.dirname(filename), exist_ok=True)
        self.file = open(filename, "a", encoding="utf-8")
        self.filename = filename
        logger.info("Opened %s", filename)

    def close(self):
        if self.file is None:
            return
        try:
            self.file.close()
        except OSError as exc:
            logger.error("Failed to close %s: %s", self.filename, exc)
        else:
            logger.info("Closed %s", self.filename)
        # Forget the name too, so the next write reopens.
        self.file = None
        self.filename = None


class FileManager:
    """Routes records to ``<log_dir>/<name template>``, one open file per device.

    A single lock covers the device map and every write, so lines are never
    interleaved. The file name is re-rendered for every record; when it
    changes (a new day, with the default template) the old file is closed and
    the new one opened. Open and write failures drop the line and leave the
    device without an open file, so the next record retries.
    """

    def __init__(self, log_dir: str, record_template: RecordTemplate,
                 name_template: RecordTemplate, latest_template: RecordTemplate | None = None,
                 idle_timeout_sec: float = 0, time_func=None):
        self._log_dir = os.path.abspath(log_dir)
        self._record_template = record_template
        self._name_template = name_template
        self._latest_template = latest_template
        self._idle_timeout_sec = idle_timeout_sec
        self._time_func = time_func or time.monotonic
        self._lock = threading.Lock()
        self._devices: dict[str, DeviceFile] = {}
        self.open_errors = 0
        self.write_errors = 0
        self.render_errors = 0

        os.makedirs(self._log_dir, exist_ok=True)

    @property
    def log_dir(self) -> str:
        return self._log_dir

    @property
    def open_files(self) -> int:
        with self._lock:
            return sum(1 for device in self._devices.values() if device.is_open)

    def _render_path(self, template: RecordTemplate, event: LogEvent) -> str:
        path = os.path.normpath(os.path.join(self._log_dir, template.render(event)))
        if os.path.commonpath([self._log_dir, path]) != self._log_dir or path == self._log_dir:
            raise ValueError(f"{template.name} {path!r} is outside {self._log_dir}")
        return path

    def write_line(self, event: LogEvent) -> bool:
        """Append one rendered record for ``event.device_id_safe``.

        Returns False if the line was dropped.
        """
        with self._lock:
            try:
                filename = self._render_path(self._name_template, event)
                line = self._record_template.render(event) + "\n"
            except TemplateRenderError as exc:
                logger.error("Failed to render record from %r: %s", event.device_id, exc)
                self.render_errors += 1
                return False
            except ValueError as exc:
                logger.error("Refusing to write record from %r: %s", event.device_id, exc)
                self.open_errors += 1
                return False

            now = self._time_func()
            device = self._devices.get(event.device_id_safe)
            if device is None:
                device = DeviceFile(now)
                self._devices[event.device_id_safe] = device

            if filename != device.filename:
                device.close()
                try:
                    device.open(filename)
                except OSError as exc:
                    logger.error("Failed to open log file %s: %s", filename, exc)
                    self.open_errors += 1
                    return False
                self._update_latest(event, filename)

            try:
                device.file.write(line)
                device.file.flush()
            except OSError as exc:
                logger.error("Failed to write to %s: %s", device.filename, exc)
                self.write_errors += 1
                device.close()
                return False
            device.last_used = now
            return True

    def _update_latest(self, event: LogEvent, filename: str):
        if self._latest_template is None:
            return
        try:
            latest = self._render_path(self._latest_template, event)
        except ValueError as exc:
            logger.error("Not updating latest link: %s", exc)
            return
        if latest == filename:
            logger.error("Latest link %s would replace the log file itself", latest)
            return

        target = os.path.relpath(filename, os.path.dirname(latest))
        try:
            current = os.readlink(latest)
        except OSError:
            current = None
        if current == target:
            return

        try:
            if os.path.lexists(latest):
                os.remove(latest)
            os.makedirs(os.path.dirname(latest), exist_ok=True)
            os.symlink(target, latest)
        except OSError as exc:
            logger.error("Failed to symlink %s -> %s: %s", latest, target, exc)
        else:
            logger.info("%s -> %s", latest, target)

    def close_idle(self) -> int:
        """Close and forget devices idle for longer than the idle timeout."""
        if self._idle_timeout_sec <= 0:
            return 0
        closed = 0
        with self._lock:
            cutoff = self._time_func() - self._idle_timeout_sec
            for device_id in [d for d, device in self._devices.items() if device.last_used < cutoff]:
                self._devices.pop(device_id).close()
                closed += 1
        if closed:
            logger.info("Closed %d idle device file(s)", closed)
        return closed

    def close(self):
        with self._lock:
            for device in self._devices.values():
                device.close()
            self._devices.clear()
