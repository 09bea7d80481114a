"""Console sink — renders each record to stdout."""

import logging
import sys
import threading

from udplog.formatter import RecordTemplate, TemplateRenderError
from udplog.models import LogEvent

logger = logging.getLogger(__name__)


class ConsoleSink:
    def __init__(self, template: RecordTemplate, stream=None):
        self._template = template
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()
        self.render_errors = 0

    def write(self, event: LogEvent) -> bool:
        """Write one rendered record followed by a newline.

        Returns False if the record could not be rendered.
        """
        try:
            line = self._template.render(event) + "\n"
        except TemplateRenderError as exc:
            logger.error("Failed to render record from %r: %s", event.device_id, exc)
            with self._lock:
                self.render_errors += 1
            return False
        with self._lock:
            self._stream.write(line)
            self._stream.flush()
        return True
