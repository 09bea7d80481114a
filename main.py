"""Entry point for the UDP log catcher."""

import logging
import signal
import sys
import threading

from udplog.config import ConfigError, describe, load_config
from udplog.dashboard import create_dashboard_app, run_dashboard
from udplog.formatter import TemplateConfigError
from udplog.server import UDPLogServer

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Config: %s", describe(config))

    shutdown_event = threading.Event()

    try:
        server = UDPLogServer(config, shutdown_event)
    except (TemplateConfigError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if config.dashboard_port:
        app = create_dashboard_app(server.metrics, server.error_tracker, server.file_manager)
        dash_thread = threading.Thread(target=run_dashboard, args=(app, config.dashboard_port),
                                       daemon=True)
        dash_thread.start()
        logger.info("Dashboard running on port %d", config.dashboard_port)

    try:
        server.start()
    except OSError as exc:
        logger.error("Socket error: %s", exc)
        return 1
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
