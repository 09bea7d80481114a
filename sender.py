"""CLI entry point for the UDP log sender."""

import argparse
import logging
import sys

from udplog.client import UDPLogClient

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )

    parser = argparse.ArgumentParser(description="Send device log records over UDP")
    parser.add_argument("--server", default="localhost", help="Server host")
    parser.add_argument("--port", type=int, default=5514, help="Server port")
    parser.add_argument("--device-id", default="udplog-client", help="Device id to report")
    parser.add_argument("--count", type=int, default=20, help="Number of records to send")
    parser.add_argument("--interval", type=float, default=0.1, help="Seconds between records")
    parser.add_argument("--message", help="Send this message once instead of samples")
    parser.add_argument("--level", type=int, default=2, help="Level for --message (0=E .. 4=V)")
    args = parser.parse_args()

    client = UDPLogClient(args.server, args.port, args.device_id)
    try:
        if args.message is not None:
            client.send(args.level, args.message)
            logger.info("Sent 1 record as %s", args.device_id)
        else:
            client.generate_sample_logs(args.count, args.interval)
    finally:
        client.close()


if __name__ == "__main__":
    main()
