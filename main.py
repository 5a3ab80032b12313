"""Entry point for the syslog to Loki shipper."""

import logging
import signal
import sys
import threading

from loki_shipper.config import ConfigError, load_config, parse_bind
from loki_shipper.server import SyslogUDPServer
from loki_shipper.shipper import LokiShipper


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    try:
        config = load_config(argv)
        host, port = parse_bind(config.syslog_bind)
        logging.getLogger().setLevel(config.log_level.upper())
        # Listener and scheduler get separate events so the final flush can
        # still run after the listener has stopped.
        listener_shutdown = threading.Event()
        shipper_shutdown = threading.Event()
        shipper = LokiShipper(config, shipper_shutdown)
    except (ConfigError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    server = SyslogUDPServer(host, port, shipper.submit, listener_shutdown)

    def handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        listener_shutdown.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_signal)

    shipper.start()
    try:
        server.start()
    except OSError as exc:
        logger.error("Failed to initialize syslog service on %s: %s", config.syslog_bind, exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        server.stop()
        shipper.stop(timeout=30)
    return 0


if __name__ == "__main__":
    sys.exit(main())
