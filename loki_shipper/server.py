"""UDP syslog listener — receives RFC 3164 datagrams and hands records to a callback."""

import logging
import socket
import threading

from loki_shipper.syslog import parse_rfc3164

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 65536


def format_client(addr) -> str:
    """Render a socket address as ``host:port`` (``[v6]:port`` for IPv6)."""
    host, port = addr[0], addr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class SyslogUDPServer:
    def __init__(
        self,
        host: str,
        port: int,
        on_record,
        shutdown_event: threading.Event,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self._host = host
        self._port = port
        self._on_record = on_record
        self._shutdown = shutdown_event
        self._buffer_size = buffer_size
        self._sock = None
        self._received_count = 0
        self._dropped_count = 0
        self._lock = threading.Lock()
        self.server_address = None

    def start(self):
        """Bind the UDP socket and enter the receive loop."""
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        self._sock = socket.socket(family, socket.SOCK_DGRAM)
        self._sock.settimeout(1.0)
        self._sock.bind((self._host, self._port))

        self.server_address = self._sock.getsockname()
        logger.info(
            "Syslog server listening on %s:%d",
            self.server_address[0], self.server_address[1],
        )

        while not self._shutdown.is_set():
            try:
                data, addr = self._sock.recvfrom(self._buffer_size)
            except socket.timeout:
                continue
            except OSError:
                if self._shutdown.is_set():
                    break
                raise

            record = parse_rfc3164(data, client=format_client(addr))
            if record is None:
                with self._lock:
                    self._dropped_count += 1
                logger.warning("Invalid syslog datagram from %s", addr)
                continue

            with self._lock:
                self._received_count += 1
            logger.debug("Received from %s: %s", addr, record)

            # Blocks while the ingestion buffer is full.
            self._on_record(record)

    def stop(self):
        """Signal shutdown and close the socket."""
        self._shutdown.set()
        if self._sock:
            self._sock.close()
            self._sock = None
        logger.info(
            "Syslog server stopped. Received %d records, dropped %d datagrams",
            self._received_count, self._dropped_count,
        )

    @property
    def received_count(self) -> int:
        with self._lock:
            return self._received_count

    @property
    def dropped_count(self) -> int:
        with self._lock:
            return self._dropped_count
