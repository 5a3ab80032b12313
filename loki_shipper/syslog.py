"""Parses RFC 3164 syslog datagrams into log record dicts."""

import re
from datetime import datetime, timedelta

from loki_shipper.labels import host_of

# user.notice, used when a message carries no PRI part (RFC 3164 §4.3.3)
DEFAULT_PRIORITY = 13
MAX_PRIORITY = 191

_PRI_RE = re.compile(r"^<(?P<priority>\d{1,3})>")
_HEADER_RE = re.compile(
    r"^(?P<timestamp>[A-Z][a-z]{2}\s+\d{1,2} \d{2}:\d{2}:\d{2}) "
    r"(?P<hostname>\S+) ?"
    r"(?P<msg>.*)$",
    re.DOTALL,
)
_TAG_RE = re.compile(
    r"^(?P<tag>[^\s:\[\]]{1,32})"
    r"(?:\[(?P<pid>[^\]]*)\])?"
    r":\s?(?P<content>.*)$",
    re.DOTALL,
)


def _parse_timestamp(value: str, now: datetime) -> datetime | None:
    """Parse ``Mmm dd hh:mm:ss`` in local time, guessing the year."""
    try:
        ts = datetime.strptime(f"{now.year} {value}", "%Y %b %d %H:%M:%S")
    except ValueError:
        return None
    # A December message received in early January belongs to last year.
    if ts - now.replace(tzinfo=None) > timedelta(days=1):
        ts = ts.replace(year=now.year - 1)
    return ts.astimezone()


def parse_rfc3164(data: bytes | str, client: str | None = None, now: datetime | None = None) -> dict | None:
    """Parse one syslog datagram.

    Returns a record with priority, facility, severity, timestamp, hostname,
    tag, content and client keys, or None for undecodable or blank input.
    Parts of the header that are missing are filled from the receive time
    and the client address.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return None
    else:
        text = data
    text = text.rstrip("\r\n\x00")
    if not text.strip():
        return None

    now = now or datetime.now().astimezone()
    priority = DEFAULT_PRIORITY
    m = _PRI_RE.match(text)
    if m and int(m.group("priority")) <= MAX_PRIORITY:
        priority = int(m.group("priority"))
        text = text[m.end():]

    timestamp = None
    hostname = None
    msg = text
    h = _HEADER_RE.match(text)
    if h:
        timestamp = _parse_timestamp(h.group("timestamp"), now)
        if timestamp is not None:
            hostname = h.group("hostname")
            msg = h.group("msg")

    tag = ""
    content = msg
    t = _TAG_RE.match(msg)
    if t:
        tag = t.group("tag")
        content = t.group("content")

    record = {
        "priority": priority,
        "facility": priority // 8,
        "severity": priority % 8,
        "timestamp": timestamp or now,
        "hostname": hostname or host_of(client),
        "tag": tag,
        "content": content,
    }
    if client is not None:
        record["client"] = client
    return record
