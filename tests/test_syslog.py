"""Tests for the RFC 3164 syslog parser."""

from datetime import datetime

from loki_shipper.syslog import DEFAULT_PRIORITY, parse_rfc3164

NOW = datetime(2024, 6, 15, 12, 0, 0).astimezone()


def test_full_message():
    record = parse_rfc3164(
        b"<34>Oct 11 22:14:15 mymachine su[230]: 'su root' failed for lonvick on /dev/pts/8",
        client="10.0.0.7:51432",
        now=NOW,
    )
    assert record["priority"] == 34
    assert record["facility"] == 4
    assert record["severity"] == 2
    assert record["hostname"] == "mymachine"
    assert record["tag"] == "su"
    assert record["content"] == "'su root' failed for lonvick on /dev/pts/8"
    assert record["client"] == "10.0.0.7:51432"
    ts = record["timestamp"]
    # October is in the future relative to June, so it is last year's.
    assert (ts.year, ts.month, ts.day, ts.hour, ts.minute, ts.second) == (2023, 10, 11, 22, 14, 15)


def test_single_digit_day_and_no_pid():
    record = parse_rfc3164("<13>Jun  5 08:00:01 web-01 app1: hello", now=NOW)
    assert record["tag"] == "app1"
    assert record["content"] == "hello"
    assert record["hostname"] == "web-01"
    assert record["timestamp"].day == 5
    assert record["timestamp"].year == 2024


def test_december_message_in_january_is_last_year():
    now = datetime(2024, 1, 1, 0, 5, 0).astimezone()
    record = parse_rfc3164("<13>Dec 31 23:59:59 host app: late", now=now)
    assert record["timestamp"].year == 2023


def test_missing_pri_defaults_to_user_notice():
    record = parse_rfc3164("Jun  5 08:00:01 web-01 app1: hello", now=NOW)
    assert record["priority"] == DEFAULT_PRIORITY
    assert record["severity"] == 5
    assert record["facility"] == 1


def test_missing_header_uses_receive_time_and_client_host():
    record = parse_rfc3164("<14>app1: just a message", client="192.168.1.9:514", now=NOW)
    assert record["timestamp"] == NOW
    assert record["hostname"] == "192.168.1.9"
    assert record["tag"] == "app1"
    assert record["content"] == "just a message"


def test_message_without_tag():
    record = parse_rfc3164("<14>Jun  5 08:00:01 web-01 no tag here", now=NOW)
    assert record["tag"] == ""
    assert record["content"] == "no tag here"


def test_trailing_newline_stripped():
    record = parse_rfc3164(b"<14>Jun  5 08:00:01 web-01 app: line\n", now=NOW)
    assert record["content"] == "line"


def test_invalid_utf8_rejected():
    assert parse_rfc3164(b"\xff\xfe\xfa") is None


def test_blank_rejected():
    assert parse_rfc3164(b"  \n") is None
