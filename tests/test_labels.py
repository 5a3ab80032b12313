"""Tests for label resolution and fragment building."""

from datetime import datetime, timezone

import pytest

from loki_shipper.config import LabelRule
from loki_shipper.labels import LabelResolver, build_fragment, host_of, timestamp_nanos

RULES = [
    LabelRule(tag="app1", labels={"service": "app1"}),
    LabelRule(tag="10.0.0.7", labels={"device": "switch-1"}),
    LabelRule(tag="app1", labels={"service": "shadowed"}),
]


@pytest.fixture
def resolver():
    return LabelResolver(RULES)


class TestResolve:
    def test_match_by_tag(self, resolver):
        labels, matched = resolver.resolve("app1", "192.168.1.5:514")
        assert matched is True
        assert labels == {"service": "app1"}

    def test_first_rule_wins(self, resolver):
        labels, _ = resolver.resolve("app1", None)
        assert labels["service"] == "app1"

    def test_fallback_to_source_host(self, resolver):
        labels, matched = resolver.resolve("unknown", "10.0.0.7:51432")
        assert matched is True
        assert labels == {"device": "switch-1"}

    def test_empty_tag_uses_source_host(self, resolver):
        labels, matched = resolver.resolve("", "10.0.0.7:514")
        assert matched is True
        assert labels == {"device": "switch-1"}

    def test_no_match(self, resolver):
        labels, matched = resolver.resolve("other", "192.168.1.5:514")
        assert matched is False
        assert labels == {}

    def test_returns_a_copy(self, resolver):
        labels, _ = resolver.resolve("app1", None)
        labels["extra"] = "x"
        assert RULES[0].labels == {"service": "app1"}

    def test_match_key_is_last_attempted(self, resolver):
        assert resolver.match("other", "192.168.1.5:514") == (None, "192.168.1.5")
        assert resolver.match("other", None) == (None, "other")
        assert resolver.match("", "") == (None, "")


@pytest.mark.parametrize("address,expected", [
    ("10.0.0.7:514", "10.0.0.7"),
    ("10.0.0.7", "10.0.0.7"),
    ("[::1]:514", "::1"),
    ("::1", "::1"),
    ("", ""),
    (None, ""),
])
def test_host_of(address, expected):
    assert host_of(address) == expected


class TestTimestampNanos:
    def test_aware_datetime(self):
        dt = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
        assert timestamp_nanos(dt) == "1705314600123456000"

    def test_iso_string(self):
        assert timestamp_nanos("2024-01-15T10:30:00+00:00") == "1705314600000000000"

    def test_go_time_string(self):
        assert timestamp_nanos("2024-01-15 10:30:00 +0000 UTC") == "1705314600000000000"

    def test_missing_uses_now(self):
        assert timestamp_nanos(None, now=1.5) == "1500000000"

    def test_unparsable_uses_now(self):
        assert timestamp_nanos("yesterday-ish", now=2.0) == "2000000000"


class TestBuildFragment:
    def test_tag_match_adds_tag_label(self, resolver):
        frag = build_fragment({"tag": "app1", "content": "hello"}, resolver, now=1.0)
        assert frag.labels == {"service": "app1", "tag": "app1"}
        assert frag.entries == [("1000000000", "hello")]

    def test_record_fields_become_labels(self, resolver):
        record = {
            "tag": "app1",
            "client": "192.168.1.5:514",
            "severity": 3,
            "facility": 1,
            "hostname": "web-01",
            "priority": 11,
            "content": "boom",
            "timestamp": datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        }
        frag = build_fragment(record, resolver)
        assert frag.labels == {
            "service": "app1",
            "tag": "app1",
            "severity": 3,
            "facility": 1,
            "hostname": "web-01",
            "priority": 11,
        }
        assert frag.entries == [("1705314600000000000", "boom")]

    def test_source_host_fallback_tags_with_host(self, resolver):
        frag = build_fragment({"tag": "sshd", "client": "10.0.0.7:514", "content": "x"}, resolver)
        assert frag.labels == {"device": "switch-1", "tag": "10.0.0.7"}

    def test_unmatched_record_still_admitted(self, resolver):
        frag = build_fragment({"tag": "sshd", "content": "x"}, resolver)
        assert frag.labels == {"tag": "sshd"}
        assert len(frag.entries) == 1

    def test_missing_content(self, resolver):
        frag = build_fragment({"tag": "app1"}, resolver)
        assert frag.entries[0][1] == ""

    def test_rule_labels_not_mutated(self, resolver):
        build_fragment({"tag": "app1", "severity": 6}, resolver)
        assert RULES[0].labels == {"service": "app1"}
