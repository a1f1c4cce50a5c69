"""Tests for the audit log."""

import dataclasses

from staragg.aggregator.audit import GENESIS, AuditLog


def test_append_and_verify():
    log = AuditLog()
    log.append("submit", {"epoch": "t", "count": 3})
    log.append("retrieve", {"epoch": "t", "recovered": 1})
    assert len(log.entries()) == 2
    assert log.verify_chain()


def test_empty_chain():
    log = AuditLog()
    assert log.verify_chain()
    assert log.head == GENESIS


def test_chain_links():
    log = AuditLog()
    e1 = log.append("a", {})
    e2 = log.append("b", {})
    assert e1.prev_hash == GENESIS
    assert e2.prev_hash == e1.entry_hash
    assert log.head == e2.entry_hash


def test_tampering_detected():
    log = AuditLog()
    log.append("submit", {"count": 3})
    log.append("submit", {"count": 4})
    log._entries[0] = dataclasses.replace(log._entries[0], data={"count": 300})
    assert not log.verify_chain()


def test_entries_are_plain_dicts():
    log = AuditLog()
    log.append("submit", {"epoch": "t"})
    (entry,) = log.entries()
    assert entry["event"] == "submit"
    assert entry["data"] == {"epoch": "t"}
