"""
Tests for the custody ledger and the event sinks.
"""

import logging

import pytest

from clmm.core.amm.custody import InMemoryTokenLedger, Transfer
from clmm.core.amm.events import LoggingEventSink, RecordingEventSink
from clmm.core.exceptions import CustodyError, InsufficientBalanceError


class TestInMemoryTokenLedger:
    def test_mint_and_transfer(self):
        ledger = InMemoryTokenLedger()
        ledger.mint("alice", "A", 100)
        ledger.transfer("alice", "bob", "A", 40)
        assert ledger.balance("alice", "A") == 60
        assert ledger.balance("bob", "A") == 40
        assert ledger.balance("bob", "B") == 0

    def test_overdraft_rejected(self):
        ledger = InMemoryTokenLedger()
        ledger.mint("alice", "A", 10)
        with pytest.raises(InsufficientBalanceError) as excinfo:
            ledger.transfer("alice", "bob", "A", 11)
        assert excinfo.value.details["available"] == 10
        assert ledger.balance("alice", "A") == 10
        assert ledger.balance("bob", "A") == 0

    def test_zero_transfer_is_noop(self):
        ledger = InMemoryTokenLedger()
        ledger.transfer("nobody", "bob", "A", 0)
        assert ledger.balance("bob", "A") == 0

    def test_negative_amounts_rejected(self):
        ledger = InMemoryTokenLedger()
        with pytest.raises(CustodyError):
            ledger.mint("alice", "A", -1)
        with pytest.raises(CustodyError):
            ledger.transfer("alice", "bob", "A", -1)


class TestTransfer:
    def test_reversed(self):
        transfer = Transfer("alice", "pool", "A", 5)
        assert transfer.reversed() == Transfer("pool", "alice", "A", 5)
        assert transfer.reversed().reversed() == transfer


class TestRecordingEventSink:
    def test_records_in_order(self):
        sink = RecordingEventSink()
        sink.publish("swap", {"amount_in": 1})
        sink.publish("sync_tick", {"tick": -3})
        sink.publish("swap", {"amount_in": 2})

        assert sink.topics() == ["swap", "sync_tick", "swap"]
        assert sink.last("swap") == {"amount_in": 2}
        assert sink.last("collect") is None

        sink.clear()
        assert sink.events == []

    def test_payload_copied(self):
        sink = RecordingEventSink()
        payload = {"tick": 1}
        sink.publish("sync_tick", payload)
        payload["tick"] = 2
        assert sink.last("sync_tick") == {"tick": 1}


class TestLoggingEventSink:
    def test_emits_tagged_record(self, caplog):
        sink = LoggingEventSink()
        with caplog.at_level(logging.INFO, logger="clmm.core.amm.events"):
            sink.publish("swap", {"amount_in": 10, "sender": "trader"})

        record = caplog.records[-1]
        assert record.event == "clmm.swap"
        assert record.amount_in == 10
        assert record.sender == "trader"

    def test_reserved_keys_prefixed(self, caplog):
        logger = logging.getLogger("clmm.test_events")
        sink = LoggingEventSink(logger)
        with caplog.at_level(logging.INFO, logger="clmm.test_events"):
            sink.publish("collect", {"name": "position", "message": "x", "amount0": 3})

        record = caplog.records[-1]
        assert record.event_name == "position"
        assert record.event_message == "x"
        assert record.amount0 == 3
        assert record.name == "clmm.test_events"
