"""Tests for new/closed position detection."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from conftest import as_utc, make_position
from traderwatch.engine.diff import PositionDiffer, parse_open_time
from traderwatch.errors import StoreError
from traderwatch.models.position_record import PositionRecord, PositionStatus

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TRADER = "1001"


# ---------------------------------------------------------------------------
# 1. Open time parsing
# ---------------------------------------------------------------------------

class TestParseOpenTime:
    def test_millisecond_timestamp(self):
        assert parse_open_time("1700000000000") == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_garbage_returns_none(self):
        assert parse_open_time("yesterday") is None

    def test_empty_returns_none(self):
        assert parse_open_time("") is None


# ---------------------------------------------------------------------------
# 2. New-position detection against a real store
# ---------------------------------------------------------------------------

class TestDetectNew:
    def test_creates_active_record(self, position_store):
        differ = PositionDiffer(position_store)
        created = differ.detect_new(TRADER, [make_position("p1")], NOW)

        assert len(created) == 1
        rec = created[0]
        assert rec.id is not None
        assert rec.position_id == "p1"
        assert rec.status == PositionStatus.ACTIVE
        assert rec.symbol == "BTC/USDT"
        assert rec.side == "LONG"
        assert rec.leverage == "20x"
        assert rec.open_price == "65000.1"
        assert as_utc(rec.first_seen_at) == parse_open_time("1700000000000")
        assert as_utc(rec.last_seen_at) == NOW
        assert rec.closed_at is None

    def test_unparseable_open_time_falls_back_to_now(self, position_store, caplog):
        differ = PositionDiffer(position_store)
        with caplog.at_level(logging.WARNING):
            created = differ.detect_new(TRADER, [make_position("p1", open_time="n/a")], NOW)
        assert as_utc(created[0].first_seen_at) == NOW
        assert "Unparseable open time" in caplog.text

    def test_unchanged_snapshot_creates_nothing(self, position_store):
        differ = PositionDiffer(position_store)
        snapshot = [make_position("p1"), make_position("p2", symbol="ETH/USDT", side="SHORT")]
        assert len(differ.detect_new(TRADER, snapshot, NOW)) == 2
        assert differ.detect_new(TRADER, snapshot, NOW + timedelta(seconds=30)) == []

    def test_same_position_id_for_other_trader_is_new(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new(TRADER, [make_position("p1")], NOW)
        assert len(differ.detect_new("2002", [make_position("p1")], NOW)) == 1

    def test_lookup_error_treated_as_absent(self):
        store = MagicMock()
        store.get.side_effect = StoreError("db down")
        store.create.side_effect = lambda rec: rec
        created = PositionDiffer(store).detect_new(TRADER, [make_position("p1")], NOW)
        assert [r.position_id for r in created] == ["p1"]

    def test_create_failure_skips_only_that_position(self):
        store = MagicMock()
        store.get.return_value = None

        def create(rec):
            if rec.position_id == "p1":
                raise StoreError("constraint")
            return rec

        store.create.side_effect = create
        created = PositionDiffer(store).detect_new(
            TRADER, [make_position("p1"), make_position("p2")], NOW
        )
        assert [r.position_id for r in created] == ["p2"]

    def test_duplicate_after_lookup_error_is_rejected_by_store(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new(TRADER, [make_position("p1")], NOW)

        flaky = MagicMock(wraps=position_store)
        flaky.get.side_effect = StoreError("timeout")
        created = PositionDiffer(flaky).detect_new(TRADER, [make_position("p1")], NOW)

        assert created == []
        assert len(position_store.list_active(TRADER)) == 1


# ---------------------------------------------------------------------------
# 3. Closed-position detection
# ---------------------------------------------------------------------------

class TestDetectClosed:
    def test_missing_position_is_closed(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new(TRADER, [make_position("p1")], NOW)

        closed_at = NOW + timedelta(seconds=30)
        closed = differ.detect_closed(TRADER, [], closed_at)

        assert len(closed) == 1
        assert closed[0].position_id == "p1"
        assert closed[0].status == PositionStatus.CLOSED
        assert closed[0].closed_at == closed_at
        stored = position_store.get(TRADER, "p1")
        assert stored.status == PositionStatus.CLOSED
        assert as_utc(stored.closed_at) == closed_at

    def test_present_position_stays_active(self, position_store):
        differ = PositionDiffer(position_store)
        snapshot = [make_position("p1")]
        differ.detect_new(TRADER, snapshot, NOW)

        assert differ.detect_closed(TRADER, snapshot, NOW + timedelta(seconds=30)) == []
        assert position_store.get(TRADER, "p1").status == PositionStatus.ACTIVE

    def test_closed_exactly_once(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new(TRADER, [make_position("p1")], NOW)
        assert len(differ.detect_closed(TRADER, [], NOW + timedelta(seconds=30))) == 1
        assert differ.detect_closed(TRADER, [], NOW + timedelta(seconds=60)) == []

    def test_reappearing_position_never_reactivates(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new(TRADER, [make_position("p1")], NOW)
        differ.detect_closed(TRADER, [], NOW + timedelta(seconds=30))

        again = NOW + timedelta(seconds=60)
        assert differ.detect_new(TRADER, [make_position("p1")], again) == []
        assert differ.detect_closed(TRADER, [make_position("p1")], again) == []
        assert position_store.get(TRADER, "p1").status == PositionStatus.CLOSED

    def test_only_own_trader_records_considered(self, position_store):
        differ = PositionDiffer(position_store)
        differ.detect_new("2002", [make_position("p9")], NOW)
        assert differ.detect_closed(TRADER, [], NOW) == []
        assert position_store.get("2002", "p9").status == PositionStatus.ACTIVE

    def test_list_failure_returns_empty(self):
        store = MagicMock()
        store.list_active.side_effect = StoreError("db down")
        assert PositionDiffer(store).detect_closed(TRADER, [], NOW) == []
        store.mark_closed.assert_not_called()

    def test_update_failure_skips_record(self):
        store = MagicMock()
        store.list_active.return_value = [
            PositionRecord(id=1, trader_id=TRADER, position_id="p1"),
            PositionRecord(id=2, trader_id=TRADER, position_id="p2"),
        ]
        store.mark_closed.side_effect = [StoreError("locked"), True]
        closed = PositionDiffer(store).detect_closed(TRADER, [], NOW)
        assert [r.position_id for r in closed] == ["p2"]

    def test_already_closed_by_store_is_skipped(self):
        store = MagicMock()
        store.list_active.return_value = [PositionRecord(id=1, trader_id=TRADER, position_id="p1")]
        store.mark_closed.return_value = False
        assert PositionDiffer(store).detect_closed(TRADER, [], NOW) == []
