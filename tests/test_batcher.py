"""
Batcher tests.

Tests:
- ceil(N/size) batches, order preserved, sizes bounded
- Empty stream sends nothing
- Stream is paused while a batch is being sent
- Send failures stop consumption
"""

import math

import pytest

from conftest import FakeConnection, RecordingIndexClient, make_row
from src.feeder.batcher import Batcher
from src.feeder.errors import IndexDeliveryError
from src.feeder.shard_streamer import ShardStream
from src.feeder.watermark import EPOCH


def _records(n):
    return [{"title": f"t{i}", "name": f"n{i}", "identifiers": ""} for i in range(n)]


class TestBatcher:

    @pytest.mark.parametrize("n", [1, 499, 500, 501, 1234])
    def test_batch_count_and_order(self, n):
        client = RecordingIndexClient()
        delivered = Batcher(client, 500).feed(iter(_records(n)))

        assert delivered == n
        assert len(client.batches) == math.ceil(n / 500)
        assert all(len(b) <= 500 for b in client.batches)
        flattened = [r for b in client.batches for r in b]
        assert flattened == _records(n)

    def test_empty_stream_sends_nothing(self):
        client = RecordingIndexClient()
        assert Batcher(client).feed(iter([])) == 0
        assert client.calls == 0

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            Batcher(RecordingIndexClient(), 0)

    def test_stream_paused_during_flush(self):
        conn = FakeConnection([make_row(i) for i in range(7)])
        client = RecordingIndexClient()
        rows_read_at_send = []
        client.observers.append(lambda batch: rows_read_at_send.append(conn.cursor_obj.rows_read))

        Batcher(client, 3).feed(ShardStream(conn, EPOCH, fetch_size=1))

        assert rows_read_at_send == [3, 6, 7]

    def test_failure_stops_consumption(self):
        conn = FakeConnection([make_row(i) for i in range(10)])
        client = RecordingIndexClient(fail_on_call=1)

        with pytest.raises(IndexDeliveryError):
            Batcher(client, 2).feed(ShardStream(conn, EPOCH, fetch_size=1))

        assert conn.cursor_obj.rows_read == 2
        assert client.batches == []
