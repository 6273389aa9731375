"""Tests for the fixed-capacity Batch."""

import pytest

from tokengen.errors import BatchFullError
from tokengen.generation.batch import Batch


class TestBatch:
    def test_add_entries(self):
        batch = Batch(capacity=4)

        assert batch.add(10, 0, 0, False) == 0
        assert batch.add(11, 1, 0, True) == 1

        assert batch.n_tokens == 2
        assert len(batch) == 2
        assert batch.tokens().tolist() == [10, 11]
        assert batch.active_positions().tolist() == [0, 1]
        assert batch.active_seq_ids().tolist() == [0, 0]
        assert batch.logit_slots() == [1]

    def test_full_batch_rejects_entry(self):
        batch = Batch(capacity=2)
        batch.add(1, 0, 0, False)
        batch.add(2, 1, 0, True)

        with pytest.raises(BatchFullError, match="capacity is 2"):
            batch.add(3, 2, 0, True)

        assert batch.n_tokens == 2

    def test_clear_reuses_buffers(self):
        batch = Batch(capacity=3)
        token_buffer = batch.token_ids
        for i in range(3):
            batch.add(i, i, 0, i == 2)

        batch.clear()
        batch.add(7, 3, 0, True)

        assert batch.token_ids is token_buffer
        assert batch.tokens().tolist() == [7]
        assert batch.active_positions().tolist() == [3]
        assert batch.logit_slots() == [0]

    def test_clear_resets_logit_flags(self):
        batch = Batch(capacity=3)
        batch.add(1, 0, 0, True)
        batch.add(2, 1, 0, True)

        batch.clear()
        batch.add(3, 2, 0, False)

        assert batch.logit_slots() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            Batch(capacity=0)
