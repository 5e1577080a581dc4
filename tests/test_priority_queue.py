import random

import pytest

from selector.error_handling import EmptyQueueError
from selector.priority_queue import HeapMinQueue


class TestHeapMinQueue:
    def test_empty_queue(self):
        q = HeapMinQueue()
        assert q.is_empty()
        assert len(q) == 0
        assert not q
        with pytest.raises(EmptyQueueError):
            q.remove_min()
        with pytest.raises(EmptyQueueError):
            q.peek()
        with pytest.raises(EmptyQueueError):
            q.min_priority()

    def test_empty_queue_error_is_index_error(self):
        with pytest.raises(IndexError):
            HeapMinQueue().remove_min()

    def test_remove_min_order(self):
        q = HeapMinQueue(check_invariants=True)
        for key, prio in [("c", 3), ("a", 1), ("e", 5), ("b", 2), ("d", 4)]:
            q.add_or_update(key, prio)
        assert q.peek() == "a"
        assert q.min_priority() == 1
        assert [q.remove_min() for _ in range(5)] == ["a", "b", "c", "d", "e"]
        assert q.is_empty()

    def test_decrease_key(self):
        q = HeapMinQueue(check_invariants=True)
        q.add_or_update("x", 10)
        q.add_or_update("y", 5)
        q.add_or_update("x", 1)
        assert len(q) == 2
        assert q.priority_of("x") == 1
        assert q.remove_min() == "x"

    def test_increase_key(self):
        q = HeapMinQueue(check_invariants=True)
        q.add_or_update("x", 1)
        q.add_or_update("y", 5)
        q.add_or_update("x", 9)
        assert q.remove_min() == "y"
        assert q.remove_min() == "x"

    def test_contains(self):
        q = HeapMinQueue()
        q.add_or_update((1, 2), 0)
        assert (1, 2) in q
        q.remove_min()
        assert (1, 2) not in q

    def test_fifo_tie_break(self):
        """Equal priorities come out in insertion order."""
        q = HeapMinQueue(check_invariants=True)
        for key in "qwertyuiop":
            q.add_or_update(key, 7)
        assert "".join(q.remove_min() for _ in range(10)) == "qwertyuiop"

    def test_updated_key_queues_behind_equal_priorities(self):
        q = HeapMinQueue(check_invariants=True)
        q.add_or_update("a", 5)
        q.add_or_update("b", 9)
        q.add_or_update("c", 5)
        q.add_or_update("b", 5)
        assert [q.remove_min() for _ in range(3)] == ["a", "c", "b"]

    def test_same_priority_update_keeps_position(self):
        q = HeapMinQueue()
        q.add_or_update("a", 3)
        q.add_or_update("b", 3)
        q.add_or_update("a", 3)
        assert q.remove_min() == "a"

    def test_clear(self):
        q = HeapMinQueue()
        q.add_or_update("a", 1)
        q.clear()
        assert q.is_empty()
        assert "a" not in q

    @pytest.mark.parametrize("seed", range(5))
    def test_random_operations_keep_invariant(self, seed):
        """Interleaved updates and removals return keys in non-decreasing priority order."""
        rng = random.Random(seed)
        q = HeapMinQueue(check_invariants=True)
        reference = {}
        for _ in range(400):
            if reference and rng.random() < 0.3:
                key = q.remove_min()
                prio = reference.pop(key)
                assert prio == min([prio] + list(reference.values()))
            else:
                key = rng.randrange(50)
                prio = rng.randrange(100)
                q.add_or_update(key, prio)
                reference[key] = prio
            assert q.check_invariant()
            assert len(q) == len(reference)

        drained = []
        while q:
            drained.append(reference.pop(q.remove_min()))
        assert drained == sorted(drained)
        assert not reference
