"""
Indexed binary min-heap with decrease/increase-key.

The search engine updates the tentative cost of the same pixel many times as
shorter routes are found, so every key's position in the heap is tracked in a
dictionary. That makes `add_or_update` O(log n) instead of a linear scan.

A queue instance is not thread-safe; each search owns its own.
"""

from __future__ import annotations

from itertools import count
from typing import Dict, Generic, Hashable, List, NamedTuple, TypeVar

from selector.error_handling import EmptyQueueError

K = TypeVar("K", bound=Hashable)


class _Entry(NamedTuple):
    key: Hashable
    priority: int
    seq: int


class HeapMinQueue(Generic[K]):
    """
    Minimum-priority queue of distinct keys with integer priorities.

    Ties are broken first-in-first-out: every entry carries a sequence number
    assigned when it is added and re-assigned whenever its priority changes,
    and entries are ordered by ``(priority, sequence)``.

    Invariants:
        * ``_heap[i]`` orders no later than either child at ``2i+1`` / ``2i+2``.
        * ``_index[_heap[i].key] == i`` for every ``i``, and both hold the same keys.
    """

    def __init__(self, check_invariants: bool = False):
        self._heap: List[_Entry] = []
        self._index: Dict[K, int] = {}
        self._counter = count()
        self._check = check_invariants

    # --- queries ---

    def is_empty(self) -> bool:
        return not self._heap

    def size(self) -> int:
        return len(self._heap)

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def peek(self) -> K:
        """Returns the key with the smallest priority without removing it."""
        if not self._heap:
            raise EmptyQueueError("peek from an empty queue")
        return self._heap[0].key

    def min_priority(self) -> int:
        """Returns the smallest priority in the queue."""
        if not self._heap:
            raise EmptyQueueError("min_priority of an empty queue")
        return self._heap[0].priority

    def priority_of(self, key: K) -> int:
        """Returns the current priority of ``key``; KeyError if absent."""
        return self._heap[self._index[key]].priority

    # --- mutations ---

    def add_or_update(self, key: K, priority: int) -> None:
        """Adds ``key`` with ``priority``, or changes its priority if already queued."""
        i = self._index.get(key)
        if i is None:
            self._heap.append(_Entry(key, priority, next(self._counter)))
            self._index[key] = len(self._heap) - 1
            self._bubble_up(len(self._heap) - 1)
        else:
            old = self._heap[i]
            if priority == old.priority:
                return
            self._heap[i] = _Entry(key, priority, next(self._counter))
            if priority < old.priority:
                self._bubble_up(i)
            else:
                self._bubble_down(i)
        if self._check:
            assert self.check_invariant()

    def remove_min(self) -> K:
        """Removes and returns the key with the smallest priority."""
        if not self._heap:
            raise EmptyQueueError("remove_min from an empty queue")
        first = self._heap[0]
        last = self._heap.pop()
        if self._heap:
            self._heap[0] = last
            self._index[last.key] = 0
            self._bubble_down(0)
        del self._index[first.key]
        if self._check:
            assert self.check_invariant()
        return first.key

    def clear(self) -> None:
        self._heap.clear()
        self._index.clear()

    # --- internals ---

    @staticmethod
    def _less(a: _Entry, b: _Entry) -> bool:
        return a.priority < b.priority or (a.priority == b.priority and a.seq < b.seq)

    def _swap(self, i: int, j: int) -> None:
        heap = self._heap
        heap[i], heap[j] = heap[j], heap[i]
        self._index[heap[i].key] = i
        self._index[heap[j].key] = j

    def _bubble_up(self, child: int) -> None:
        heap = self._heap
        while child > 0:
            parent = (child - 1) // 2
            if not self._less(heap[child], heap[parent]):
                return
            self._swap(child, parent)
            child = parent

    def _bubble_down(self, parent: int) -> None:
        heap = self._heap
        n = len(heap)
        c = 2 * parent + 1
        while c < n:
            if c + 1 < n and self._less(heap[c + 1], heap[c]):
                c += 1
            if not self._less(heap[c], heap[parent]):
                return
            self._swap(parent, c)
            parent = c
            c = 2 * parent + 1

    def check_invariant(self) -> bool:
        """Returns True if heap order and the position index are consistent."""
        if len(self._index) != len(self._heap):
            return False
        for i, entry in enumerate(self._heap):
            if self._index.get(entry.key) != i:
                return False
            if i > 0 and self._less(entry, self._heap[(i - 1) // 2]):
                return False
        return True
