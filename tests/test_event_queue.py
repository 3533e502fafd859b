"""Tests for the bounded priority event queue."""

import random
import threading

import pytest

from pipeline.event_queue import Priority, PriorityEventQueue, QueuedEvent
from scene.event_generator import EventGenerator
from scene.types import SceneContext

GENERATOR = EventGenerator()


def queued(priority: Priority, tag: str = "") -> QueuedEvent:
    context = SceneContext(primary_activity=tag or priority.name.lower(), confidence=0.5)
    event = GENERATOR.generate(context, "cam", learning_phase=True)
    return QueuedEvent(event=event, frame=None, priority=priority, enqueued_at=0.0)


def drain(queue: PriorityEventQueue):
    items = []
    while True:
        item = queue.get()
        if item is None:
            return items
        items.append(item)


class TestPriorityOrdering:
    def test_class_precedence_then_fifo(self):
        queue = PriorityEventQueue(max_size=64)
        order = [
            (Priority.LOW, "l1"),
            (Priority.CRITICAL, "c1"),
            (Priority.MEDIUM, "m1"),
            (Priority.LOW, "l2"),
            (Priority.HIGH, "h1"),
            (Priority.CRITICAL, "c2"),
            (Priority.MEDIUM, "m2"),
        ]
        for priority, tag in order:
            assert queue.put(queued(priority, tag))
        tags = [item.event.detected_context for item in drain(queue)]
        assert tags == ["c1", "c2", "h1", "m1", "m2", "l1", "l2"]

    def test_random_interleavings_respect_order(self):
        rng = random.Random(7)
        for _ in range(20):
            queue = PriorityEventQueue(max_size=64)
            inserted = []
            for i in range(40):
                priority = rng.choice(list(Priority))
                item = queued(priority, f"e{i}")
                inserted.append(item)
                queue.put(item)
            out = drain(queue)
            expected = sorted(inserted, key=lambda it: -int(it.priority))  # stable sort keeps FIFO
            assert [it.event_id for it in out] == [it.event_id for it in expected]

    def test_from_urgency(self):
        assert Priority.from_urgency("critical") is Priority.CRITICAL
        assert Priority.from_urgency("medium") is Priority.MEDIUM
        assert Priority.from_urgency("bogus") is Priority.LOW

    def test_snapshot_does_not_consume(self):
        queue = PriorityEventQueue()
        queue.put(queued(Priority.LOW))
        queue.put(queued(Priority.HIGH))
        assert [i.priority for i in queue.snapshot()] == [Priority.HIGH, Priority.LOW]
        assert queue.qsize() == 2


class TestQueueBound:
    def test_full_queue_evicts_oldest_lowest(self):
        queue = PriorityEventQueue(max_size=3)
        low_a, low_b, high = queued(Priority.LOW, "a"), queued(Priority.LOW, "b"), queued(Priority.HIGH, "h")
        for item in (low_a, low_b, high):
            queue.put(item)
        assert queue.put(queued(Priority.MEDIUM, "m"))
        assert queue.qsize() == 3
        assert queue.dropped == 1
        assert [i.event.detected_context for i in drain(queue)] == ["h", "m", "b"]

    def test_less_important_event_is_rejected(self):
        queue = PriorityEventQueue(max_size=2)
        queue.put(queued(Priority.HIGH, "h1"))
        queue.put(queued(Priority.HIGH, "h2"))
        assert queue.put(queued(Priority.LOW, "l")) is False
        assert queue.dropped == 1
        # Equal importance replaces the oldest entry of that class.
        assert queue.put(queued(Priority.HIGH, "h3"))
        assert [i.event.detected_context for i in drain(queue)] == ["h2", "h3"]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            PriorityEventQueue(max_size=0)

    def test_concurrent_producers(self):
        queue = PriorityEventQueue(max_size=1000)

        def produce():
            for _ in range(100):
                queue.put(queued(Priority.MEDIUM))

        threads = [threading.Thread(target=produce) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert queue.qsize() == 400
