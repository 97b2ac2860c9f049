import asyncio
import unittest
from typing import Iterator, List

from coqueue import Queue, QueueEmpty, QueueFull, Storage


class TestQueueNowait(unittest.IsolatedAsyncioTestCase):
    async def test_unbounded_fifo(self):
        q: Queue[int] = Queue()
        for i in range(200):
            q.put_nowait(i)
        self.assertEqual([q.get_nowait() for _ in range(200)], list(range(200)))

    async def test_bounded_put_nowait_raises_when_full(self):
        q: Queue[int] = Queue(maxsize=10)
        for i in range(10):
            q.put_nowait(i)
        self.assertTrue(q.full())
        self.assertEqual(q.size(), 10)
        with self.assertRaises(QueueFull):
            q.put_nowait(10)
        self.assertEqual(q.size(), 10)

    async def test_get_nowait_on_empty_raises(self):
        q: Queue[int] = Queue()
        with self.assertRaises(QueueEmpty):
            q.get_nowait()

    async def test_negative_maxsize_rejected(self):
        with self.assertRaises(ValueError):
            Queue(maxsize=-1)

    async def test_unbounded_is_never_full(self):
        q: Queue[int] = Queue()
        for i in range(1000):
            q.put_nowait(i)
        self.assertFalse(q.full())
        self.assertGreaterEqual(q.capacity(), 1000)

    async def test_introspection(self):
        q: Queue[str] = Queue(maxsize=3, name="jobs")
        self.assertTrue(q.empty())
        self.assertEqual(q.capacity(), 0)
        self.assertEqual(q.maxsize, 3)
        self.assertIsNone(q.logger)
        q.put_nowait("a")
        self.assertFalse(q.empty())
        self.assertEqual(q.size(), 1)
        self.assertEqual(q.capacity(), 3)
        self.assertEqual(q.parked(), (0, 0))
        r = repr(q)
        self.assertIn("'jobs'", r)
        self.assertIn("['a']", r)
        self.assertIn("unfinished=1", r)


class TestHandoff(unittest.IsolatedAsyncioTestCase):
    async def test_parked_getter_receives_item(self):
        q: Queue[int] = Queue(maxsize=1)
        task = asyncio.create_task(q.get())
        await asyncio.sleep(0)
        self.assertEqual(q.parked(), (1, 0))
        await q.put(42)
        # the item went straight to the getter, storage untouched
        self.assertEqual(q.size(), 0)
        self.assertFalse(q.full())
        self.assertEqual(await task, 42)
        self.assertEqual(q.size(), 0)
        self.assertEqual(q.unfinished_tasks, 1)

    async def test_getters_resume_in_arrival_order(self):
        q: Queue[int] = Queue()
        tasks = [asyncio.create_task(q.get()) for _ in range(3)]
        await asyncio.sleep(0)
        for i in (1, 2, 3):
            q.put_nowait(i)
        self.assertEqual(await asyncio.gather(*tasks), [1, 2, 3])

    async def test_pending_handoff_leaves_storage_free(self):
        q: Queue[int] = Queue(maxsize=1)
        task = asyncio.create_task(q.get())
        await asyncio.sleep(0)
        q.put_nowait(1)
        self.assertEqual(q.size(), 0)
        self.assertFalse(q.full())
        q.put_nowait(2)
        self.assertTrue(q.full())
        with self.assertRaises(QueueFull):
            q.put_nowait(3)
        self.assertEqual(await task, 1)
        self.assertEqual(q.get_nowait(), 2)

    async def test_put_nowait_hands_off_to_every_parked_getter(self):
        q: Queue[str] = Queue(maxsize=1)
        getters = [asyncio.create_task(q.get()) for _ in range(2)]
        await asyncio.sleep(0)
        q.put_nowait("a")
        self.assertEqual(q.parked(), (1, 0))
        q.put_nowait("b")
        self.assertEqual(q.parked(), (0, 0))
        self.assertEqual(q.size(), 0)
        self.assertEqual(await asyncio.gather(*getters), ["a", "b"])

    async def test_parked_getter_wins_over_later_get_nowait(self):
        q: Queue[str] = Queue()
        task = asyncio.create_task(q.get())
        await asyncio.sleep(0)
        q.put_nowait("a")
        with self.assertRaises(QueueEmpty):
            q.get_nowait()
        self.assertEqual(await task, "a")


class TestBackpressure(unittest.IsolatedAsyncioTestCase):
    async def test_put_waits_while_full(self):
        q: Queue[int] = Queue(maxsize=1)
        q.put_nowait(1)
        task = asyncio.create_task(q.put(2))
        await asyncio.sleep(0)
        self.assertFalse(task.done())
        self.assertEqual(q.parked(), (0, 1))
        self.assertEqual(q.get_nowait(), 1)
        await task
        self.assertEqual(q.size(), 1)
        self.assertEqual(q.get_nowait(), 2)

    async def test_parked_put_counts_only_once_it_lands(self):
        q: Queue[int] = Queue(maxsize=1)
        q.put_nowait(1)
        task = asyncio.create_task(q.put(2))
        await asyncio.sleep(0)
        self.assertEqual(q.unfinished_tasks, 1)
        await q.get()
        await task
        self.assertEqual(q.unfinished_tasks, 2)

    async def test_putters_resume_in_arrival_order(self):
        q: Queue[int] = Queue(maxsize=1)
        q.put_nowait(0)
        tasks = [asyncio.create_task(q.put(i)) for i in (1, 2, 3)]
        await asyncio.sleep(0)
        self.assertEqual(q.parked(), (0, 3))
        got = [await q.get() for _ in range(4)]
        self.assertEqual(got, [0, 1, 2, 3])
        await asyncio.gather(*tasks)
        self.assertEqual(q.parked(), (0, 0))

    async def test_put_nowait_at_capacity_hands_off_to_parked_getter(self):
        # the slot freed by get_nowait is granted to the parked putter; a getter
        # that parks before that putter resumes still takes a put_nowait
        q: Queue[int] = Queue(maxsize=1)
        q.put_nowait(0)
        putter = asyncio.create_task(q.put(1))
        go = asyncio.Event()
        seen: List[object] = []

        async def consume() -> int:
            await go.wait()
            return await q.get()

        async def produce() -> None:
            await go.wait()
            seen.append((q.full(), q.size(), q.parked()))
            q.put_nowait(2)

        getter = asyncio.create_task(consume())
        producer = asyncio.create_task(produce())
        await asyncio.sleep(0)
        self.assertEqual(q.parked(), (0, 1))

        go.set()
        self.assertEqual(q.get_nowait(), 0)
        await asyncio.wait_for(asyncio.gather(putter, producer), 1)
        self.assertEqual(seen, [(True, 0, (1, 0))])
        self.assertEqual(await getter, 2)
        self.assertEqual(q.get_nowait(), 1)
        self.assertEqual(q.unfinished_tasks, 3)


class StackStorage(Storage[int]):
    def __init__(self, maxsize: int = 0):
        self._items: List[int] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return reversed(self._items)

    @property
    def capacity(self) -> int:
        return len(self._items)

    def push(self, item: int) -> None:
        self._items.append(item)

    def pop(self) -> int:
        return self._items.pop()

    def requeue(self, item: int) -> None:
        self._items.append(item)


class TestPluggableStorage(unittest.IsolatedAsyncioTestCase):
    async def test_storage_decides_retrieval_order(self):
        q: Queue[int] = Queue(maxsize=3, storage=StackStorage)
        for i in (1, 2, 3):
            q.put_nowait(i)
        with self.assertRaises(QueueFull):
            q.put_nowait(4)
        self.assertEqual([q.get_nowait() for _ in range(3)], [3, 2, 1])

    async def test_coordination_unchanged(self):
        q: Queue[int] = Queue(storage=StackStorage)
        task = asyncio.create_task(q.get())
        await asyncio.sleep(0)
        await q.put(9)
        self.assertEqual(await task, 9)
        q.task_done()
        await asyncio.wait_for(q.join(), 1)
