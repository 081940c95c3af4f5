# Copyright Red Hat
#
# tests/diff/test_stream.py - DiffStream tests.
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import threading
import unittest
from queue import Empty

from stordiff.diff import DiffRecord, DiffStream, DiffType


def _record(n):
    return DiffRecord.difference(f"a{n}", f"b{n}", DiffType.SIZE)


class TestDiffStream(unittest.TestCase):
    def test_put_close_iterate(self):
        stream = DiffStream()
        for n in range(3):
            self.assertTrue(stream.put(_record(n)))
        stream.close()
        self.assertEqual([r.first_url for r in stream], ["a0", "a1", "a2"])

    def test_close_idempotent(self):
        stream = DiffStream()
        stream.close()
        stream.close()
        self.assertTrue(stream.closed)
        self.assertEqual(list(stream), [])
        # The end-of-stream marker is preserved for later iteration.
        self.assertEqual(list(stream), [])

    def test_put_after_close(self):
        stream = DiffStream()
        stream.close()
        with self.assertRaises(ValueError):
            stream.put(_record(0))

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            DiffStream(maxsize=0)

    def test_cancel_unblocks_put(self):
        stream = DiffStream(maxsize=1)
        self.assertTrue(stream.put(_record(0)))
        results = []

        def producer():
            results.append(stream.put(_record(1)))

        thread = threading.Thread(target=producer)
        thread.start()
        stream.cancel()
        thread.join(5)
        self.assertFalse(thread.is_alive())
        self.assertEqual(results, [False])

    def test_put_after_cancel(self):
        stream = DiffStream()
        stream.cancel()
        self.assertTrue(stream.cancelled)
        self.assertFalse(stream.put(_record(0)))
        self.assertEqual(list(stream), [])

    def test_bounded_producer_consumer(self):
        stream = DiffStream(maxsize=2)

        def producer():
            for n in range(20):
                stream.put(_record(n))
            stream.close()

        thread = threading.Thread(target=producer)
        thread.start()
        records = list(stream)
        thread.join(5)
        self.assertEqual(len(records), 20)
        self.assertEqual(records[-1].first_url, "a19")

    def test_get_timeout(self):
        stream = DiffStream()
        with self.assertRaises(Empty):
            stream.get(timeout=0.2)

    def test_context_manager_cancels(self):
        with DiffStream() as stream:
            stream.put(_record(0))
        self.assertTrue(stream.cancelled)
