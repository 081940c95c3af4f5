# Copyright Red Hat
#
# stordiff/diff/stream.py - Storage differ result stream
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Bounded, closable and cancellable stream of diff records.
"""
from queue import Empty, Full, Queue
from threading import Event, Lock
from typing import Iterator, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .record import DiffRecord

#: Default maximum number of undelivered records
DEFAULT_STREAM_SIZE = 10000

#: Seconds between cancellation checks while blocked
_POLL_INTERVAL = 0.1

# End-of-stream marker
_EOS = object()


class DiffStream:
    """
    An ordered channel of ``DiffRecord`` objects from one comparison.

    Any number of producer threads may ``put()`` records; one consumer
    iterates the stream until it is closed. Calling ``cancel()`` tells the
    producers to stop and ends iteration, so that a consumer abandoning the
    stream never leaves producers blocked on a full queue.

    Leaving a ``with`` block cancels the stream:

        >>> with differ.compare(first, second) as stream:
        ...     for record in stream:
        ...         print(record)
    """

    def __init__(self, maxsize: int = DEFAULT_STREAM_SIZE):
        """
        Initialise a new, open stream.

        :param maxsize: The maximum number of undelivered records.
        :type maxsize: ``int``
        """
        if maxsize <= 0:
            raise ValueError(f"Invalid stream size: {maxsize}")
        self._queue: Queue = Queue(maxsize=maxsize)
        self._cancelled = Event()
        self._closed = False
        self._lock = Lock()

    @property
    def cancelled(self) -> bool:
        """
        ``True`` if ``cancel()`` has been called.
        """
        return self._cancelled.is_set()

    @property
    def closed(self) -> bool:
        """
        ``True`` if ``close()`` has been called.
        """
        return self._closed

    def _put_blocking(self, item) -> bool:
        while not self.cancelled:
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except Full:
                continue
        return False

    def put(self, record: "DiffRecord") -> bool:
        """
        Append ``record`` to the stream, blocking while the stream is full.

        :param record: The record to send.
        :type record: ``DiffRecord``
        :returns: ``True`` if the record was queued or ``False`` if the
                  stream has been cancelled.
        :rtype: ``bool``
        :raises ValueError: If the stream is already closed.
        """
        if self._closed:
            raise ValueError("Cannot put() to a closed DiffStream")
        return self._put_blocking(record)

    def close(self):
        """
        Mark the end of the stream. Subsequent calls have no effect.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._put_blocking(_EOS)

    def cancel(self):
        """
        Cancel the stream: blocked and future ``put()`` calls return
        ``False`` and iteration stops.
        """
        self._cancelled.set()

    def get(self, timeout: Optional[float] = None) -> Optional["DiffRecord"]:
        """
        Return the next record, or ``None`` at the end of the stream or
        when cancelled.

        :param timeout: Seconds to wait, or ``None`` to wait indefinitely.
        :type timeout: ``Optional[float]``
        :raises queue.Empty: If ``timeout`` expires.
        """
        waited = 0.0
        while not self.cancelled:
            try:
                item = self._queue.get(timeout=_POLL_INTERVAL)
            except Empty:
                waited += _POLL_INTERVAL
                if timeout is not None and waited >= timeout:
                    raise
                continue
            if item is _EOS:
                # Leave the marker for any other consumer.
                self._queue.put_nowait(_EOS)
                return None
            return item
        return None

    def __iter__(self) -> Iterator["DiffRecord"]:
        while True:
            record = self.get()
            if record is None:
                return
            yield record

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cancel()


__all__ = ["DEFAULT_STREAM_SIZE", "DiffStream"]
