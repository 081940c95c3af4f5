# Copyright Red Hat
#
# stordiff/diff/differ.py - Storage differ comparison engine
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage comparison engine.

``Differ.compare()`` stats both locations, chooses a comparison strategy and
streams ``DiffRecord`` objects to the caller:

* object vs object: compare type and size;
* object vs directory: compare the object with the same-named entry in the
  directory;
* directory vs directory: compare each immediate child (flat diff) or build
  an index of both trees and compare every entry (recursive diff).
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from threading import Thread
from typing import List, Optional, TextIO, TYPE_CHECKING
import logging
import sys

from stordiff import (
    StordiffError,
    StordiffNotFoundError,
    StordiffStateError,
    STORDIFF_SUBSYSTEM_DIFF,
)

from ..client import (
    EntryAttributes,
    REMOTE_SEPARATOR,
    StorageClient,
    StorageURL,
    new_client,
    parse_url,
    url_join_path,
    url_to_stat,
)
from ..progress import ProgressFactory, TermControl, ThrobberTask
from .difftypes import DiffType
from .index import PrefixIndex
from .options import DiffOptions
from .record import DiffRecord
from .stream import DiffStream

if TYPE_CHECKING:
    from stordiff.config import StordiffConfig

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_diff(msg, *args, **kwargs):
    """A wrapper for diff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_DIFF}, **kwargs)


@dataclass
class DiffSession:
    """
    The state of one comparison.
    """

    #: The first URL as given by the caller
    first_url: str
    #: The second URL as given by the caller
    second_url: str
    #: The stream receiving this comparison's records
    stream: DiffStream
    #: Client for ``first_url``, set once it has been stat'd
    first_client: Optional[StorageClient] = None
    #: Client for ``second_url``, set once it has been stat'd
    second_client: Optional[StorageClient] = None


def compare_attributes(
    first: EntryAttributes, second: EntryAttributes
) -> Optional[DiffType]:
    """
    Compare two entries present in both locations.

    :param first: The entry in the first location.
    :type first: ``EntryAttributes``
    :param second: The entry in the second location.
    :type second: ``EntryAttributes``
    :returns: The kind of difference, or ``None`` if the entries match.
    :rtype: ``Optional[DiffType]``
    """
    if not first.same_type(second):
        return DiffType.TYPE
    if first.is_regular and first.size != second.size:
        return DiffType.SIZE
    return None


def _key_to_path(key: str, base: StorageURL) -> str:
    return key.replace(REMOTE_SEPARATOR, base.separator)


class Differ:
    """
    Compare two storage locations.
    """

    def __init__(
        self,
        options: Optional[DiffOptions] = None,
        config: Optional["StordiffConfig"] = None,
        term_control: Optional[TermControl] = None,
        term_stream: Optional[TextIO] = None,
    ):
        """
        Initialise a new ``Differ``.

        :param options: Comparison options.
        :type options: ``Optional[DiffOptions]``
        :param config: Configuration passed to storage clients.
        :type config: ``Optional[StordiffConfig]``
        :param term_control: Terminal control for the progress indicator.
        :type term_control: ``Optional[TermControl]``
        :param term_stream: Stream for the progress indicator. Defaults to
                            ``sys.stderr`` so that records written to
                            ``sys.stdout`` are never interleaved with it.
        :type term_stream: ``Optional[TextIO]``
        """
        self.options = options or DiffOptions()
        self.config = config
        self._term_control = term_control
        self._term_stream = term_stream or sys.stderr

    def compare(self, first_url: str, second_url: str) -> DiffStream:
        """
        Start comparing ``first_url`` with ``second_url`` and return the
        stream of results.

        The comparison runs in a background thread. The returned stream is
        closed when the comparison completes, successfully or not; cancel
        it (or leave its ``with`` block) to abandon the comparison early.

        :param first_url: The first (source) location.
        :type first_url: ``str``
        :param second_url: The second (target) location.
        :type second_url: ``str``
        :returns: The stream of diff records.
        :rtype: ``DiffStream``
        """
        stream = DiffStream(maxsize=self.options.stream_size)
        session = DiffSession(str(first_url), str(second_url), stream)
        _log_debug_diff(
            "Starting comparison of '%s' and '%s' (%s)",
            session.first_url,
            session.second_url,
            "recursive" if self.options.recursive else "flat",
        )
        worker = Thread(
            target=self._run_session,
            args=(session,),
            name="stordiff-diff",
            daemon=True,
        )
        worker.start()
        return stream

    def diff(self, first_url: str, second_url: str) -> List[DiffRecord]:
        """
        Compare ``first_url`` with ``second_url`` and return all records.

        :param first_url: The first (source) location.
        :type first_url: ``str``
        :param second_url: The second (target) location.
        :type second_url: ``str``
        :returns: The list of diff records.
        :rtype: ``List[DiffRecord]``
        """
        with self.compare(first_url, second_url) as stream:
            return list(stream)

    def _emit(self, stream: DiffStream, record: DiffRecord) -> bool:
        if record.is_error:
            _log_debug_diff("Emitting error record: %s", record.fatal_message())
        else:
            _log_debug_diff(
                "Emitting %s record: '%s' '%s'",
                record.diff_type.value,
                record.first_url,
                record.second_url,
            )
        return stream.put(record)

    def _run_session(self, session: DiffSession):
        try:
            self._classify(session)
        # Any failure must reach the consumer as an error record.
        except Exception as err:  # pylint: disable=broad-exception-caught
            _log_error(
                "Unexpected error comparing '%s' and '%s': %s",
                session.first_url,
                session.second_url,
                err,
            )
            self._emit(
                session.stream,
                DiffRecord.failure(err, session.first_url, session.second_url),
            )
        finally:
            session.stream.close()
            _log_debug_diff(
                "Finished comparison of '%s' and '%s'",
                session.first_url,
                session.second_url,
            )

    def _classify(self, session: DiffSession):
        """
        Stat both locations and dispatch to the matching comparison.
        """
        stream = session.stream
        try:
            session.first_client, first = url_to_stat(session.first_url, self.config)
        except StordiffError as err:
            self._emit(stream, DiffRecord.failure(err, session.first_url))
            return
        try:
            session.second_client, second = url_to_stat(
                session.second_url, self.config
            )
        except StordiffError as err:
            self._emit(stream, DiffRecord.failure(err, session.second_url))
            return

        if first.is_regular:
            if second.is_dir:
                try:
                    target = url_join_path(
                        session.second_url, session.first_client.url.basename
                    )
                except StordiffError as err:
                    self._emit(stream, DiffRecord.failure(err, session.second_url))
                    return
                self._diff_objects(session.first_url, target, stream)
            elif not second.is_regular:
                self._emit(
                    stream,
                    DiffRecord.difference(
                        session.first_url, session.second_url, DiffType.TYPE
                    ),
                )
            else:
                self._diff_objects(session.first_url, session.second_url, stream)
        elif first.is_dir:
            if not second.is_dir:
                self._emit(
                    stream,
                    DiffRecord.difference(
                        session.first_url, session.second_url, DiffType.TYPE
                    ),
                )
            elif self.options.recursive:
                self._diff_recursive(session)
            else:
                self._diff_flat(session)
        else:
            # An OTHER entry (symlink, device...) never matches anything.
            self._emit(
                stream,
                DiffRecord.difference(
                    session.first_url, session.second_url, DiffType.TYPE
                ),
            )

    def _stat(self, url: str) -> EntryAttributes:
        return new_client(url, self.config).stat()

    def _diff_objects(self, first_url: str, second_url: str, stream: DiffStream):
        """
        Compare two single objects. Both are re-stat'd, and a failure on
        either side is reported independently of the other.
        """
        first = second = None
        failed = False
        try:
            first = self._stat(first_url)
        except StordiffError as err:
            failed = True
            self._emit(stream, DiffRecord.failure(err, first_url))
        try:
            second = self._stat(second_url)
        except StordiffError as err:
            failed = True
            self._emit(stream, DiffRecord.failure(err, second_url))
        if failed:
            return

        if parse_url(first_url) == parse_url(second_url):
            _log_debug_diff("Skipping comparison of '%s' with itself", first_url)
            return

        if not first.is_regular:
            self._emit(
                stream,
                DiffRecord.failure(
                    StordiffStateError(f"'{first_url}' is not a regular object"),
                    first_url,
                ),
            )
        elif not second.is_regular:
            self._emit(
                stream, DiffRecord.difference(first_url, second_url, DiffType.TYPE)
            )
        elif first.size != second.size:
            self._emit(
                stream, DiffRecord.difference(first_url, second_url, DiffType.SIZE)
            )

    def _diff_flat_entry(
        self,
        entry: EntryAttributes,
        first_dir: StorageURL,
        second_dir: StorageURL,
        stream: DiffStream,
    ):
        first_url = url_join_path(first_dir, entry.name)
        second_url = url_join_path(second_dir, entry.name)
        try:
            first = self._stat(first_url)
        except StordiffError as err:
            self._emit(stream, DiffRecord.failure(err, first_url))
            return
        try:
            second = self._stat(second_url)
        except StordiffNotFoundError:
            self._emit(
                stream,
                DiffRecord.difference(first_url, second_url, DiffType.ONLY_IN_FIRST),
            )
            return
        except StordiffError as err:
            self._emit(stream, DiffRecord.failure(err, second_url))
            return
        diff_type = compare_attributes(first, second)
        if diff_type is not None:
            self._emit(stream, DiffRecord.difference(first_url, second_url, diff_type))

    def _diff_flat(self, session: DiffSession):
        """
        Compare the immediate children of the first directory with the
        same-named entries in the second directory.
        """
        stream = session.stream
        first_dir = session.first_client.url.as_directory()
        second_dir = session.second_client.url.as_directory()
        entries = session.first_client.list(recursive=False)
        while not stream.cancelled:
            try:
                entry = next(entries, None)
            except StordiffError as err:
                self._emit(stream, DiffRecord.failure(err, session.first_url))
                return
            if entry is None:
                return
            try:
                self._diff_flat_entry(entry, first_dir, second_dir, stream)
            except StordiffError as err:
                self._emit(stream, DiffRecord.failure(err, session.first_url))

    def _build_index(
        self, client: StorageClient, url: str, stream: DiffStream
    ) -> PrefixIndex:
        """
        List ``client`` recursively into a new ``PrefixIndex``. A listing
        error is emitted as an error record and ends the listing: entries
        indexed before the error are kept.
        """
        index = PrefixIndex()
        entries = client.list(recursive=True)
        while not stream.cancelled:
            try:
                entry = next(entries, None)
            except StordiffError as err:
                _log_debug_diff("Listing '%s' failed: %s", url, err)
                self._emit(stream, DiffRecord.failure(err, url))
                break
            if entry is None:
                break
            index.insert(entry.name, entry)
        _log_debug_diff("Indexed %d entries from '%s'", len(index), url)
        return index

    def _diff_recursive(self, session: DiffSession):
        """
        Index both trees concurrently, then compare every entry of the first
        tree with the same key in the second.
        """
        stream = session.stream
        throbber = ProgressFactory.get_throbber(
            "Scanning",
            quiet=self.options.quiet,
            term_stream=self._term_stream,
            term_control=self._term_control,
        )
        with ThrobberTask(throbber) as task:
            with ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="stordiff-list"
            ) as executor:
                first_future = executor.submit(
                    self._build_index,
                    session.first_client,
                    session.first_url,
                    stream,
                )
                second_future = executor.submit(
                    self._build_index,
                    session.second_client,
                    session.second_url,
                    stream,
                )
                first_index = first_future.result()
                second_index = second_future.result()
            task.stop(f"{len(first_index)} and {len(second_index)} entries")

        first_base = session.first_client.url.as_directory()
        second_base = session.second_client.url.as_directory()
        first_prefix = first_base.dir_prefix()
        second_prefix = second_base.dir_prefix()

        def _urls(key):
            return (
                first_prefix + _key_to_path(key, first_base),
                second_prefix + _key_to_path(key, second_base),
            )

        for key, first in first_index.items():
            if stream.cancelled:
                return
            second = second_index.get(key)
            if second is None:
                diff_type = DiffType.ONLY_IN_FIRST
            else:
                diff_type = compare_attributes(first, second)
            if diff_type is not None:
                self._emit(stream, DiffRecord.difference(*_urls(key), diff_type))

        if not self.options.symmetric:
            return

        for key in second_index:
            if stream.cancelled:
                return
            if key not in first_index:
                self._emit(
                    stream, DiffRecord.difference(*_urls(key), DiffType.ONLY_IN_SECOND)
                )


__all__ = [
    "DiffSession",
    "Differ",
    "compare_attributes",
]
