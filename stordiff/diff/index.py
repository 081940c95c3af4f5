# Copyright Red Hat
#
# stordiff/diff/index.py - Storage differ prefix index
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Path-keyed index of storage entries.
"""
from bisect import bisect_left
from typing import Dict, Iterator, List, Optional, Tuple

from ..client import EntryAttributes


class PrefixIndex:
    """
    A mapping from relative entry paths to ``EntryAttributes``.

    Membership and ``get()`` use exact key matching: a key that is merely a
    prefix of a stored key is not present. Prefix queries are provided by
    ``has_prefix()`` and ``iter_prefix()``.

    An index is populated by a single listing worker and is read-only once
    that worker has finished, so no locking is performed.
    """

    def __init__(self):
        self._entries: Dict[str, EntryAttributes] = {}
        self._sorted_keys: Optional[List[str]] = None

    def insert(self, key: str, attrs: EntryAttributes):
        """
        Insert or replace the entry for ``key``.

        :param key: The relative path of the entry.
        :type key: ``str``
        :param attrs: The entry's attributes.
        :type attrs: ``EntryAttributes``
        """
        if key not in self._entries:
            self._sorted_keys = None
        self._entries[key] = attrs

    def get(self, key: str) -> Optional[EntryAttributes]:
        """
        Return the attributes stored for exactly ``key``, or ``None``.
        """
        return self._entries.get(key)

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _keys(self) -> List[str]:
        if self._sorted_keys is None:
            self._sorted_keys = sorted(self._entries)
        return self._sorted_keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys())

    def items(self) -> Iterator[Tuple[str, EntryAttributes]]:
        """
        Generate ``(key, attributes)`` pairs in sorted key order.
        """
        for key in self._keys():
            yield key, self._entries[key]

    def iter_prefix(self, prefix: str) -> Iterator[str]:
        """
        Generate the stored keys beginning with ``prefix`` in sorted order.

        :param prefix: The key prefix to match.
        :type prefix: ``str``
        """
        keys = self._keys()
        pos = bisect_left(keys, prefix)
        while pos < len(keys) and keys[pos].startswith(prefix):
            yield keys[pos]
            pos += 1

    def has_prefix(self, prefix: str) -> bool:
        """
        Test whether any stored key begins with ``prefix``.

        :param prefix: The key prefix to match.
        :type prefix: ``str``
        :rtype: ``bool``
        """
        return next(self.iter_prefix(prefix), None) is not None


__all__ = ["PrefixIndex"]
