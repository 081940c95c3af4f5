# Copyright Red Hat
#
# stordiff/diff/record.py - Storage differ diff records
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Diff records: the unit of output of a storage comparison.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import json

from ..progress import TermControl
from .difftypes import DiffType

#: Human readable suffix for each difference type
_DIFF_MESSAGES = {
    DiffType.ONLY_IN_FIRST: "only in first.",
    DiffType.TYPE: "differ in type.",
    DiffType.SIZE: "differ in size.",
    DiffType.ONLY_IN_SECOND: "only in second.",
}

#: ``TermControl`` colour attribute for each difference type
_DIFF_COLORS = {
    DiffType.ONLY_IN_FIRST: "RED",
    DiffType.TYPE: "YELLOW",
    DiffType.SIZE: "MAGENTA",
    DiffType.ONLY_IN_SECOND: "GREEN",
}


@dataclass(frozen=True)
class DiffRecord:
    """
    A single difference, or a single error, found by a storage comparison.

    A record is either a classification record (``diff_type`` set and
    ``error`` is ``None``) or an error record (``error`` set and
    ``diff_type`` is ``None``). Error records carry the URL(s) that produced
    the error in ``error_urls``.
    """

    #: URL of the entry in the first location
    first_url: str = ""
    #: URL of the entry in the second location
    second_url: str = ""
    #: The kind of difference
    diff_type: Optional[DiffType] = None
    #: The error for an error record
    error: Optional[BaseException] = None
    #: URL(s) that produced ``error``
    error_urls: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if (self.diff_type is None) == (self.error is None):
            raise ValueError(
                "DiffRecord requires exactly one of diff_type or error "
                f"(diff_type={self.diff_type}, error={self.error!r})"
            )
        if self.error is None and self.error_urls:
            raise ValueError("error_urls is only valid for error records")

    @classmethod
    def difference(
        cls, first_url: str, second_url: str, diff_type: DiffType
    ) -> "DiffRecord":
        """
        Return a new classification record.

        :param first_url: The URL in the first location.
        :type first_url: ``str``
        :param second_url: The URL in the second location.
        :type second_url: ``str``
        :param diff_type: The kind of difference.
        :type diff_type: ``DiffType``
        :rtype: ``DiffRecord``
        """
        return cls(
            first_url=str(first_url), second_url=str(second_url), diff_type=diff_type
        )

    @classmethod
    def failure(cls, error: BaseException, *urls) -> "DiffRecord":
        """
        Return a new error record for ``error`` raised while accessing
        ``urls``.

        :param error: The exception to report.
        :type error: ``BaseException``
        :param urls: The URL or URLs that produced ``error``.
        :rtype: ``DiffRecord``
        """
        urls = tuple(str(url) for url in urls)
        return cls(
            first_url=urls[0] if urls else "",
            second_url=urls[1] if len(urls) > 1 else "",
            error=error,
            error_urls=urls,
        )

    @property
    def is_error(self) -> bool:
        """
        ``True`` if this is an error record.
        """
        return self.error is not None

    def __str__(self) -> str:
        if self.is_error:
            return self.fatal_message()
        return (
            f"‘{self.first_url}’ and ‘{self.second_url}’ - "
            f"{_DIFF_MESSAGES[self.diff_type]}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffRecord`` object into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        out: Dict[str, Any] = {
            "first": self.first_url,
            "second": self.second_url,
            "diff": self.diff_type.value if self.diff_type else "",
            "error": None,
        }
        if self.error is not None:
            out["error"] = {
                "message": str(self.error),
                "type": self.error.__class__.__name__,
                "urls": list(self.error_urls),
            }
        return out

    def json(self, pretty=False) -> str:
        """
        Return a string representation of this ``DiffRecord`` in JSON
        notation.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: A JSON representation of this instance.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)

    def render(self, term_control: Optional[TermControl] = None) -> str:
        """
        Render this record as a human readable line, coloured according to
        its difference type when ``term_control`` supports colour.

        :param term_control: An optional ``TermControl`` instance to use for
                             rendering color output.
        :type term_control: ``Optional[TermControl]``
        :returns: The rendered line.
        :rtype: ``str``
        """
        if self.is_error:
            return self.fatal_message()
        tc = term_control
        color = getattr(tc, _DIFF_COLORS[self.diff_type], "") if tc else ""
        normal = tc.NORMAL if tc and color else ""
        return (
            f"‘{self.first_url}’ and ‘{self.second_url}’"
            f"{color} - {_DIFF_MESSAGES[self.diff_type]}{normal}"
        )

    def fatal_message(self) -> str:
        """
        Format an error record as a fatal message naming the URL(s) that
        produced the error.

        :returns: The formatted message.
        :rtype: ``str``
        :raises ValueError: If this is not an error record.
        """
        if not self.is_error:
            raise ValueError("fatal_message() requires an error record")
        urls = " and ".join(f"‘{url}’" for url in self.error_urls)
        where = f" {urls}" if urls else ""
        return f"Failed to diff{where}: {self.error}"


__all__ = ["DiffRecord"]
