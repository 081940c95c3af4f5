# Copyright Red Hat
#
# stordiff/diff/options.py - Storage differ diff options
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage diff options.
"""
from dataclasses import dataclass, fields
from argparse import Namespace
import logging

from .stream import DEFAULT_STREAM_SIZE

_log = logging.getLogger(__name__)

_log_debug = _log.debug


@dataclass(frozen=True)
class DiffOptions:
    """
    Storage comparison options.
    """

    #: Compare all descendants rather than only immediate children
    recursive: bool = False
    #: Also report entries present only in the second location
    symmetric: bool = False
    #: Do not output progress or status updates
    quiet: bool = False
    #: Maximum number of undelivered records held by the result stream
    stream_size: int = DEFAULT_STREAM_SIZE

    def __post_init__(self):
        if self.stream_size <= 0:
            raise ValueError(f"Invalid stream size: {self.stream_size}")

    def __str__(self):
        """
        Return a human readable string representation of this
        ``DiffOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        return "\n".join(f"{key}={val}" for key, val in self.__dict__.items())

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "DiffOptions":
        """
        Initialise DiffOptions from command line arguments.

        Construct a new ``DiffOptions`` object from the command line
        arguments in ``cmd_args``. Arguments that are absent or ``None``
        take the default value.

        :param cmd_args: The command line selection arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``DiffOptions`` instance
        :rtype: ``DiffOptions``
        """
        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: getattr(cmd_args, name)
            for name in field_names
            if getattr(cmd_args, name, None) is not None
        }
        options = cls(**kwargs)
        _log_debug("Initialised DiffOptions from arguments: %s", repr(options))
        return options
