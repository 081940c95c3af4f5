# Copyright Red Hat
#
# stordiff/diff/__init__.py - Storage differ diff engine
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage comparison engine.
"""
from .difftypes import DiffType
from .stream import DEFAULT_STREAM_SIZE, DiffStream
from .options import DiffOptions
from .record import DiffRecord
from .index import PrefixIndex
from .differ import DiffSession, Differ, compare_attributes

__all__ = [
    "DEFAULT_STREAM_SIZE",
    "DiffOptions",
    "DiffRecord",
    "DiffSession",
    "DiffStream",
    "DiffType",
    "Differ",
    "PrefixIndex",
    "compare_attributes",
]
