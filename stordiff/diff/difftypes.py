# Copyright Red Hat
#
# stordiff/diff/difftypes.py - Storage differ diff types
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Storage diff types
"""
from enum import Enum


class DiffType(Enum):
    """
    Enum for different difference types.
    """

    ONLY_IN_FIRST = "only-in-first"
    TYPE = "type-mismatch"
    SIZE = "size-mismatch"
    ONLY_IN_SECOND = "only-in-second"
