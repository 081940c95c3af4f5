# Copyright Red Hat
#
# stordiff/__init__.py - Storage differ package initialisation
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Stordiff top-level package.
"""
from ._stordiff import *  # noqa: F401, F403
from ._stordiff import __all__  # noqa: F401

__version__ = "0.1.0"
