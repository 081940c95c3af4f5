# Copyright Red Hat
#
# tests/diff/__init__.py - Storage differ diff tests
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
