# Copyright Red Hat
#
# tests/client/__init__.py - Storage differ client tests
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
