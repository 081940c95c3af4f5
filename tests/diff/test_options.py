# Copyright Red Hat
#
# tests/diff/test_options.py - DiffOptions tests.
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from argparse import Namespace

from stordiff.diff import DEFAULT_STREAM_SIZE, DiffOptions


class TestDiffOptions(unittest.TestCase):
    def test_DiffOptions__str__(self):
        opts = DiffOptions(recursive=True)
        s = str(opts)
        self.assertIn("recursive=True", s)
        self.assertIn("symmetric=False", s)

    def test_defaults(self):
        opts = DiffOptions()
        self.assertFalse(opts.recursive)
        self.assertFalse(opts.symmetric)
        self.assertFalse(opts.quiet)
        self.assertEqual(opts.stream_size, DEFAULT_STREAM_SIZE)

    def test_from_cmd_args(self):
        """Test initialization from argparse Namespace."""
        args = Namespace(recursive=True, quiet=True, unknown_arg="ignored")
        opts = DiffOptions.from_cmd_args(args)

        self.assertTrue(opts.recursive)
        self.assertTrue(opts.quiet)
        # Should use defaults for missing args
        self.assertFalse(opts.symmetric)

    def test_from_cmd_args_none_uses_default(self):
        args = Namespace(recursive=None, stream_size=None)
        opts = DiffOptions.from_cmd_args(args)
        self.assertFalse(opts.recursive)
        self.assertEqual(opts.stream_size, DEFAULT_STREAM_SIZE)

    def test_frozen(self):
        opts = DiffOptions()
        with self.assertRaises(AttributeError):
            opts.recursive = True

    def test_bad_stream_size(self):
        with self.assertRaises(ValueError):
            DiffOptions(stream_size=0)
