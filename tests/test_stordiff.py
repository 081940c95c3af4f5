# Copyright Red Hat
#
# tests/test_stordiff.py - Storage differ global definition tests
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import sys
import unittest
from io import StringIO
from unittest.mock import MagicMock, patch

log = logging.getLogger()

import stordiff
from stordiff.progress import NullThrobber


def _debug_record(subsystem=None):
    record = logging.LogRecord(
        "stordiff.diff", logging.DEBUG, __file__, 1, "message", None, None
    )
    if subsystem is not None:
        record.subsystem = subsystem
    return record


class StordiffTestsSimple(unittest.TestCase):
    """
    Test stordiff global definitions
    """

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        stordiff.set_debug_mask(0)

    def test_set_debug_mask(self):
        stordiff.set_debug_mask(stordiff.STORDIFF_DEBUG_ALL)
        self.assertEqual(stordiff.get_debug_mask(), stordiff.STORDIFF_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            stordiff.set_debug_mask(stordiff.STORDIFF_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            stordiff.set_debug_mask(-1)

    def test_SubsystemFilter(self):
        # Start with no subsystems enabled
        stordiff.set_debug_mask(0)
        sf = stordiff.SubsystemFilter("stordiff")
        self.assertEqual(sf.enabled_subsystems, set())
        # Enable a couple and ensure new filters initialise from cache
        stordiff.set_debug_mask(
            stordiff.STORDIFF_DEBUG_DIFF | stordiff.STORDIFF_DEBUG_CLIENT
        )
        sf2 = stordiff.SubsystemFilter("stordiff")
        self.assertIn(stordiff.STORDIFF_SUBSYSTEM_DIFF, sf2.enabled_subsystems)
        self.assertIn(stordiff.STORDIFF_SUBSYSTEM_CLIENT, sf2.enabled_subsystems)
        self.assertNotIn(stordiff.STORDIFF_SUBSYSTEM_CONFIG, sf2.enabled_subsystems)

    def test_SubsystemFilter_filter(self):
        sf = stordiff.SubsystemFilter("stordiff")
        sf.set_debug_subsystems([stordiff.STORDIFF_SUBSYSTEM_DIFF])
        self.assertTrue(sf.filter(_debug_record(stordiff.STORDIFF_SUBSYSTEM_DIFF)))
        self.assertFalse(sf.filter(_debug_record(stordiff.STORDIFF_SUBSYSTEM_CLIENT)))
        # Records without a subsystem always pass
        self.assertTrue(sf.filter(_debug_record()))
        info = _debug_record(stordiff.STORDIFF_SUBSYSTEM_CLIENT)
        info.levelno = logging.INFO
        self.assertTrue(sf.filter(info))

    def test_set_debug_mask_updates_handlers(self):
        stordiff_log = logging.getLogger("stordiff")
        handler = logging.StreamHandler(StringIO())
        sf = stordiff.SubsystemFilter("stordiff")
        handler.addFilter(sf)
        stordiff_log.addHandler(handler)
        try:
            stordiff.set_debug_mask(stordiff.STORDIFF_DEBUG_CONFIG)
            self.assertEqual(
                sf.enabled_subsystems, {stordiff.STORDIFF_SUBSYSTEM_CONFIG}
            )
        finally:
            stordiff_log.removeHandler(handler)

    def test_error_hierarchy(self):
        for exc in (
            stordiff.StordiffPathError,
            stordiff.StordiffNotFoundError,
            stordiff.StordiffPermissionError,
            stordiff.StordiffClientError,
            stordiff.StordiffStateError,
            stordiff.StordiffExistsError,
            stordiff.StordiffArgumentError,
            stordiff.StordiffConfigError,
        ):
            self.assertTrue(issubclass(exc, stordiff.StordiffError))
        # Not the builtin PermissionError
        self.assertFalse(issubclass(stordiff.StordiffPermissionError, OSError))

    def test_version(self):
        self.assertTrue(stordiff.__version__)


class ProgressAwareHandlerTests(unittest.TestCase):
    def test_register_unregister(self):
        throbber = NullThrobber("H", register=False)
        stordiff.register_progress(throbber)
        self.assertTrue(throbber.registered)
        stordiff.unregister_progress(throbber)
        self.assertFalse(throbber.registered)

    def test_notify_log_output(self):
        throbber = MagicMock()
        stordiff.register_progress(throbber)
        try:
            stordiff.notify_log_output(sys.stderr)
            throbber.reset_position.assert_called_once_with()
            # Output to other streams does not displace the throbber.
            stordiff.notify_log_output(StringIO())
            throbber.reset_position.assert_called_once_with()
        finally:
            stordiff.unregister_progress(throbber)

    def test_handler_emit_notifies(self):
        stream = StringIO()
        handler = stordiff.ProgressAwareHandler(stream=stream)
        handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
        with patch("stordiff._stordiff.notify_log_output") as notify:
            handler.emit(_debug_record())
        self.assertEqual(stream.getvalue(), "DEBUG - message\n")
        notify.assert_called_once_with(stream)

    def test_handler_resets_throbber(self):
        throbber = NullThrobber("H", register=False)
        throbber.first_update = False
        stordiff.register_progress(throbber)
        try:
            handler = stordiff.ProgressAwareHandler()
            self.assertIs(handler.stream, sys.stderr)
            with patch.object(handler, "stream", StringIO()) as stream:
                with patch("stordiff._stordiff.sys.stderr", stream):
                    handler.emit(_debug_record())
            self.assertTrue(throbber.first_update)
        finally:
            stordiff.unregister_progress(throbber)
