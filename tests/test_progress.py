# Copyright Red Hat
#
# tests/test_progress.py - TermControl and throbber tests
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta
from io import StringIO
import threading
import curses
import time

from stordiff.progress import (
    DEFAULT_FPS,
    NullThrobber,
    ProgressFactory,
    SimpleThrobber,
    TermControl,
    ThrobberBase,
    ThrobberTask,
    Throbber,
)


def _mock_term_control(stream=None):
    mock_tc = MagicMock(spec=TermControl)
    mock_tc.HIDE_CURSOR = "<HIDE>"
    mock_tc.SHOW_CURSOR = "<SHOW>"
    mock_tc.RIGHT = "<RIGHT>"
    mock_tc.BOL = "<BOL>"
    mock_tc.UP = "<UP>"
    mock_tc.CLEAR_EOL = "<CE>"
    mock_tc.GREEN = "<G>"
    mock_tc.NORMAL = "<N>"
    mock_tc.term_stream = stream if stream is not None else StringIO()
    return mock_tc


class TestTermControl(unittest.TestCase):
    def test_term_control_default_stdout(self):
        """Test TermControl when stream is None"""
        tc = TermControl()
        self.assertIsNotNone(tc)

    def test_term_control_invalid_color(self):
        with self.assertRaises(ValueError):
            TermControl(color="sometimes")

    def test_term_control_no_tty(self):
        """Test TermControl when stream is not a TTY."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        tc = TermControl(term_stream=mock_stream)

        # attributes should be empty strings
        self.assertEqual(tc.BOL, "")
        self.assertEqual(tc.RED, "")

    def test_term_control_curses_error(self):
        """Test TermControl handles curses setup errors gracefully."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("stordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = curses.error("Curses error")

            tc = TermControl(term_stream=mock_stream)
            self.assertEqual(tc.BOL, "")
            self.assertEqual(tc.RED, "")

    def test_term_control_curses_error_color_always(self):
        """Test ANSI colours are forced when setup fails with color=always."""
        with patch("stordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = curses.error("Curses error")

            tc = TermControl(term_stream=StringIO(), color="always")
            self.assertEqual(tc.RED, "\033[0;31m")
            self.assertEqual(tc.NORMAL, "\033[0m")

    def test_term_control_init_success(self):
        """Test successful TermControl initialization with mocked curses."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("stordiff.progress.curses") as mock_curses:
            mock_curses.tigetstr.side_effect = lambda x: (
                b"seq$<2>" if x in ["cr", "setaf"] else None
            )
            mock_curses.tparm.return_value = b"\x1b[30m"

            tc = TermControl(term_stream=mock_stream)

            # Padding delay is stripped
            self.assertEqual(tc.BOL, "seq")
            self.assertEqual(tc.UP, "")
            self.assertEqual(tc.RED, "\x1b[30m")
            self.assertEqual(tc.MAGENTA, "\x1b[30m")

    def test_term_control_color_never_tty(self):
        """Test that color=never keeps capabilities but drops colours."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("stordiff.progress.curses") as mock_curses:
            mock_curses.tigetstr.return_value = b"seq"
            mock_curses.tparm.return_value = b"\x1b[31m"

            tc = TermControl(term_stream=mock_stream, color="never")
            self.assertEqual(tc.BOL, "seq")
            self.assertEqual(tc.RED, "")
            mock_curses.tparm.assert_not_called()

    def test_term_control_init_keyboard_interrupt(self):
        """Test that KeyboardInterrupt in setupterm is re-raised."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("stordiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = KeyboardInterrupt()
            with self.assertRaises(KeyboardInterrupt):
                TermControl(term_stream=mock_stream)


class TestFlushGuard(unittest.TestCase):
    def test_flush_guard_broken_pipe(self):
        """Test BrokenPipeError handling in flush guard."""
        from stordiff.progress import _flush_with_broken_pipe_guard

        mock_stream = MagicMock()
        mock_stream.flush.side_effect = BrokenPipeError()
        mock_stream.fileno.return_value = 10

        with patch("stordiff.progress.os") as mock_os:
            mock_os.open.return_value = 999
            mock_os.devnull = "/dev/null"
            mock_os.O_WRONLY = 1

            with self.assertRaises(SystemExit):
                _flush_with_broken_pipe_guard(mock_stream)

            mock_os.open.assert_called_with("/dev/null", 1)
            mock_os.dup2.assert_called_with(999, 10)
            mock_os.close.assert_called_with(999)

    def test_flush_guard_no_flush_attr(self):
        """Test flush guard with stream lacking flush method."""
        from stordiff.progress import _flush_with_broken_pipe_guard

        mock_stream = MagicMock()
        del mock_stream.flush
        _flush_with_broken_pipe_guard(mock_stream)

    def test_flush_guard_none(self):
        from stordiff.progress import _flush_with_broken_pipe_guard

        _flush_with_broken_pipe_guard(None)


class TestThrobber(unittest.TestCase):
    def setUp(self):
        self.mock_tc = _mock_term_control(stream=MagicMock())
        self.mock_tc.term_stream.encoding = "ascii"

    def test_init_defaults(self):
        """Test Throbber initialization and default frame selection."""
        self.mock_tc.term_stream.encoding = "utf-8"
        t = Throbber("H", tc=self.mock_tc)
        self.assertIn("⠁", t.frames)
        self.assertEqual(t.fps, DEFAULT_FPS)

        # Test ASCII fallback
        self.mock_tc.term_stream.encoding = "ascii"
        t_ascii = Throbber("H", tc=self.mock_tc)
        self.assertIn("-", t_ascii.frames)
        self.assertNotIn("⠁", t_ascii.frames)

    def test_init_no_encoding(self):
        self.mock_tc.term_stream.encoding = None
        t = Throbber("H", tc=self.mock_tc)
        self.assertEqual(t.frames, r"-\|/")
        self.assertEqual(t.nr_frames, 4)

    @patch("stordiff.progress.datetime")
    def test_lifecycle_flow(self, mock_dt):
        """Test the start -> throb -> end lifecycle with output verification."""
        mock_tc = _mock_term_control()

        t = Throbber("Scanning", tc=mock_tc)

        start_time = datetime(2024, 1, 1, 12, 0, 0)
        # start() sets _last, start() throbs, explicit throb()
        mock_dt.now.side_effect = [
            start_time,
            start_time + timedelta(microseconds=100001),
            start_time + timedelta(microseconds=200001),
        ]

        t.start()
        output = mock_tc.term_stream.getvalue()
        self.assertIn("<HIDE>Scanning:", output)
        self.assertIn(t.frames[0], output)
        self.assertTrue(t.started)
        self.assertTrue(t.registered)

        mock_tc.term_stream.truncate(0)
        mock_tc.term_stream.seek(0)
        t.throb()
        output = mock_tc.term_stream.getvalue()
        self.assertIn("<BOL><UP><CE>", output)
        self.assertIn("<G>", output)
        self.assertIn(t.frames[1], output)

        mock_tc.term_stream.truncate(0)
        mock_tc.term_stream.seek(0)
        t.end("Done!")
        output = mock_tc.term_stream.getvalue()
        self.assertIn("<UP>" + (len(t.header) + 2) * "<RIGHT>" + "<CE>", output)
        self.assertIn("<SHOW>", output)
        self.assertIn("Done!", output)
        self.assertFalse(t.started)
        self.assertFalse(t.registered)

    @patch("stordiff.progress.datetime")
    def test_throb_rate_limited(self, mock_dt):
        mock_tc = _mock_term_control()
        t = Throbber("Scanning", tc=mock_tc)

        start_time = datetime(2024, 1, 1, 12, 0, 0)
        mock_dt.now.side_effect = [
            start_time,
            start_time + timedelta(microseconds=100001),
            start_time + timedelta(microseconds=100002),
        ]
        t.start()
        mock_tc.term_stream.truncate(0)
        mock_tc.term_stream.seek(0)
        t.throb()
        self.assertEqual(mock_tc.term_stream.getvalue(), "")

    def test_reset_position(self):
        t = Throbber("H", tc=self.mock_tc)
        t.first_update = False
        t.reset_position()
        self.assertTrue(t.first_update)

    def test_reset_position_waits_for_frame(self):
        """Test reset_position() blocks while a frame is being drawn."""
        t = Throbber("H", tc=self.mock_tc)
        t.first_update = False
        t._lock.acquire()
        try:
            resetter = threading.Thread(target=t.reset_position)
            resetter.start()
            resetter.join(0.1)
            self.assertTrue(resetter.is_alive())
            self.assertFalse(t.first_update)
        finally:
            t._lock.release()
        resetter.join(5.0)
        self.assertFalse(resetter.is_alive())
        self.assertTrue(t.first_update)

    def test_throb_after_reset_draws_below(self):
        """Test the frame after a reset does not overwrite other output."""
        mock_tc = _mock_term_control()
        t = Throbber("H", tc=mock_tc)
        t.start()
        self.assertFalse(t.first_update)
        t.reset_position()
        t._last = datetime.now() - timedelta(seconds=1)
        mock_tc.term_stream.truncate(0)
        mock_tc.term_stream.seek(0)
        t.throb()
        # Other output followed the last frame: draw below it.
        self.assertNotIn("<UP>", mock_tc.term_stream.getvalue())
        t.end()

    def test_validation(self):
        """Test state validation (throb before start)."""
        t = Throbber("H", tc=self.mock_tc)
        with self.assertRaisesRegex(ValueError, "called before start"):
            t.throb()

    def test_throbber_end_no_message(self):
        mock_tc = _mock_term_control()
        mock_tc.RIGHT = "<R>"

        t = Throbber("H", tc=mock_tc)
        t.start()
        t.first_update = False

        mock_tc.term_stream.truncate(0)
        mock_tc.term_stream.seek(0)

        t.end(None)

        output = mock_tc.term_stream.getvalue()
        self.assertIn("<BOL><UP>" + (len(t.header) + 2) * "<R>" + "<CE>", output)
        self.assertIn("<SHOW>", output)
        self.assertNotIn("None", output)

    def test_end_before_start_raises(self):
        t = Throbber("H", tc=self.mock_tc)

        with self.assertRaisesRegex(
            ValueError, r"Throbber.end\(\) called before start\(\)"
        ):
            t.end("BadQuit!")

    def test_throbber_invalid_state(self):
        """Test throb() raises if started=True but _last is None."""
        t = Throbber("H", tc=self.mock_tc)
        t.started = True
        t._last = None

        with self.assertRaisesRegex(ValueError, "invalid throbber state"):
            t.throb()


class TestSimpleThrobber(unittest.TestCase):
    @patch("stordiff.progress.datetime")
    def test_simple_flow(self, mock_dt):
        stream = StringIO()
        st = SimpleThrobber("Scanning", term_stream=stream)

        start_time = datetime(2024, 1, 1, 12, 0, 0)
        mock_dt.now.side_effect = [
            start_time,
            start_time + timedelta(microseconds=100001),
            start_time + timedelta(microseconds=200001),
        ]

        st.start()
        self.assertIn("Scanning: ", stream.getvalue())

        st.throb()
        self.assertTrue(stream.getvalue().endswith(".."))

        st.end("Done")
        self.assertIn("Done\n", stream.getvalue())


class TestNullThrobber(unittest.TestCase):
    def test_silent_operation(self):
        nt = NullThrobber("H")
        nt.start()
        self.assertTrue(nt.registered)
        nt.throb()
        nt.end("Msg")
        self.assertFalse(nt.started)
        self.assertFalse(nt.registered)

    def test_unregistered(self):
        nt = NullThrobber("H", register=False)
        nt.start()
        self.assertFalse(nt.registered)
        nt.end()

    def test_throb_before_start(self):
        with self.assertRaises(ValueError):
            NullThrobber("H").throb()

    def test_is_throbber(self):
        self.assertIsInstance(NullThrobber("H"), ThrobberBase)


class TestThrobberTask(unittest.TestCase):
    def _mock_throbber(self):
        throbber = MagicMock(spec=ThrobberBase)
        throbber.fps = DEFAULT_FPS
        return throbber

    def _wait_for_throb(self, throbber, timeout=5.0):
        deadline = time.monotonic() + timeout
        while not throbber.throb.called and time.monotonic() < deadline:
            time.sleep(0.01)

    def test_default_interval(self):
        task = ThrobberTask(self._mock_throbber())
        self.assertAlmostEqual(task.interval, 1.0 / DEFAULT_FPS)
        self.assertFalse(task.running)

    def test_start_stop(self):
        throbber = self._mock_throbber()
        task = ThrobberTask(throbber, interval=0.01)
        task.start()
        self.assertTrue(task.running)
        throbber.start.assert_called_once_with()

        self._wait_for_throb(throbber)
        task.stop("3 and 4 entries")
        self.assertFalse(task.running)
        self.assertTrue(throbber.throb.called)
        throbber.end.assert_called_once_with("3 and 4 entries")

        names = [t.name for t in threading.enumerate()]
        self.assertNotIn("stordiff-throbber", names)

    def test_start_twice_raises(self):
        task = ThrobberTask(self._mock_throbber(), interval=0.01)
        task.start()
        try:
            with self.assertRaises(ValueError):
                task.start()
        finally:
            task.stop()

    def test_stop_not_running(self):
        throbber = self._mock_throbber()
        task = ThrobberTask(throbber)
        task.stop("Done")
        throbber.end.assert_not_called()

    def test_stop_twice(self):
        throbber = self._mock_throbber()
        task = ThrobberTask(throbber, interval=0.01)
        task.start()
        task.stop()
        task.stop()
        throbber.end.assert_called_once_with(None)

    def test_context_manager(self):
        throbber = self._mock_throbber()
        with ThrobberTask(throbber, interval=0.01) as task:
            self.assertTrue(task.running)
        self.assertFalse(task.running)
        throbber.end.assert_called_once_with(None)

    def test_context_manager_exception(self):
        throbber = self._mock_throbber()
        with self.assertRaises(RuntimeError):
            with ThrobberTask(throbber, interval=0.01):
                raise RuntimeError("listing failed")
        throbber.end.assert_called_once_with("Quit!")

    def test_null_throbber(self):
        nt = NullThrobber("Scanning", register=False)
        with ThrobberTask(nt, interval=0.01) as task:
            self.assertTrue(nt.started)
            task.stop("done")
        self.assertFalse(nt.started)


class TestThrobberFactory(unittest.TestCase):
    def setUp(self):
        self.mock_tc = _mock_term_control(stream=MagicMock())
        self.mock_tc.term_stream.isatty.return_value = True
        self.mock_tc.term_stream.encoding = "utf8"

    def test_get_throbber_quiet(self):
        t = ProgressFactory.get_throbber("H", quiet=True)
        self.assertIsInstance(t, NullThrobber)

    def test_get_throbber_simple(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        t = ProgressFactory.get_throbber("H", term_stream=mock_stream)
        self.assertIsInstance(t, SimpleThrobber)
        self.assertIs(t.stream, mock_stream)

    def test_get_throbber_fancy(self):
        t = ProgressFactory.get_throbber("H", term_control=self.mock_tc)
        self.assertIsInstance(t, Throbber)
        self.assertIs(t.stream, self.mock_tc.term_stream)
        self.assertIs(t.term, self.mock_tc)

    def test_throbber_factory_missing_isatty_attr(self):
        """Test factory with a stream missing the isatty attribute."""

        class DumbStream:
            pass

        t = ProgressFactory.get_throbber("H", term_stream=DumbStream())
        self.assertIsInstance(t, SimpleThrobber)
