# Copyright Red Hat
#
# stordiff/progress.py - Storage differ terminal busy indicators
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Terminal control and busy indicators.

Listing a large bucket or directory tree can take a long time and the total
number of entries is not known in advance, so stordiff reports liveness with
a throbber rather than a progress bar. A ``ThrobberTask`` drives a throbber
from a background thread while the caller blocks on other work.
"""
from typing import Dict, Optional, TextIO
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
import threading
import curses
import sys
import os

from stordiff import register_progress, unregister_progress

#: Default frames-per-second for throbbers
DEFAULT_FPS = 10

#: Microseconds per second
_USECS_PER_SEC = 1000000

# Braille wave frames and their fallback for streams that cannot encode them.
_UNICODE_FRAMES = "⠁⠂⠄⡀⢀⠠⠐⠈"
_ASCII_FRAMES = r"-\|/"


class TermControl:
    """
    Control sequences and colours for one output stream.

    When the stream is a terminal the sequences are looked up with curses.
    Every attribute is the empty string if the capability is missing or the
    stream is not a terminal, so output built from them degrades to plain
    text:

        >>> tc = TermControl()
        >>> print(tc.RED + "only in first" + tc.NORMAL)
    """

    BOL: str = ""  #: Move to the beginning of the line
    UP: str = ""  #: Move up one line
    RIGHT: str = ""  #: Move right one column
    CLEAR_EOL: str = ""  #: Clear to the end of the line
    NORMAL: str = ""  #: Reset all attributes
    HIDE_CURSOR: str = ""  #: Make the cursor invisible
    SHOW_CURSOR: str = ""  #: Make the cursor visible

    RED: str = ""  #: Colour for entries only in the first location
    GREEN: str = ""  #: Colour for entries only in the second location
    YELLOW: str = ""  #: Colour for type mismatches
    MAGENTA: str = ""  #: Colour for size mismatches

    # Attribute name to terminfo capability name.
    _CAPABILITIES: Dict[str, str] = {
        "BOL": "cr",
        "UP": "cuu1",
        "RIGHT": "cuf1",
        "CLEAR_EOL": "el",
        "NORMAL": "sgr0",
        "HIDE_CURSOR": "civis",
        "SHOW_CURSOR": "cnorm",
    }

    # Attribute name to ANSI colour number.
    _COLORS: Dict[str, int] = {"RED": 1, "GREEN": 2, "YELLOW": 3, "MAGENTA": 5}

    def __init__(self, term_stream: Optional[TextIO] = None, color: str = "auto"):
        """
        Look up the terminal capabilities of ``term_stream``.

        :param term_stream: The output stream. Defaults to ``sys.stdout``.
        :type term_stream: ``Optional[TextIO]``
        :param color: "auto" to colour terminals only, "always" to colour any
                      stream, or "never".
        :type color: ``str``
        :raises ValueError: If ``color`` is not a known mode.
        """
        if color not in ("auto", "always", "never"):
            raise ValueError(f"Invalid color mode: {color}")

        self.term_stream = term_stream if term_stream is not None else sys.stdout

        isatty = getattr(self.term_stream, "isatty", None)
        if color != "always" and (isatty is None or not isatty()):
            return

        try:
            curses.setupterm()
        # curses.error cannot be named in an except clause on all builds.
        except BaseException as err:  # pylint: disable=broad-exception-caught
            if isinstance(err, (KeyboardInterrupt, SystemExit)):  # pragma: no cover
                raise
            if color == "always":
                self._force_ansi()
            return

        for attr, cap_name in self._CAPABILITIES.items():
            setattr(self, attr, self._tigetstr(cap_name))

        if color == "never":
            return

        set_foreground = self._tigetstr("setaf")
        if not set_foreground:
            return
        for attr, number in self._COLORS.items():
            seq = curses.tparm(set_foreground.encode("utf8"), number)
            setattr(self, attr, seq.decode("utf8") if seq else "")

    def _force_ansi(self):
        for attr, number in self._COLORS.items():
            setattr(self, attr, f"\033[0;3{number}m")
        self.NORMAL = "\033[0m"

    @staticmethod
    def _tigetstr(cap_name) -> str:
        # Strip terminfo padding delays of the form "$<2>".
        cap = curses.tigetstr(cap_name)
        cap = cap.decode("utf8") if cap else ""
        return cap.split("$", maxsplit=1)[0]


def _flush_with_broken_pipe_guard(stream: Optional[TextIO]) -> None:
    """
    Flush ``stream``, redirecting it to ``/dev/null`` and exiting if the
    reader has gone away.

    :param stream: The stream to flush.
    :type stream: TextIO
    """
    if stream is None or not hasattr(stream, "flush"):
        return
    try:
        stream.flush()
    except BrokenPipeError as err:
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            if hasattr(stream, "fileno"):
                os.dup2(devnull, stream.fileno())
        finally:
            os.close(devnull)
        raise SystemExit() from err


class ThrobberBase(ABC):
    """
    An abstract busy indicator for work of unknown length, such as a full
    recursive listing of a bucket.

    Drawing a frame, ending the run and ``reset_position()`` are serialised
    by a per-throbber lock, so a log record emitted from another thread
    never observes a half drawn frame.
    """

    def __init__(self, header: str, register: bool = True):
        """
        :param header: The text printed before the frames.
        :type header: ``str``
        :param register: Register for log output notifications.
        :type register: ``bool``
        """
        self.header = header
        self.frames = "."
        self.stream: Optional[TextIO] = None
        self.started = False
        self.first_update = True
        self.fps = DEFAULT_FPS
        self.register = register
        self.registered = False
        self._frame_index = 0
        self._interval = timedelta(microseconds=round(_USECS_PER_SEC / self.fps))
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def nr_frames(self) -> int:
        """
        The number of frames in one cycle of the animation.
        """
        return len(self.frames)

    def reset_position(self):
        """
        Note that other output has been written below the last frame.
        """
        with self._lock:
            self.first_update = True

    def _check_started(self, step: str):
        name = self.__class__.__name__
        if not self.started:
            raise ValueError(f"{name}.{step}() called before start()")
        if self._last is None:
            raise ValueError(
                f"{name}.{step}() invalid throbber state: "
                "started is set but no frame time is recorded"
            )

    def start(self):
        """
        Begin a throbber run and draw the first frame.
        """
        self.started = True
        self._last = datetime.now() - self._interval
        if self.register:
            register_progress(self)
        self._do_start()
        self.throb()

    def _do_start(self):
        print(f"{self.header}: ", end="", file=self.stream)

    def throb(self):
        """
        Draw the next frame if a frame interval has passed since the last.

        :raises ValueError: If called before ``start()``.
        """
        self._check_started("throb")
        with self._lock:
            now = datetime.now()
            if now - self._last < self._interval:
                return
            self._do_throb()
            _flush_with_broken_pipe_guard(self.stream)
            self._last = now
            self._frame_index = (self._frame_index + 1) % self.nr_frames
            self.first_update = False

    @abstractmethod
    def _do_throb(self):
        """
        Draw the frame at ``self._frame_index``.
        """

    def end(self, message: Optional[str] = None):
        """
        End the throbber run.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        :raises ValueError: If called before ``start()``.
        """
        self._check_started("end")
        with self._lock:
            self._do_end(message)
            _flush_with_broken_pipe_guard(self.stream)
            self.started = False
            self._last = None
        if self.registered:
            unregister_progress(self)

    def _do_end(self, message: Optional[str] = None):
        print(f"\n{message}" if message else "", file=self.stream)


class Throbber(ThrobberBase):
    """
    A single line throbber that redraws in place on capable terminals.
    """

    def __init__(
        self,
        header: str,
        register: bool = True,
        term_stream: Optional[TextIO] = None,
        tc: Optional[TermControl] = None,
    ):
        """
        :param header: The text printed before the frames.
        :type header: ``str``
        :param register: Register for log output notifications.
        :type register: ``bool``
        :param term_stream: The stream to draw on. Ignored if ``tc`` is set.
        :type term_stream: ``Optional[TextIO]``
        :param tc: Terminal control for the stream.
        :type tc: ``Optional[TermControl]``
        """
        super().__init__(header, register=register)
        self.term = tc if tc is not None else TermControl(term_stream=term_stream)
        self.stream = self.term.term_stream

        encoding = getattr(self.stream, "encoding", None)
        self.frames = _ASCII_FRAMES
        if encoding:
            try:
                _UNICODE_FRAMES.encode(encoding)
                self.frames = _UNICODE_FRAMES
            except (UnicodeEncodeError, LookupError):
                pass

    def _do_start(self):
        print(self.term.HIDE_CURSOR, end="", file=self.stream)

    def _do_throb(self):
        term = self.term
        # Overwrite the previous frame unless other output followed it.
        if not self.first_update:
            print(term.BOL + term.UP + term.CLEAR_EOL, end="", file=self.stream)
        frame = self.frames[self._frame_index]
        print(
            f"{self.header}: {term.GREEN}{frame}{term.NORMAL}",
            file=self.stream,
        )

    def _do_end(self, message: Optional[str] = None):
        term = self.term
        if not self.first_update:
            # Keep the header, clear the frame after it.
            right = (len(self.header) + 2) * term.RIGHT
            print(
                term.BOL + term.UP + right + term.CLEAR_EOL, end="", file=self.stream
            )
        print(term.SHOW_CURSOR, end="", file=self.stream)
        if message:
            print(message, file=self.stream)


class SimpleThrobber(ThrobberBase):
    """
    A throbber that appends one dot per frame, for streams that are not
    terminals.
    """

    def __init__(
        self, header: str, register: bool = True, term_stream: Optional[TextIO] = None
    ):
        super().__init__(header, register=register)
        self.stream = term_stream or sys.stdout

    def _do_throb(self):
        print(self.frames[self._frame_index], end="", file=self.stream)


class NullThrobber(ThrobberBase):
    """
    A throbber that produces no output.
    """

    def _do_start(self):
        pass

    def _do_throb(self):
        pass

    def _do_end(self, message: Optional[str] = None):
        pass


class ThrobberTask:
    """
    Drive a ``ThrobberBase`` from a background thread.

    The task calls ``throb()`` once per interval until ``stop()`` is called,
    so the work being waited on needs no knowledge of the indicator. Usable
    as a context manager:

        >>> with ThrobberTask(throbber):
        ...     wait_for_listings()
    """

    def __init__(self, throbber: ThrobberBase, interval: Optional[float] = None):
        """
        :param throbber: The throbber to drive.
        :type throbber: ``ThrobberBase``
        :param interval: Seconds between calls to ``throb()``. Defaults to one
                         frame at the throbber's frame rate.
        :type interval: ``Optional[float]``
        """
        self.throbber = throbber
        self.interval = interval if interval is not None else 1.0 / throbber.fps
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        """
        ``True`` if the background thread has been started and not stopped.
        """
        return self._thread is not None and not self._stop_event.is_set()

    def _run(self):
        while not self._stop_event.wait(self.interval):
            self.throbber.throb()

    def start(self):
        """
        Start the throbber and the background thread driving it.

        :raises ValueError: If the task has already been started.
        """
        if self._thread is not None:
            raise ValueError("ThrobberTask.start() called twice")
        self.throbber.start()
        self._thread = threading.Thread(
            target=self._run, name="stordiff-throbber", daemon=True
        )
        self._thread.start()

    def stop(self, message: Optional[str] = None):
        """
        Stop the background thread, then end the throbber. Does nothing if
        the task is not running.

        :param message: An optional completion message for the throbber.
        :type message: ``Optional[str]``
        """
        if not self.running:
            return
        self._stop_event.set()
        # No throb() can follow end() once the thread has exited.
        self._thread.join()
        self.throbber.end(message)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop("Quit!" if exc_type is not None else None)
        return False


class ProgressFactory:
    """
    A factory for constructing busy indicators.
    """

    @staticmethod
    def get_throbber(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        term_control: Optional[TermControl] = None,
        register: bool = True,
    ) -> ThrobberBase:
        """
        Return a ``NullThrobber`` if ``quiet`` is set, a ``SimpleThrobber``
        if the stream is not a terminal, and a ``Throbber`` otherwise.

        :param header: The throbber header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: The output stream. Defaults to ``sys.stdout``.
        :type term_stream: ``Optional[TextIO]``
        :param term_control: Terminal control to draw with. Its
                             ``term_stream`` overrides ``term_stream``.
        :type term_control: ``Optional[TermControl]``
        :param register: Register the throbber for log output notifications.
        :type register: ``bool``
        :rtype: ``ThrobberBase``
        """
        if term_control is not None:
            term_stream = term_control.term_stream
        term_stream = term_stream or sys.stdout

        if quiet:
            return NullThrobber(header, register=register)
        isatty = getattr(term_stream, "isatty", None)
        if isatty is None or not isatty():
            return SimpleThrobber(header, register=register, term_stream=term_stream)
        return Throbber(
            header,
            register=register,
            term_stream=term_stream,
            tc=term_control,
        )


__all__ = [
    "DEFAULT_FPS",
    "NullThrobber",
    "ProgressFactory",
    "SimpleThrobber",
    "TermControl",
    "ThrobberBase",
    "ThrobberTask",
    "Throbber",
]
