import threading
import time
from typing import List, Optional

import numpy as np

from ..config import DEFAULT_LOG_DIR, DEFAULT_TIMESTAMP_LABEL, DEFAULT_TIMESTAMP_PRECISION
from ..logger import get_logger
from .clock import Clock, ElapsedClock
from .datalog import DELIMITER, DELTA_LABEL
from .errors import IOFailure, SchemaMismatch, TypeMismatch
from .fields import format_double
from .storage import open_log_file, write_line


def to_cell(value) -> str:
    """Render one add_field() argument as CSV cell text."""
    if isinstance(value, (bool, np.bool_)):
        return "1" if value else "0"
    if isinstance(value, str):
        return str(value)
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        return format_double(value)
    raise TypeMismatch(f"Cannot log a {type(value).__name__} as a datalog cell", value=value)


class SequentialDatalogger:
    """
    Positional CSV datalog: cells are appended with add_field() and a row is
    ended with new_line().

    The first line is the header. Every row starts with the elapsed time
    (plus the "d ms" delta when enabled), then whatever was added, in call
    order. Nothing ties a cell to its column name: the caller must add the
    same number of cells, in the same order, on every line. With debug=True
    each finished line is counted against the header and a mismatch raises
    SchemaMismatch (the line is still written).

        dl = SequentialDatalogger("imu_001")
        dl.add_field("Count")
        dl.add_field("Heading")
        dl.new_line()
        ...
        dl.add_field(count)
        dl.add_field(heading)
        dl.new_line()
    """
    def __init__(self, filename, log_dir=DEFAULT_LOG_DIR, debug=False, delta_column=False,
                 clock: Clock = time.monotonic, timestamp_label=DEFAULT_TIMESTAMP_LABEL,
                 timestamp_precision=DEFAULT_TIMESTAMP_PRECISION):
        # Header cells are rendered first so a bad label fails before a file is created
        header = [to_cell(timestamp_label)]
        if delta_column:
            header.append(DELTA_LABEL)
        self.path, self._file = open_log_file(filename, log_dir)
        self.logger = get_logger(self.__class__.__name__, datalog=self.path)
        self.debug = debug
        self.delta_column = delta_column
        self.timestamp_precision = timestamp_precision
        self.header_cells: Optional[int] = None
        self.mismatches: List[SchemaMismatch] = []
        self.last_error: Optional[IOFailure] = None
        self.lines_written = 0
        self._clock = ElapsedClock(clock)
        self._lock = threading.Lock()
        self._cells: List[str] = header
        self.logger.info("DatalogOpened", {"path": self.path, "debug": debug})

    @classmethod
    def from_settings(cls, filename, settings, **kwargs):
        kwargs.setdefault("debug", settings.debug_checks)
        return cls(filename, log_dir=settings.log_dir, timestamp_label=settings.timestamp_label,
                   timestamp_precision=settings.timestamp_precision, **kwargs)

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def auto_cells(self) -> int:
        return 2 if self.delta_column else 1

    def add_field(self, value):
        """Append one cell to the line being built."""
        self._cells.append(to_cell(value))

    def new_line(self) -> bool:
        """
        Write the buffered line and start the next one with the elapsed time.

        Returns False if the line could not be written; the error is kept in
        `last_error`. Raises SchemaMismatch in debug mode when the line's cell
        count differs from the header's.
        """
        with self._lock:
            if self._file is None:
                error = IOFailure(f"Datalog {self.path} is closed", path=self.path)
                return self._report("NewLineAfterClose", error)

            count = len(self._cells)
            line = DELIMITER.join(self._cells)
            ok = True
            try:
                write_line(self._file, line, self.path)
                self.lines_written += 1
            except IOFailure as e:
                ok = self._report("NewLineFailed", e)

            line_number = self.lines_written if ok else self.lines_written + 1
            self._start_line()
            mismatch = self._check_cell_count(count, line_number)

        if mismatch is not None:
            raise mismatch
        return ok

    def _start_line(self):
        now = self._clock.now()
        self._cells = [f"{self._clock.elapsed(now):.{self.timestamp_precision}f}"]
        if self.delta_column:
            self._cells.append(str(int(round(self._clock.lap_ms(now)))))

    def _check_cell_count(self, count, line_number):
        if self.header_cells is None:
            self.header_cells = count
            return None
        if count == self.header_cells or not self.debug:
            return None
        mismatch = SchemaMismatch(self.header_cells, count, line_number)
        self.mismatches.append(mismatch)
        self.logger.error("CellCountMismatch", {
            "path": self.path, "line": line_number,
            "expected": self.header_cells, "actual": count,
        })
        return mismatch

    def close(self) -> bool:
        """
        Flush and close the file. The unfinished line after the last
        new_line() is dropped. Safe to call more than once.
        """
        with self._lock:
            if self._file is None:
                return True
            dropped = len(self._cells) - self.auto_cells
            if dropped > 0:
                self.logger.debug("PartialLineDropped", {"path": self.path, "cells": dropped})
            self._cells = []
            f, self._file = self._file, None
            try:
                f.close()
            except OSError as e:
                error = IOFailure(f"Cannot close datalog {self.path}: {e}", path=self.path)
                error.__cause__ = e
                return self._report("CloseFailed", error)
            self.logger.info("DatalogClosed", {"path": self.path, "lines": self.lines_written})
            return True

    def _report(self, event, error):
        self.last_error = error
        self.logger.warning(event, {"path": self.path, "error": str(error)})
        return False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
