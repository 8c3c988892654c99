import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import (
    DEFAULT_LOG_DIR,
    DEFAULT_TIMESTAMP_LABEL,
    DEFAULT_TIMESTAMP_PRECISION,
    Settings,
)
from ..logger import get_logger
from .clock import Clock, ElapsedClock
from .errors import IOFailure
from .fields import Field
from .storage import open_log_file, write_line

DELTA_LABEL = "d ms"
DELIMITER = ","


class AutoTimestamp(Enum):
    NONE = "none"
    DECIMAL_SECONDS = "decimal_seconds"


@dataclass(frozen=True)
class DatalogConfig:
    """
    Everything needed to open a datalog. Nothing here touches the disk.

    Frozen: the header is written from it once, and every row after that
    must keep the same layout.
    """
    filename: str
    fields: Sequence[Field] = field(default_factory=tuple)
    auto_timestamp: AutoTimestamp = AutoTimestamp.NONE
    timestamp_label: str = DEFAULT_TIMESTAMP_LABEL
    timestamp_precision: int = DEFAULT_TIMESTAMP_PRECISION
    log_dir: str = DEFAULT_LOG_DIR
    delta_column: bool = False

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def timestamped(self) -> bool:
        return self.auto_timestamp is not AutoTimestamp.NONE

    def columns(self) -> List[str]:
        names = []
        if self.timestamped:
            names.append(self.timestamp_label)
            if self.delta_column:
                names.append(DELTA_LABEL)
        names.extend(f.name for f in self.fields)
        return names

    def validate(self):
        if not isinstance(self.auto_timestamp, AutoTimestamp):
            raise ValueError(f"Unknown auto timestamp mode: {self.auto_timestamp!r}")
        if self.delta_column and not self.timestamped:
            raise ValueError("The delta column requires an auto timestamp")
        if self.timestamp_precision < 0:
            raise ValueError("timestamp_precision must not be negative")
        for f in self.fields:
            if not isinstance(f, Field):
                raise TypeError(f"Datalog columns must be Field objects, got {f!r}")
            if f._bound:
                raise ValueError(f"Field {f.name!r} already belongs to another datalog")
        if len({id(f) for f in self.fields}) != len(self.fields):
            raise ValueError("The same Field was listed twice")

        columns = self.columns()
        if not columns:
            raise ValueError("A datalog needs at least one column")
        seen = set()
        for name in columns:
            if not name or DELIMITER in name or "\n" in name or "\r" in name:
                raise ValueError(f"Invalid column name: {name!r}")
            if name in seen:
                raise ValueError(f"Duplicate column name: {name!r}")
            seen.add(name)


class Builder:
    """
    Fluent front end for DatalogConfig.

        datalog = (Builder()
                   .set_filename("datalog_01")
                   .set_auto_timestamp(AutoTimestamp.DECIMAL_SECONDS)
                   .set_fields(status, loop_counter, yaw)
                   .build())

    The order given to set_fields() is the column order of the file.
    """
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self._filename = None
        self._fields: Tuple[Field, ...] = ()
        self._auto_timestamp = AutoTimestamp.NONE
        self._timestamp_label = settings.timestamp_label
        self._timestamp_precision = settings.timestamp_precision
        self._log_dir = settings.log_dir
        self._delta_column = False

    def set_filename(self, filename):
        self._filename = filename
        return self

    def set_fields(self, *fields):
        self._fields = tuple(fields)
        return self

    def set_auto_timestamp(self, mode=AutoTimestamp.DECIMAL_SECONDS):
        self._auto_timestamp = mode
        return self

    def set_timestamp_label(self, label):
        self._timestamp_label = label
        return self

    def set_timestamp_precision(self, digits):
        self._timestamp_precision = digits
        return self

    def set_log_dir(self, log_dir):
        self._log_dir = log_dir
        return self

    def set_delta_column(self, enabled=True):
        self._delta_column = enabled
        return self

    def config(self) -> DatalogConfig:
        if self._filename is None:
            raise ValueError("A datalog filename is required")
        return DatalogConfig(
            filename=self._filename,
            fields=self._fields,
            auto_timestamp=self._auto_timestamp,
            timestamp_label=self._timestamp_label,
            timestamp_precision=self._timestamp_precision,
            log_dir=self._log_dir,
            delta_column=self._delta_column,
        )

    def build(self, clock: Clock = time.monotonic) -> "Datalogger":
        return Datalogger.open(self.config(), clock=clock)


class Datalogger:
    """
    Writes one CSV row per capture() from a fixed, ordered set of Fields.

    Fields can be updated in any order and at any rate between captures;
    a field that was not updated repeats its last value in the next row.
    The header and every row are derived from the same field tuple, so
    their column counts always agree.

    Use Datalogger.open() or Builder.build(); both raise IOFailure if the
    file cannot be created, instead of handing back a logger that drops rows.
    """
    def __init__(self, config: DatalogConfig, path, file, clock: ElapsedClock):
        self.logger = get_logger(self.__class__.__name__, datalog=path)
        self._config = config
        self._fields: Tuple[Field, ...] = tuple(config.fields)
        self._index: Dict[str, int] = {f.name: i for i, f in enumerate(self._fields)}
        self._columns = tuple(config.columns())
        self._path = path
        self._file = file
        self._clock = clock
        self._lock = threading.Lock()
        self._rows_written = 0
        self.last_error: Optional[IOFailure] = None

    @classmethod
    def open(cls, config: DatalogConfig, clock: Clock = time.monotonic) -> "Datalogger":
        config.validate()
        path, f = open_log_file(config.filename, config.log_dir)
        header = DELIMITER.join(config.columns())
        try:
            write_line(f, header, path)
        except IOFailure:
            f.close()
            raise

        # The elapsed time base is taken once the header is on disk
        datalog = cls(config, path, f, ElapsedClock(clock))
        for fld in datalog._fields:
            fld._bound = True
        datalog.logger.info("DatalogOpened", {"path": path, "columns": list(datalog._columns)})
        return datalog

    @property
    def config(self) -> DatalogConfig:
        return self._config

    @property
    def path(self):
        return self._path

    @property
    def fields(self) -> Tuple[Field, ...]:
        return self._fields

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @property
    def header(self) -> str:
        return DELIMITER.join(self._columns)

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def closed(self) -> bool:
        return self._file is None

    def __getitem__(self, name) -> Field:
        return self._fields[self._index[name]]

    def set(self, name, value):
        self[name].set_value(value)

    def update(self, values=None, **kwargs):
        """Set several fields by column name. Column names with spaces go in `values`."""
        for name, value in dict(values or {}, **kwargs).items():
            self.set(name, value)

    def _format_row(self, now: Optional[float] = None) -> str:
        """Render the current field values as one row."""
        cells = []
        if self._config.timestamped:
            if now is None:
                now = self._clock.now()
            elapsed = self._clock.elapsed(now)
            cells.append(f"{elapsed:.{self._config.timestamp_precision}f}")
            if self._config.delta_column:
                cells.append(str(int(round(self._clock.lap_ms(now)))))
        cells.extend(f.format() for f in self._fields)
        return DELIMITER.join(cells)

    def capture(self, raise_errors=False) -> bool:
        """
        Snapshot every field into one row and write it.

        Returns True when the row reached the file. On failure the error is
        logged, kept in `last_error` and False is returned, so a lost row
        never takes the control loop down. Pass raise_errors=True to get the
        IOFailure raised instead.
        """
        with self._lock:
            now = self._clock.now()
            if self._file is None:
                error = IOFailure(f"Datalog {self._path} is closed", path=self._path)
                return self._report("CaptureAfterClose", error, raise_errors)

            row = self._format_row(now)
            try:
                write_line(self._file, row, self._path)
            except IOFailure as e:
                return self._report("CaptureFailed", e, raise_errors)
            self._rows_written += 1
            return True

    slurp = capture

    def close(self) -> bool:
        """Flush and release the file. Calling it again does nothing."""
        with self._lock:
            if self._file is None:
                return True
            f, self._file = self._file, None
            try:
                f.close()
            except OSError as e:
                error = IOFailure(f"Cannot close datalog {self._path}: {e}", path=self._path)
                error.__cause__ = e
                return self._report("CloseFailed", error, False)
            self.logger.info("DatalogClosed", {"path": self._path, "rows": self._rows_written})
            return True

    def _report(self, event, error, raise_errors):
        self.last_error = error
        self.logger.warning(event, {"path": self._path, "error": str(error)})
        if raise_errors:
            raise error
        return False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<Datalogger {self._path} {state} rows={self._rows_written}>"
