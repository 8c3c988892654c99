# Backing file helpers shared by the typed and sequential datalogs
import os
import re

from .errors import IOFailure

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._ -]")


def sanitize_filename(name):
    """
    Turn a caller supplied datalog name into a bare "<name>.csv" file name.

    Directory components are dropped and unsafe characters become '_'.
    """
    base = os.path.basename(str(name).replace("\\", "/"))
    if base.lower().endswith(".csv"):
        base = base[:-4]
    base = _UNSAFE_CHARS.sub("_", base).strip()
    if base in ("", ".", ".."):
        raise ValueError(f"Invalid datalog name: {name!r}")
    return base + ".csv"


def log_path(name, log_dir):
    return os.path.join(log_dir, sanitize_filename(name))


def open_log_file(name, log_dir):
    """Create the log directory if needed and open a fresh datalog for writing."""
    path = log_path(name, log_dir)
    try:
        os.makedirs(log_dir, exist_ok=True)
        # newline="" keeps the line terminator a bare "\n" on every platform
        f = open(path, "w", encoding="utf-8", newline="")
    except OSError as e:
        raise IOFailure(f"Cannot open datalog {path}: {e}", path=path) from e
    return path, f


def write_line(f, line, path):
    """Write one terminated line and flush it to the OS."""
    try:
        f.write(line + "\n")
        f.flush()
    except (OSError, ValueError) as e:
        # ValueError is what a closed file object raises
        raise IOFailure(f"Cannot write to datalog {path}: {e}", path=path) from e
