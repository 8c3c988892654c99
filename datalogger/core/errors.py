# Error kinds raised or reported by the datalog writers


class DataloggerError(Exception):
    """Base class for all datalogger errors."""


class IOFailure(DataloggerError):
    """The backing file could not be opened, written or closed."""
    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class TypeMismatch(DataloggerError, TypeError):
    """A value does not match the kind of the field it was assigned to."""
    def __init__(self, message, field_name=None, value=None):
        super().__init__(message)
        self.field_name = field_name
        self.value = value


class SchemaMismatch(DataloggerError, ValueError):
    """
    A sequential datalog line has a different number of cells than its header.
    Only raised when debug checks are enabled.
    """
    def __init__(self, expected, actual, line_number):
        super().__init__(
            f"line {line_number} has {actual} cells, header declares {expected}"
        )
        self.expected = expected
        self.actual = actual
        self.line_number = line_number
