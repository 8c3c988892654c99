import logging
import json
import datetime
import sys
import os

# Record attributes copied into the JSON line when a logger or handler sets them
CONTEXT_KEYS = ("session", "datalog")

class JSONFormatter(logging.Formatter):
    """
    Formatter to output logs in JSON Lines format.

    Besides the event and its payload, each line carries the logging session
    and, for records from a datalog, the CSV file they concern, so one JSONL
    file can be filtered per datalog.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "event": record.msg,  # the message is the event name, e.g. "CaptureFailed"
            "data": record.args if isinstance(record.args, dict) else {}
        }
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)

class SessionFilter(logging.Filter):
    """Stamps every record passing a handler with the session id."""
    def __init__(self, session):
        super().__init__()
        self.session = session

    def filter(self, record):
        record.session = self.session
        return True

class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that adds fixed context (e.g. the datalog path) to each record."""
    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

def setup_logging(session_id=None, log_file=None, verbose=False, log_dir="logs"):
    """
    Configures the root logger to write to a JSONL file and the console.

    Args:
        session_id (str): Optional ID to include in the filename (e.g. 'run_07').
                          If None, a timestamp is used. Either way it is written
                          into every JSON line as "session".
        log_file (str): Specific path to log file. If provided, overrides dynamic naming.
        verbose (bool): If True, enable DEBUG level and show logs on console.
        log_dir (str): Directory for dynamically named log files.

    Returns:
        str: The path of the JSONL log file.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    session = session_id or datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    if log_file is None:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"datalogger_{session}.jsonl")
    elif os.path.dirname(log_file):
        os.makedirs(os.path.dirname(log_file), exist_ok=True)

    session_filter = SessionFilter(session)

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(JSONFormatter())
    file_handler.setLevel(level)
    file_handler.addFilter(session_filter)
    root_logger.addHandler(file_handler)

    # Console shows WARNING and up unless verbose
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter('[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'))
    console_handler.setLevel(level if verbose else logging.WARNING)
    console_handler.addFilter(session_filter)
    root_logger.addHandler(console_handler)

    # matplotlib is chatty at DEBUG when the plotting tool runs verbose
    logging.getLogger("matplotlib").setLevel(logging.WARNING)

    logging.info("LoggingInitialized", {"log_file": log_file, "session": session})
    return log_file

def get_logger(name, **context):
    """
    Returns a logger for `name`.

    Keyword arguments become context on every record it emits, e.g.
    get_logger("Datalogger", datalog=path) tags each line with the CSV path.
    """
    logger = logging.getLogger(name)
    if context:
        return ContextAdapter(logger, context)
    return logger
