#!/usr/bin/env python3
# Records joint telemetry published over ZMQ into a datalog CSV
import argparse
import struct
import sys
import threading
import time

import zmq

from ..config import load_settings
from ..core.datalog import AutoTimestamp, Builder
from ..core.errors import IOFailure
from ..core.fields import Field
from ..logger import get_logger, setup_logging

JOINT_FORMAT = "dff"  # timestamp (double), yaw (float), pitch (float)
JOINT_SIZE = struct.calcsize(JOINT_FORMAT)


def build_joint_datalog(name, settings=None):
    """Typed datalog with one column per value carried by a joints message."""
    builder = (Builder(settings)
               .set_filename(name)
               .set_auto_timestamp(AutoTimestamp.DECIMAL_SECONDS)
               .set_fields(
                   Field.integer("Samples"),
                   Field.double("Source Time", "0.000"),
                   Field.double("Yaw", "0.0000"),
                   Field.double("Pitch", "0.0000"),
               ))
    return builder.build()


class ZmqRecorder(threading.Thread):
    """Subscribes to a joints topic and captures one datalog row per message."""
    def __init__(self, datalog, zmq_addr="tcp://localhost:5560", topic="joints"):
        super().__init__(daemon=True)
        self.logger = get_logger(self.__class__.__name__)
        self.datalog = datalog
        self.zmq_addr = zmq_addr
        self.topic = topic
        self.running = False
        self.samples = 0
        self.malformed = 0
        self.lock = threading.Lock()

    def stop(self):
        self.running = False
        if self.is_alive():
            self.join()
        self.datalog.close()

    def handle_message(self, data):
        """Unpack one joints payload into the datalog. Returns True if a row was written."""
        if len(data) != JOINT_SIZE:
            with self.lock:
                self.malformed += 1
            self.logger.warning("MalformedPayload", {"size": len(data), "expected": JOINT_SIZE})
            return False

        ts, yaw, pitch = struct.unpack(JOINT_FORMAT, data)
        with self.lock:
            self.samples += 1
            self.datalog.update({
                "Samples": self.samples,
                "Source Time": ts,
                "Yaw": yaw,
                "Pitch": pitch,
            })
        return self.datalog.capture()

    def run(self):
        self.running = True
        context = zmq.Context()
        socket = context.socket(zmq.SUB)
        socket.connect(self.zmq_addr)
        socket.setsockopt_string(zmq.SUBSCRIBE, self.topic)
        self.logger.info("RecorderSubscribed", {"addr": self.zmq_addr, "topic": self.topic})

        try:
            while self.running:
                try:
                    if socket.poll(100):
                        _topic, data = socket.recv_multipart()
                        self.handle_message(data)
                except zmq.ZMQError as e:
                    self.logger.error("ZMQError", {"error": str(e)})
                    time.sleep(0.1)
                except ValueError as e:
                    # recv_multipart returned more or fewer than two frames
                    with self.lock:
                        self.malformed += 1
                    self.logger.warning("MalformedMessage", {"error": str(e)})
        finally:
            socket.close()
            context.term()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Record ZMQ joint telemetry into a datalog CSV.")
    parser.add_argument("--addr", default="tcp://localhost:5560", help="ZMQ publisher address")
    parser.add_argument("--topic", default="joints", help="Topic to subscribe to")
    parser.add_argument("--name", default="joints", help="Datalog file name (without .csv)")
    parser.add_argument("--log-dir", default=None, help="Override the datalog directory")
    parser.add_argument("--config", default="datalogger.json", help="Settings JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose debug output.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(session_id="recorder", verbose=args.verbose)
    logger = get_logger("ZmqRecorder")

    settings = load_settings(args.config)
    if args.log_dir:
        settings.log_dir = args.log_dir

    try:
        datalog = build_joint_datalog(args.name, settings)
    except IOFailure as e:
        logger.error("DatalogOpenFailed", {"error": str(e)})
        return 1

    print(f"Recording {args.addr} [{args.topic}] -> {datalog.path} (Ctrl+C to stop)")
    recorder = ZmqRecorder(datalog, zmq_addr=args.addr, topic=args.topic)
    recorder.start()
    try:
        while recorder.is_alive():
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopping recorder...")
    finally:
        recorder.stop()

    print(f"Recorded {recorder.samples} samples ({recorder.malformed} malformed)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
