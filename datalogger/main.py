# Demo sampling driver: logs a simulated IMU and battery to a datalog CSV
import argparse
import sys
import time

import numpy as np

from .config import load_settings
from .core.clock import IntervalTimer
from .core.datalog import AutoTimestamp, Builder
from .core.errors import IOFailure
from .core.fields import Field
from .core.sequential import SequentialDatalogger
from .logger import get_logger, setup_logging

logger = get_logger("Main")


class SimulatedImu:
    """Slowly drifting orientation with sensor noise, in degrees."""
    def __init__(self, seed=None, clock=time.monotonic):
        self.rng = np.random.default_rng(seed)
        self.clock = clock
        self.start = clock()

    def orientation(self):
        t = self.clock() - self.start
        noise = self.rng.normal(0.0, 0.2, size=3)
        yaw = 90.0 * np.sin(0.25 * t) + noise[0]
        pitch = 5.0 * np.sin(1.3 * t) + noise[1]
        roll = 3.0 * np.cos(0.9 * t) + noise[2]
        return yaw, pitch, roll


class SimulatedBattery:
    def __init__(self, seed=None, clock=time.monotonic, start_voltage=13.4):
        self.rng = np.random.default_rng(seed)
        self.clock = clock
        self.start = clock()
        self.start_voltage = start_voltage

    def voltage(self):
        t = self.clock() - self.start
        return self.start_voltage - 0.002 * t + self.rng.normal(0.0, 0.01)


class RobotDatalog:
    """
    All the fields that go into the robot datalog.

    The attribute order here does not matter; the order passed to
    set_fields() is the column order in the file.
    """
    def __init__(self, name, settings=None, timestamp=True, clock=time.monotonic):
        self.op_mode_status = Field.string("OpModeStatus")
        self.loop_counter = Field.integer("Loop Counter")
        self.yaw = Field.double("Yaw", "0.00")
        self.pitch = Field.double("Pitch", "0.00")
        self.roll = Field.double("Roll", "0.00")
        self.battery = Field.double("Battery", "0.00")

        builder = (Builder(settings)
                   .set_filename(name)
                   .set_fields(
                       self.op_mode_status,
                       self.loop_counter,
                       self.yaw,
                       self.pitch,
                       self.roll,
                       self.battery,
                   ))
        if timestamp:
            builder.set_auto_timestamp(AutoTimestamp.DECIMAL_SECONDS)
        self.datalogger = builder.build(clock=clock)

    @property
    def path(self):
        return self.datalogger.path

    def slurp(self):
        return self.datalogger.slurp()

    def close(self):
        return self.datalogger.close()


def run_typed(args, settings):
    imu = SimulatedImu(seed=args.seed)
    battery = SimulatedBattery(seed=args.seed)
    datalog = RobotDatalog(args.name, settings, timestamp=not args.no_timestamp)
    print(f"Logging to {datalog.path}")

    failed = 0
    try:
        # Fields not set before a slurp simply repeat their last value
        datalog.op_mode_status.value = "INIT"
        datalog.battery.value = battery.voltage()
        datalog.slurp()

        datalog.op_mode_status.value = "RUNNING"
        timer = IntervalTimer(args.interval_ms)
        deadline = time.monotonic() + args.duration
        i = 0
        while time.monotonic() < deadline:
            if timer.ready():
                yaw, pitch, roll = imu.orientation()
                datalog.loop_counter.value = i
                datalog.battery.value = battery.voltage()
                datalog.yaw.value = yaw
                datalog.pitch.value = pitch
                datalog.roll.value = roll
                if not datalog.slurp():
                    failed += 1
                i += 1
            time.sleep(0.002)

        datalog.op_mode_status.value = "STOPPED"
        datalog.slurp()
    finally:
        datalog.close()

    logger.info("RunFinished", {"rows": datalog.datalogger.rows_written, "failed": failed})
    print(f"Wrote {datalog.datalogger.rows_written} rows ({failed} failed)")


def run_sequential(args, settings):
    imu = SimulatedImu(seed=args.seed)
    datalog = SequentialDatalogger.from_settings(
        args.name, settings, debug=args.debug_checks or settings.debug_checks
    )
    print(f"Logging to {datalog.path}")

    with datalog:
        # Header cells; every data line must add the same cells in the same order
        datalog.add_field("Count")
        datalog.add_field("IMU Heading Angle")
        datalog.new_line()

        timer = IntervalTimer(args.interval_ms)
        deadline = time.monotonic() + args.duration
        count = 0
        while time.monotonic() < deadline:
            if timer.ready():
                heading, _, _ = imu.orientation()
                count += 1
                datalog.add_field(count)
                datalog.add_field(heading)
                datalog.new_line()
            time.sleep(0.002)

    print(f"Wrote {datalog.lines_written} lines")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Log a simulated robot sampling loop to CSV.")
    parser.add_argument("--name", type=str, default="datalog_01",
                        help="Datalog file name, without the .csv extension.")
    parser.add_argument("--duration", type=float, default=10.0,
                        help="How long to sample, in seconds.")
    parser.add_argument("--interval-ms", type=float, default=50.0,
                        help="Target logging interval in milliseconds.")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="Override the datalog directory from the settings file.")
    parser.add_argument("--config", type=str, default="datalogger.json",
                        help="Settings JSON file.")
    parser.add_argument("--sequential", action="store_true",
                        help="Use the positional add_field/new_line datalogger.")
    parser.add_argument("--no-timestamp", action="store_true",
                        help="Leave out the automatic Time column (typed logger only).")
    parser.add_argument("--debug-checks", action="store_true",
                        help="Check cell counts per line (sequential logger only).")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the simulated sensors.")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable verbose debug output.")
    return parser.parse_args(argv)


def main(argv=None):
    """Main function to run the demo sampling driver."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    settings = load_settings(args.config)
    if args.log_dir:
        settings.log_dir = args.log_dir

    try:
        if args.sequential:
            run_sequential(args, settings)
        else:
            run_typed(args, settings)
    except IOFailure as e:
        logger.error("DatalogOpenFailed", {"error": str(e), "path": e.path})
        return 1
    except KeyboardInterrupt:
        print("\nCaught KeyboardInterrupt. Datalog closed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
