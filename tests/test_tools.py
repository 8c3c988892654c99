import sys
import os
import struct
import tempfile
import unittest
from unittest.mock import patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from datalogger import main as demo
from datalogger.config import Settings
from datalogger.core.clock import ElapsedClock, IntervalTimer
from datalogger.core.datalog import Builder
from datalogger.core.fields import Field
from datalogger.tools.plot_datalog import load_datalog, plot_datalog
from datalogger.tools.zmq_recorder import ZmqRecorder, build_joint_datalog

class FakeClock:
    def __init__(self, start=0.0):
        self.t = start

    def __call__(self):
        return self.t

def read_lines(path):
    with open(path, newline="") as f:
        return f.read().split("\n")

class TempDirTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.log_dir = self._tmp.name
        self.addCleanup(self._tmp.cleanup)

class TestClocks(unittest.TestCase):
    def test_elapsed_and_laps(self):
        clock = FakeClock(10.0)
        elapsed = ElapsedClock(clock)
        clock.t = 10.5
        self.assertAlmostEqual(elapsed.elapsed(), 0.5)
        self.assertAlmostEqual(elapsed.lap_ms(), 500.0)
        clock.t = 10.6
        self.assertAlmostEqual(elapsed.lap_ms(), 100.0)
        self.assertAlmostEqual(elapsed.elapsed(at=12.0), 2.0)

    def test_interval_timer(self):
        clock = FakeClock()
        timer = IntervalTimer(50, clock=clock)
        self.assertFalse(timer.ready())
        clock.t = 0.049
        self.assertFalse(timer.ready())
        clock.t = 0.051
        self.assertTrue(timer.ready())
        # ready() restarts the interval
        self.assertFalse(timer.ready())
        clock.t = 0.102
        self.assertTrue(timer.ready())
        self.assertAlmostEqual(timer.elapsed_ms(), 0.0)

    def test_negative_interval(self):
        with self.assertRaises(ValueError):
            IntervalTimer(-1)

class TestZmqRecorder(TempDirTestCase):
    def test_messages_become_rows(self):
        datalog = build_joint_datalog("joints", Settings(log_dir=self.log_dir))
        recorder = ZmqRecorder(datalog)

        self.assertTrue(recorder.handle_message(struct.pack("dff", 12.5, 0.25, -0.5)))
        self.assertTrue(recorder.handle_message(struct.pack("dff", 12.52, 0.5, -0.25)))
        with self.assertLogs("ZmqRecorder", level="WARNING"):
            self.assertFalse(recorder.handle_message(b"short"))

        # Never started, so stop() only closes the datalog
        recorder.stop()
        self.assertTrue(datalog.closed)
        self.assertEqual(recorder.samples, 2)
        self.assertEqual(recorder.malformed, 1)

        lines = read_lines(datalog.path)
        self.assertEqual(lines[0], "Time,Samples,Source Time,Yaw,Pitch")
        self.assertEqual(lines[1].split(",")[1:], ["1", "12.500", "0.2500", "-0.5000"])
        self.assertEqual(lines[2].split(",")[1:], ["2", "12.520", "0.5000", "-0.2500"])
        self.assertEqual(lines[3:], [""])

class TestPlotDatalog(TempDirTestCase):
    def make_datalog(self):
        status = Field.string("Status")
        yaw = Field.double("Yaw", "0.00")
        clock = FakeClock()
        datalog = (Builder()
                   .set_filename("plot")
                   .set_log_dir(self.log_dir)
                   .set_auto_timestamp()
                   .set_fields(status, yaw)
                   .build(clock=clock))
        with datalog:
            status.value = "INIT"
            for i in range(5):
                clock.t = i * 0.1
                yaw.value = i * 1.5
                datalog.capture()
        return datalog.path

    def test_load_keeps_numeric_columns(self):
        path = self.make_datalog()
        header, columns = load_datalog(path)
        self.assertEqual(header, ["Time", "Status", "Yaw"])
        self.assertEqual(sorted(columns), ["Time", "Yaw"])
        self.assertEqual(columns["Yaw"], [0.0, 1.5, 3.0, 4.5, 6.0])
        self.assertEqual(len(columns["Time"]), 5)

    def test_load_skips_ragged_rows(self):
        path = os.path.join(self.log_dir, "ragged.csv")
        with open(path, "w") as f:
            f.write("Time,A\n0.0,1\n0.1\n0.2,3\n")
        _, columns = load_datalog(path)
        self.assertEqual(columns["A"], [1.0, 3.0])

    def test_plot_writes_png(self):
        path = self.make_datalog()
        out = os.path.join(self.log_dir, "plot.png")
        self.assertEqual(plot_datalog(path, out), out)
        self.assertTrue(os.path.getsize(out) > 0)

    def test_plot_missing_file(self):
        self.assertIsNone(plot_datalog(os.path.join(self.log_dir, "missing.csv")))

class TestDemoDriver(TempDirTestCase):
    def run_demo(self, *extra):
        argv = ["--name", "demo", "--duration", "0.15", "--interval-ms", "20",
                "--log-dir", self.log_dir, "--config", os.path.join(self.log_dir, "none.json"),
                "--seed", "3", *extra]
        with patch.object(demo, "setup_logging"):
            return demo.main(argv)

    def test_typed_run(self):
        self.assertEqual(self.run_demo(), 0)
        lines = read_lines(os.path.join(self.log_dir, "demo.csv"))
        self.assertEqual(lines[0], "Time,OpModeStatus,Loop Counter,Yaw,Pitch,Roll,Battery")
        self.assertEqual(lines[1].split(",")[1:6], ["INIT", "0", "0.00", "0.00", "0.00"])
        self.assertEqual(lines[-2].split(",")[1], "STOPPED")
        self.assertEqual(lines[-1], "")
        for row in lines[1:-1]:
            self.assertEqual(len(row.split(",")), 7)

    def test_typed_run_without_timestamp(self):
        self.assertEqual(self.run_demo("--no-timestamp"), 0)
        lines = read_lines(os.path.join(self.log_dir, "demo.csv"))
        self.assertEqual(lines[0], "OpModeStatus,Loop Counter,Yaw,Pitch,Roll,Battery")

    def test_sequential_run(self):
        self.assertEqual(self.run_demo("--sequential", "--debug-checks"), 0)
        lines = read_lines(os.path.join(self.log_dir, "demo.csv"))
        self.assertEqual(lines[0], "Time,Count,IMU Heading Angle")
        self.assertGreater(len(lines), 2)
        for row in lines[1:-1]:
            self.assertEqual(len(row.split(",")), 3)

    def test_unwritable_log_dir_exits_non_zero(self):
        blocker = os.path.join(self.log_dir, "file")
        with open(blocker, "w") as f:
            f.write("x")
        with patch.object(demo, "setup_logging"):
            code = demo.main(["--duration", "0", "--log-dir", blocker,
                              "--config", os.path.join(self.log_dir, "none.json")])
        self.assertEqual(code, 1)

if __name__ == "__main__":
    unittest.main()
