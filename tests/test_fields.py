import sys
import os
import unittest

import numpy as np

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from datalogger.core.errors import TypeMismatch
from datalogger.core.fields import Field, FieldKind, format_double, parse_format_spec

class TestFieldDefaults(unittest.TestCase):
    def test_every_kind_starts_with_a_value(self):
        self.assertEqual(Field.string("s").format(), "")
        self.assertEqual(Field.integer("i").format(), "0")
        self.assertEqual(Field.double("d").format(), "0.0")
        self.assertEqual(Field.double("d2", "0.00").format(), "0.00")
        self.assertEqual(Field.boolean("b").format(), "0")

    def test_kind_and_name_are_read_only(self):
        f = Field.integer("Count")
        with self.assertRaises(AttributeError):
            f.kind = FieldKind.DOUBLE
        with self.assertRaises(AttributeError):
            f.name = "Other"

class TestFieldAssignment(unittest.TestCase):
    def test_string_passes_through_verbatim(self):
        f = Field.string("Status")
        f.value = "RUNNING fast"
        self.assertEqual(f.format(), "RUNNING fast")

    def test_bool_renders_as_flag(self):
        f = Field.boolean("Touched")
        f.value = True
        self.assertEqual(f.format(), "1")
        f.set_value(np.bool_(False))
        self.assertEqual(f.format(), "0")
        self.assertIs(f.value, False)

    def test_int_renders_without_grouping(self):
        f = Field.integer("Encoder")
        f.value = -1234567
        self.assertEqual(f.format(), "-1234567")

    def test_numpy_scalars_are_normalised(self):
        i = Field.integer("i")
        i.value = np.int32(7)
        self.assertIs(type(i.value), int)

        d = Field.double("d", "0.00")
        d.value = np.float32(1.5)
        self.assertIs(type(d.value), float)
        self.assertEqual(d.format(), "1.50")

    def test_int_widens_into_double(self):
        f = Field.double("Temp", "0.0")
        f.value = 21
        self.assertEqual(f.format(), "21.0")

    def test_wrong_types_are_rejected(self):
        cases = [
            (Field.string("s"), 5),
            (Field.integer("i"), 2.5),
            (Field.integer("i"), True),
            (Field.integer("i"), "3"),
            (Field.double("d"), "1.0"),
            (Field.double("d"), False),
            (Field.boolean("b"), 1),
            (Field.boolean("b"), None),
        ]
        for field, bad in cases:
            with self.subTest(kind=field.kind, value=bad):
                with self.assertRaises(TypeMismatch) as ctx:
                    field.value = bad
                self.assertEqual(ctx.exception.field_name, field.name)
                # TypeMismatch is also a TypeError
                self.assertIsInstance(ctx.exception, TypeError)

    def test_failed_assignment_keeps_previous_value(self):
        f = Field.integer("Count")
        f.value = 5
        with self.assertRaises(TypeMismatch):
            f.value = "six"
        self.assertEqual(f.value, 5)

class TestDoubleFormatting(unittest.TestCase):
    def test_two_decimals_always(self):
        f = Field.double("Yaw", "0.00")
        for value, expected in [(-3.0, "-3.00"), (3, "3.00"), (0.1, "0.10"),
                                (123.456, "123.46"), (-0.004, "-0.00"), (1e6, "1000000.00")]:
            with self.subTest(value=value):
                f.value = value
                self.assertEqual(f.format(), expected)

    def test_one_decimal_rounds(self):
        f = Field.double("Temp", "0.0")
        f.value = 21.37
        self.assertEqual(f.format(), "21.4")

    def test_integer_pattern(self):
        f = Field.double("Temp", "0")
        f.value = 21.7
        self.assertEqual(f.format(), "22")

    def test_optional_digits_are_trimmed(self):
        f = Field.double("Pos", "0.0##")
        f.value = 1.5
        self.assertEqual(f.format(), "1.5")
        f.value = 1.23456
        self.assertEqual(f.format(), "1.235")
        f.value = 2.0
        self.assertEqual(f.format(), "2.0")

    def test_default_is_shortest_round_trip(self):
        f = Field.double("Raw")
        f.value = 0.1
        self.assertEqual(f.format(), "0.1")
        f.value = 1 / 3
        self.assertEqual(float(f.format()), 1 / 3)

    def test_narrow_floats_render_at_their_own_precision(self):
        from datalogger.core.sequential import to_cell

        f = Field.double("Heading")
        f.value = np.float32(0.1)
        self.assertEqual(f.format(), "0.1")
        self.assertEqual(f.format(), to_cell(np.float32(0.1)))
        f.value = np.float16(2.5)
        self.assertEqual(f.format(), "2.5")

        # A later float64 assignment goes back to float64 text
        f.value = np.float64(0.1)
        self.assertEqual(f.format(), "0.1")
        f.value = 1 / 3
        self.assertEqual(float(f.format()), 1 / 3)

    def test_non_finite_values(self):
        self.assertEqual(format_double(float("nan"), (2, 2)), "NaN")
        self.assertEqual(format_double(float("inf")), "Infinity")
        self.assertEqual(format_double(float("-inf"), (1, 1)), "-Infinity")

class TestFormatSpecParsing(unittest.TestCase):
    def test_valid_specs(self):
        self.assertIsNone(parse_format_spec(None))
        self.assertEqual(parse_format_spec("0.00"), (2, 2))
        self.assertEqual(parse_format_spec("0"), (0, 0))
        self.assertEqual(parse_format_spec("#.0#"), (1, 2))

    def test_invalid_specs(self):
        for spec in ["", "0.", "%.2f", "0.#0", "0,00", "0.00.0"]:
            with self.subTest(spec=spec):
                with self.assertRaises(ValueError):
                    parse_format_spec(spec)

    def test_spec_only_for_doubles(self):
        with self.assertRaises(ValueError):
            Field("Count", FieldKind.INT, "0.00")

if __name__ == "__main__":
    unittest.main()
