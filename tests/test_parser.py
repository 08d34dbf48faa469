"""
Chunk Parser Tests
"""

import unittest

from breathgate.pressure.parser import ChunkParser, ParseDiagnostic, parse_line


class TestParseLine(unittest.TestCase):

    def test_plain_number(self):
        self.assertEqual(parse_line("3.452"), 3.452)

    def test_number_with_units(self):
        self.assertEqual(parse_line("P=2.5 kPa"), 2.5)

    def test_negative_number(self):
        self.assertEqual(parse_line("-0.75"), -0.75)

    def test_first_number_wins(self):
        self.assertEqual(parse_line("1.5 then 9.0"), 1.5)

    def test_integer(self):
        self.assertEqual(parse_line("7"), 7.0)

    def test_comma_is_not_a_decimal_separator(self):
        # Locale-invariant: "3,5" reads as 3
        self.assertEqual(parse_line("3,5"), 3.0)

    def test_no_number(self):
        self.assertIsNone(parse_line("bad-line"))

    def test_words_without_digits_rejected(self):
        self.assertIsNone(parse_line("nan"))
        self.assertIsNone(parse_line("inf"))

    def test_overflow_rejected(self):
        self.assertIsNone(parse_line("9" * 400))


class TestChunkParser(unittest.TestCase):

    def setUp(self):
        self.parser = ChunkParser(clock=lambda: 42.0)

    def test_mixed_chunk_yields_two_samples_in_order(self):
        samples = self.parser.parse("3.452 kPa\n# comment\n\nbad-line\n2.0")
        self.assertEqual([s.value_kpa for s in samples], [3.452, 2.0])

    def test_crlf_and_cr_terminators(self):
        samples = self.parser.parse("1.0\r\n2.0\r3.0\n")
        self.assertEqual([s.value_kpa for s in samples], [1.0, 2.0, 3.0])

    def test_timestamps_come_from_clock(self):
        samples = self.parser.parse("1.0")
        self.assertEqual(samples[0].received_at, 42.0)

    def test_empty_chunk(self):
        self.assertEqual(self.parser.parse(""), [])
        self.assertEqual(self.parser.parse("\n\n  \n"), [])

    def test_indented_comment_is_skipped(self):
        diagnostics = []
        self.parser.add_diagnostic_callback(diagnostics.append)
        self.assertEqual(self.parser.parse("   # calibrating 1.0\n"), [])
        self.assertEqual(diagnostics, [])
        self.assertEqual(self.parser.metrics['comments'], 1)

    def test_unparseable_line_reports_diagnostic(self):
        diagnostics = []
        self.parser.add_diagnostic_callback(diagnostics.append)

        self.parser.parse("hello\n1.0")

        self.assertEqual(diagnostics, [ParseDiagnostic(line="hello", reason="no number in line")])
        self.assertEqual(self.parser.metrics['failures'], 1)
        self.assertEqual(self.parser.metrics['samples'], 1)

    def test_sample_callbacks_receive_each_sample(self):
        seen = []
        self.parser.add_sample_callback(lambda s: seen.append(s.value_kpa))
        self.parser.parse("0.5\n0.6\n")
        self.assertEqual(seen, [0.5, 0.6])

    def test_failing_callback_does_not_stop_parsing(self):
        def broken(sample):
            raise RuntimeError("boom")

        self.parser.add_sample_callback(broken)
        samples = self.parser.parse("1.0\n2.0")
        self.assertEqual(len(samples), 2)


if __name__ == '__main__':
    unittest.main()
