"""
Tests for the monitor line protocol.

Tests cover:
- Metadata stripping
- Token un-quoting and escape handling
- Decode errors (bad escapes, bad hex, truncated sequences)
- Command construction
"""

import unittest

from replication.protocol import MonitorProtocol, Command


MONITOR_LINE = '1592134898.858273 [0 192.168.23.10:33072] "HSET" "wh:7134878504547625" "207108" "abc"'


# ============================================================================
# Metadata Tests
# ============================================================================

class TestStripMetadata(unittest.TestCase):
    """Test removal of the timestamp/client prefix."""

    def test_strip_metadata(self):
        rest = MonitorProtocol.strip_metadata(MONITOR_LINE)
        self.assertEqual(rest, b'"HSET" "wh:7134878504547625" "207108" "abc"')

    def test_line_without_bracket_is_skipped(self):
        self.assertIsNone(MonitorProtocol.strip_metadata('OK'))
        self.assertIsNone(MonitorProtocol.parse_line('1592134898.858273 "SET" "a" "b"'))

    def test_nothing_after_bracket(self):
        self.assertIsNone(MonitorProtocol.strip_metadata('1592134898.858273 [0 127.0.0.1:1]'))
        self.assertIsNone(MonitorProtocol.strip_metadata('1592134898.858273 [0 127.0.0.1:1] '))

    def test_line_terminator_removed(self):
        rest = MonitorProtocol.strip_metadata(b'1.0 [0 127.0.0.1:1] "PING"\r\n')
        self.assertEqual(rest, b'"PING"')

    def test_only_first_bracket_counts(self):
        command = MonitorProtocol.parse_line('1.0 [0 127.0.0.1:1] "SET" "a]b" "c"')
        self.assertEqual(command.name, "SET")
        self.assertEqual(command.args, (b'a]b', b'c'))


# ============================================================================
# Parser Tests
# ============================================================================

class TestParseCommand(unittest.TestCase):
    """Test un-quoting of command tokens."""

    def test_end_to_end_hset(self):
        command = MonitorProtocol.parse_line(MONITOR_LINE)

        self.assertEqual(command.name, "HSET")
        self.assertEqual(command.args, (b"wh:7134878504547625", b"207108", b"abc"))
        self.assertEqual(command.raw, '"HSET" "wh:7134878504547625" "207108" "abc"')
        self.assertTrue(command.is_valid)

    def test_printable_ascii_unchanged(self):
        value = "Hello, world! key:1 {tag} ~/path?x=1&y=2"
        command = MonitorProtocol.parse_command(f'"SET" "k" "{value}"')
        self.assertEqual(command.args, (b"k", value.encode("ascii")))

    def test_hex_escape(self):
        command = MonitorProtocol.parse_command(r'"SET" "k" "\x41"')
        self.assertEqual(command.args[1], b"A")

    def test_binary_hex_escapes(self):
        command = MonitorProtocol.parse_command(r'"SET" "k" "^\xe6\x0c\xf2\x16\xab"')
        self.assertEqual(command.args[1], b"^\xe6\x0c\xf2\x16\xab")

    def test_simple_escapes(self):
        command = MonitorProtocol.parse_command(r'"SET" "\n" "\r\t" "\a\b" "\\" "a\"b"')
        self.assertEqual(command.args, (b"\n", b"\r\t", b"\x07\x08", b"\\", b'a"b'))

    def test_text_outside_quotes_ignored(self):
        command = MonitorProtocol.parse_command('junk"GET"  ,, "k" trailing')
        self.assertEqual(command.name, "GET")
        self.assertEqual(command.args, (b"k",))

    def test_empty_arguments(self):
        command = MonitorProtocol.parse_command('"SET" "k" ""')
        self.assertEqual(command.args, (b"k", b""))

    def test_no_tokens_gives_empty_name(self):
        command = MonitorProtocol.parse_command('no quotes here')
        self.assertEqual(command.name, "")
        self.assertEqual(command.args, ())
        self.assertFalse(command.is_valid)

    def test_empty_first_token_is_invalid(self):
        command = MonitorProtocol.parse_command('"" "x"')
        self.assertFalse(command.is_valid)

    def test_unterminated_token_not_committed(self):
        command = MonitorProtocol.parse_command('"SET" "k" "unterminated')
        self.assertEqual(command.args, (b"k",))

    def test_bytes_input(self):
        command = MonitorProtocol.parse_command(b'"SET" "k" "\xff\xfe"')
        self.assertEqual(command.args, (b"k", b"\xff\xfe"))

    def test_non_ascii_text_is_utf8_encoded(self):
        command = MonitorProtocol.parse_command('"SET" "k" "café"')
        self.assertEqual(command.args[1], "café".encode("utf-8"))

    def test_deterministic(self):
        line = r'"SET" "k\q" "\x4" "\xzz"'
        with self.assertLogs('redis_replicator.protocol', level='WARNING'):
            first = MonitorProtocol.parse_command(line)
            second = MonitorProtocol.parse_command(line)
        self.assertEqual(first, second)

    def test_non_utf8_name_keeps_raw_bytes(self):
        command = MonitorProtocol.parse_command(r'"\xffSET" "k"')
        self.assertTrue(command.is_valid)
        self.assertEqual(command.name.encode("utf-8", "surrogateescape"), b"\xffSET")

    def test_command_is_immutable(self):
        command = Command(name="PING", raw='"PING"')
        with self.assertRaises(AttributeError):
            command.raw = "changed"


# ============================================================================
# Decode Error Tests
# ============================================================================

class TestDecodeErrors(unittest.TestCase):
    """Test recovery from malformed escape sequences."""

    def test_unknown_escape_dropped(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING') as logs:
            command = MonitorProtocol.parse_command(r'"SET" "a\qb" "next"')

        self.assertEqual(command.args, (b"ab", b"next"))
        self.assertIn("Unexpected escaped char", logs.output[0])

    def test_unknown_escape_only_token(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING'):
            command = MonitorProtocol.parse_command(r'"SET" "\q" "\x41" "plain"')

        self.assertEqual(command.name, "SET")
        self.assertEqual(command.args, (b"", b"A", b"plain"))

    def test_bad_hex_digits(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING') as logs:
            command = MonitorProtocol.parse_command(r'"SET" "k" "\xzz1" "v"')

        # both characters after \x are consumed
        self.assertEqual(command.args, (b"k", b"1", b"v"))
        self.assertIn("Bad hex number", logs.output[0])

    def test_signed_hex_rejected(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING'):
            command = MonitorProtocol.parse_command(r'"SET" "k" "\x+1"')
        self.assertEqual(command.args, (b"k", b""))

    def test_truncated_hex_stops_line(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING') as logs:
            command = MonitorProtocol.parse_command(r'"SET" "k" "v\x4')

        self.assertEqual(command.name, "SET")
        self.assertEqual(command.args, (b"k",))
        self.assertIn("Truncated escape sequence", logs.output[0])

    def test_trailing_backslash_stops_line(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING'):
            command = MonitorProtocol.parse_command('"SET" "k" "v\\')

        self.assertEqual(command.args, (b"k",))

    def test_repeated_malformed_input_same_result(self):
        with self.assertLogs('redis_replicator.protocol', level='WARNING'):
            results = [MonitorProtocol.decode_tokens(r'"\q\xzz\x') for _ in range(3)]

        self.assertEqual(results, [[], [], []])


if __name__ == '__main__':
    unittest.main()
