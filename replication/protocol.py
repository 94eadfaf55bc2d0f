"""
Monitor Protocol for the replicator.

This module handles framing and un-quoting of the lines printed by
Redis ``MONITOR``:

    1592134898.858273 [0 192.168.23.10:33072] "HSET" "wh:71348" "207108" "^\\xe6"

Everything up to the first ``]`` (plus one separator) is metadata. The
rest is a sequence of double-quoted, backslash-escaped tokens.
"""

import logging
import string
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from replication.exceptions import ProtocolError, TruncatedEscapeError


logger = logging.getLogger('redis_replicator.protocol')

Line = Union[str, bytes]

QUOTE = ord('"')
BACKSLASH = ord('\\')
METADATA_END = ord(']')

# Single-character escapes understood inside quoted tokens
SIMPLE_ESCAPES = {
    ord('"'): QUOTE,
    ord('\\'): BACKSLASH,
    ord('r'): 13,
    ord('a'): 7,
    ord('b'): 8,
    ord('n'): 10,
    ord('t'): 9,
}
HEX_ESCAPE = ord('x')
HEX_DIGITS = frozenset(string.hexdigits.encode('ascii'))


@dataclass(frozen=True)
class Command:
    """A single command observed on the monitor feed."""
    name: str
    args: Tuple[bytes, ...] = field(default_factory=tuple)
    raw: str = ""

    @property
    def is_valid(self) -> bool:
        """Commands without a name are discarded by the line source."""
        return bool(self.name)

    def __str__(self):
        return self.raw


def _to_bytes(line: Line) -> bytes:
    if isinstance(line, bytes):
        return line
    return line.encode('utf-8', 'surrogateescape')


def _to_text(line: Line) -> str:
    if isinstance(line, str):
        return line
    return line.decode('utf-8', 'replace')


class MonitorProtocol:
    """
    Decodes monitor lines into Commands.

    The parser is metadata-agnostic: ``parse_command`` expects the text
    after the metadata prefix, and ``strip_metadata`` removes that prefix.
    """

    @staticmethod
    def strip_metadata(line: Line) -> Optional[bytes]:
        """
        Remove the ``<timestamp> [<db> <client>]`` prefix from a line.

        Args:
            line: Raw monitor line, with or without its line terminator

        Returns:
            The command portion of the line, or None when the line has
            no metadata delimiter or nothing follows it
        """
        data = _to_bytes(line).rstrip(b'\r\n')
        index = data.find(METADATA_END)
        if index < 0:
            return None

        # skip the bracket and the separator after it
        rest = data[index + 2:]
        if not rest:
            return None
        return rest

    @staticmethod
    def decode_tokens(line: Line) -> List[bytes]:
        """
        Decode every complete quoted token on a line.

        Args:
            line: Command portion of a monitor line

        Returns:
            Decoded tokens in source order
        """
        data = _to_bytes(line)
        tokens = []
        part = bytearray()
        in_quotes = False
        i = 0

        while i < len(data):
            c = data[i]
            i += 1

            if not in_quotes:
                if c == QUOTE:
                    in_quotes = True
                    part.clear()
                continue

            if c == QUOTE:
                in_quotes = False
                tokens.append(bytes(part))
            elif c == BACKSLASH:
                try:
                    i = MonitorProtocol._decode_escape(data, i, part)
                except TruncatedEscapeError as e:
                    logger.warning(f"{e}; ignoring the rest of the line")
                    break
                except ProtocolError as e:
                    logger.warning(str(e))
                    i = e.position
            else:
                part.append(c)

        return tokens

    @staticmethod
    def _decode_escape(data: bytes, i: int, part: bytearray) -> int:
        """
        Decode the escape sequence whose backslash precedes ``data[i]``.

        Args:
            data: Line being decoded
            i: Index of the character following the backslash
            part: Token being accumulated

        Returns:
            Index of the first character after the escape sequence

        Raises:
            TruncatedEscapeError: If the line ends inside the sequence
            ProtocolError: If the sequence is not recognized; the caller
                resumes at the character after the escape code
        """
        if i >= len(data):
            raise TruncatedEscapeError('\\', _to_text(data))

        c = data[i]
        i += 1

        if c == HEX_ESCAPE:
            hex_num = data[i:i + 2]
            if len(hex_num) < 2:
                raise TruncatedEscapeError('\\x' + _to_text(hex_num), _to_text(data))
            if not all(d in HEX_DIGITS for d in hex_num):
                # both characters are consumed even when they are not hex
                raise ProtocolError(
                    f"Bad hex number {_to_text(hex_num)!r}", _to_text(data), position=i + 2
                )
            part.append(int(hex_num, 16))
            return i + 2

        if c in SIMPLE_ESCAPES:
            part.append(SIMPLE_ESCAPES[c])
            return i

        raise ProtocolError(
            f"Unexpected escaped char {c} {chr(c)!r}", _to_text(data), position=i
        )

    @staticmethod
    def parse_command(line: Line) -> Command:
        """
        Parse the command portion of a monitor line.

        Args:
            line: Text after the metadata prefix

        Returns:
            Command whose name is the first token and whose args are the
            rest; the name is empty when no token was decoded
        """
        tokens = MonitorProtocol.decode_tokens(line)
        raw = _to_text(line)
        if not tokens:
            return Command(name="", args=(), raw=raw)

        return Command(
            name=tokens[0].decode('utf-8', 'surrogateescape'),
            args=tuple(tokens[1:]),
            raw=raw
        )

    @staticmethod
    def parse_line(line: Line) -> Optional[Command]:
        """
        Parse a full monitor line, metadata included.

        Returns:
            The Command, or None when the line has no metadata delimiter
        """
        rest = MonitorProtocol.strip_metadata(line)
        if rest is None:
            return None
        return MonitorProtocol.parse_command(rest)
