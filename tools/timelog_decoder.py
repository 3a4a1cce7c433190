#!/usr/bin/env python3
"""
timelog_decoder.py - Decoder for ISO 11783 binary time logs (TLGnnnnn.BIN)

The binary file is a sequence of records without framing. The layout of
each record is given by the header descriptor (see timelog_header.py):

    +---------------------------+  fixed header fields, in declared order
    | TimeStartTOFD  u32        |
    | TimeStartDATE  u16        |
    | PositionNorth  i32  ...   |
    +---------------------------+
    | count          u8         |  change-set
    | index u8 | value i32      |  x count
    +---------------------------+

Only channels whose value changed are present in a change-set. Every other
channel keeps its previous value (carry-forward), so each record yields a
complete value vector. Index bytes address the channel list in the order
the DLVs are declared.

Usage:
    from timelog_decoder import TimeLogDecoder

    decoder = TimeLogDecoder(header_fields, channels)
    with open('TLG00001.bin', 'rb') as stream:
        try:
            decoder.decode(stream)
        finally:
            decoder.finish()
"""

import io
import struct
from typing import BinaryIO, List

from isoxml_catalog import TaskDataError
from timelog_types import Channel, HeaderField, ValueKind, convert_raw


BYTE_ORDERS = {
    'little': '<',
    'big': '>',
    'native': '=',
}

CHANGE_SET_VALUE = ValueKind.I32


class TimeLogDecodeError(TaskDataError):
    """A binary time log could not be decoded to its end."""


class StreamTruncatedError(TimeLogDecodeError, EOFError):
    """The stream ended in the middle of a value."""

    def __init__(self, offset: int, needed: int, available: int):
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f'Stream truncated at offset {offset}: need {needed} bytes, got {available}'
        )


class EmptyHeaderError(TimeLogDecodeError):
    """Binary data without any header fields to synchronize on."""


class ChangeSetIndexError(TimeLogDecodeError):
    """A change-set addresses a channel that was not declared."""


class _ByteReader:
    """Sequential reader with one byte of lookahead for end-of-stream checks."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._pending = b''
        self.offset = 0

    def at_end(self) -> bool:
        if not self._pending:
            self._pending = self._stream.read(1)
        return not self._pending

    def read(self, size: int) -> bytes:
        data = self._pending
        self._pending = b''
        while len(data) < size:
            chunk = self._stream.read(size - len(data))
            if not chunk:
                break
            data += chunk
        if len(data) < size:
            raise StreamTruncatedError(self.offset, size, len(data))
        self.offset += size
        return data


class TimeLogDecoder:
    """
    Stateful decoder for one time log run.

    Header fields and channels are filled in place. Each channel series holds
    one seed value (the DLV literal, 0 if none was given) before decoding
    starts; the seed is the initial carry-forward value and finish() removes it.
    """

    def __init__(self, header: List[HeaderField], channels: List[Channel],
                 byte_order: str = 'little'):
        if byte_order not in BYTE_ORDERS:
            raise ValueError(f'Unknown byte order: {byte_order}')
        self.header = header
        self.channels = channels
        self.endian = BYTE_ORDERS[byte_order]
        self.records = 0
        self._finished = False

        for channel in channels:
            if not len(channel.series):
                channel.series.append(0)

        # Carry-forward slots, indexed by change-set index byte
        self._last: List[int] = [c.series.last(0) for c in channels]

    def _read_value(self, reader: _ByteReader, kind: ValueKind):
        raw = struct.unpack(f'{self.endian}{kind.code}', reader.read(kind.size))[0]
        return convert_raw(kind, raw)

    def _apply_change_set(self, reader: _ByteReader) -> None:
        count = reader.read(1)[0]
        for _ in range(count):
            index = reader.read(1)[0]
            value = self._read_value(reader, CHANGE_SET_VALUE)
            if index >= len(self._last):
                raise ChangeSetIndexError(
                    f'Change-set index {index} at offset {reader.offset} '
                    f'exceeds {len(self._last)} declared channels'
                )
            self._last[index] = value

        for channel, value in zip(self.channels, self._last):
            channel.series.append(value)
        self.records += 1

    def decode(self, stream: BinaryIO) -> int:
        """
        Decode a binary stream to its end.

        Returns the number of change-sets applied. Values decoded before an
        error are kept in the series.
        """
        if self._finished:
            raise RuntimeError('Decoder already finished')

        reader = _ByteReader(stream)
        cursor = 0
        while not reader.at_end():
            if cursor == len(self.header):
                cursor = 0
                if not self.header:
                    raise EmptyHeaderError('No header fields declared for binary data')
                self._apply_change_set(reader)
                if reader.at_end():
                    break

            field = self.header[cursor]
            field.series.append(self._read_value(reader, field.kind))
            cursor += 1

        return self.records

    def finish(self) -> None:
        """Drop the seed value of every channel and seal all series."""
        if self._finished:
            return
        for channel in self.channels:
            channel.series.drop_first()
            channel.series.seal()
        for field in self.header:
            field.series.seal()
        self._finished = True


def decode_timelog(header: List[HeaderField], channels: List[Channel],
                   data: bytes, byte_order: str = 'little') -> int:
    """Decode an in-memory binary time log and finish the run."""
    decoder = TimeLogDecoder(header, channels, byte_order)
    try:
        return decoder.decode(io.BytesIO(data))
    finally:
        decoder.finish()
