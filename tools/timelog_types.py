#!/usr/bin/env python3
"""
timelog_types.py - Value kinds and result containers for ISOXML time logs

A time log run produces two kinds of series:

    header fields   fixed-position values read once per header cycle
                    (position, GNSS quality, time of day, ...)
    channels        process-data values carried forward between
                    change-sets, one per DLV declared in the header

Both are backed by the same TimeSeries container, typed by a ValueKind.

Usage:
    from timelog_types import ValueKind, TimeSeries, HeaderField

    field = HeaderField('PositionNorth', ValueKind.I32)
    field.series.append(523456789)
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union


# Epoch of ISO 11783 date fields (days since 1980-01-01)
ISO_EPOCH = date(1980, 1, 1)

MS_PER_DAY = 24 * 60 * 60 * 1000


class ValueKind(Enum):
    """Wire kinds of time log values: (struct code, size in bytes, derived text)."""
    U8 = ('B', 1, False)
    I16 = ('h', 2, False)
    I32 = ('i', 4, False)
    U16 = ('H', 2, False)
    U32 = ('I', 4, False)
    U64 = ('Q', 8, False)
    DATE = ('H', 2, True)
    TIME = ('I', 4, True)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def size(self) -> int:
        return self.value[1]

    @property
    def derived(self) -> bool:
        """True for kinds decoded into text (dates and times of day)."""
        return self.value[2]


def format_date(days: int) -> str:
    """Day offset from 1980-01-01 as YYYY-MM-DD."""
    return (ISO_EPOCH + timedelta(days=days)).isoformat()


def format_time_of_day(ms: int) -> str:
    """Milliseconds since midnight as HH:MM:SS.mmm (clock reading, wraps at 24h)."""
    ms %= MS_PER_DAY
    seconds, millis = divmod(ms, 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f'{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}'


def convert_raw(kind: ValueKind, raw: int) -> Union[int, str]:
    """Turn a raw unpacked integer into the value stored for `kind`."""
    if kind is ValueKind.DATE:
        return format_date(raw)
    if kind is ValueKind.TIME:
        return format_time_of_day(raw)
    return raw


class TimeSeries:
    """
    Append-only sequence of values sharing one ValueKind.

    Once sealed the series is read-only; appending raises RuntimeError.
    """

    def __init__(self, kind: ValueKind, values: Optional[List[Any]] = None):
        self.kind = kind
        self._values: List[Any] = list(values) if values else []
        self._sealed = False

    def append(self, value: Any) -> None:
        if self._sealed:
            raise RuntimeError('Cannot append to a sealed time series')
        self._values.append(value)

    def drop_first(self) -> None:
        """Remove the leading value (no-op on an empty series)."""
        if self._sealed:
            raise RuntimeError('Cannot modify a sealed time series')
        if self._values:
            del self._values[0]

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def values(self) -> List[Any]:
        return list(self._values)

    def last(self, default: Any = 0) -> Any:
        return self._values[-1] if self._values else default

    def format(self, index: int) -> str:
        return str(self._values[index])

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, index):
        return self._values[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if isinstance(other, TimeSeries):
            return self.kind is other.kind and self._values == other._values
        if isinstance(other, list):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f'TimeSeries({self.kind.name}, {self._values!r})'


@dataclass
class HeaderField:
    """One fixed-position field of the binary time record."""
    name: str
    kind: ValueKind
    series: TimeSeries = None

    def __post_init__(self):
        if self.series is None:
            self.series = TimeSeries(self.kind)


@dataclass
class Channel:
    """One recorded process-data quantity (a resolved DLV)."""
    name: str
    ddi: int
    process_data_designator: str = ''
    device_designator: str = ''
    element_designator: str = ''
    element_number: str = ''
    kind: ValueKind = ValueKind.I32
    series: TimeSeries = None

    def __post_init__(self):
        if not 0 <= self.ddi <= 0xFFFF:
            raise ValueError(f'DDI out of range: {self.ddi}')
        if self.series is None:
            self.series = TimeSeries(self.kind)

    @property
    def ddi_code(self) -> str:
        return f'{self.ddi:04X}'


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    client_name: str


@dataclass
class TaskResult:
    """Decoded output of one logged run, or the metadata of one planned task."""
    task_name: str
    field_name: str = ''
    farm_name: str = ''
    products: Dict[str, str] = field(default_factory=dict)
    devices: List[DeviceInfo] = field(default_factory=list)
    header: List[HeaderField] = field(default_factory=list)
    channels: List[Channel] = field(default_factory=list)
    task_id: str = ''
    timelog: str = ''
    planned: bool = False

    @property
    def samples(self) -> int:
        """Number of header values decoded (length of the longest header series)."""
        return max((len(h.series) for h in self.header), default=0)

    def header_field(self, name: str) -> Optional[HeaderField]:
        for h in self.header:
            if h.name == name:
                return h
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view suitable for YAML/JSON export."""
        return {
            'task_id': self.task_id,
            'task_name': self.task_name,
            'timelog': self.timelog,
            'planned': self.planned,
            'field': self.field_name,
            'farm': self.farm_name,
            'products': dict(self.products),
            'devices': [
                {'device': d.name, 'clientname': d.client_name}
                for d in self.devices
            ],
            'header': [
                {'name': h.name, 'kind': h.kind.name, 'values': h.series.values}
                for h in self.header
            ],
            'channels': [
                {
                    'name': c.name,
                    'ddi': c.ddi_code,
                    'device': c.device_designator,
                    'element': c.element_designator,
                    'element_number': c.element_number,
                    'kind': c.kind.name,
                    'values': c.series.values,
                }
                for c in self.channels
            ],
        }
