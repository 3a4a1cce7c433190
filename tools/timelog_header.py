#!/usr/bin/env python3
"""
timelog_header.py - Header field layout of a binary time log

The TLGnnnnn.xml descriptor mirrors the fixed part of every binary record.
An attribute that is present with an empty value means "this value is in
the binary stream"; an attribute with a value is a constant and is not
recorded.

    <TIM A="" D="4">
      <PTN A="" B="" D="" />
      <DLV A="0084" B="" C="DET-1"/>
    </TIM>

Record layout (per header cycle):
    TIM A   TimeStartTOFD   u32 ms since midnight
            TimeStartDATE   u16 days since 1980-01-01
    PTN A   PositionNorth   i32
    PTN B   PositionEast    i32
    PTN C   PositionUp      i32
    PTN D   PositionStatus  u8
    PTN E   PDOP            u16
    PTN F   HDOP            u16
    PTN G   NumberOfSatellites  u8
    PTN H   GpsUtcTime      u32 ms since midnight
    PTN I   GpsUtcDate      u16 days since 1980-01-01
"""

import xml.etree.ElementTree as ET
from typing import List, Tuple

from timelog_types import HeaderField, ValueKind


# TIM A carries both the time of day and the date of each record
TIME_START_FIELDS: List[Tuple[str, ValueKind]] = [
    ('TimeStartTOFD', ValueKind.TIME),
    ('TimeStartDATE', ValueKind.DATE),
]

# PTN attribute -> header field, in record order
POSITION_FIELDS: List[Tuple[str, str, ValueKind]] = [
    ('A', 'PositionNorth', ValueKind.I32),
    ('B', 'PositionEast', ValueKind.I32),
    ('C', 'PositionUp', ValueKind.I32),
    ('D', 'PositionStatus', ValueKind.U8),
    ('E', 'PDOP', ValueKind.U16),
    ('F', 'HDOP', ValueKind.U16),
    ('G', 'NumberOfSatellites', ValueKind.U8),
    ('H', 'GpsUtcTime', ValueKind.TIME),
    ('I', 'GpsUtcDate', ValueKind.DATE),
]


def _recorded(elem: ET.Element, attr: str) -> bool:
    return elem.get(attr) == ''


def build_header_fields(tim: ET.Element) -> List[HeaderField]:
    """Ordered header fields recorded in each binary record of a run."""
    fields = []
    if _recorded(tim, 'A'):
        fields.extend(HeaderField(name, kind) for name, kind in TIME_START_FIELDS)

    for ptn in tim.iter('PTN'):
        for attr, name, kind in POSITION_FIELDS:
            if _recorded(ptn, attr):
                fields.append(HeaderField(name, kind))
    return fields


def data_log_values(tim: ET.Element) -> List[ET.Element]:
    """DLV declarations in document order; list position is the change-set index."""
    return list(tim.iter('DLV'))


def header_root(document: ET.Element) -> ET.Element:
    """Return the TIM element of a parsed header descriptor."""
    if document.tag == 'TIM':
        return document
    tim = document.find('TIM')
    if tim is None:
        raise ValueError(f'Header descriptor has no TIM element (root is {document.tag})')
    return tim
