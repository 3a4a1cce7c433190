#!/usr/bin/env python3
"""
channel_resolver.py - Resolve DLV declarations into named channels

A time log header declares each recorded value as a DLV:

    <DLV A="0084" B="0" C="DET-3"/>
          |       |     +-- device element reference
          |       +-------- initial (literal) value
          +---------------- DDI, hexadecimal

The resolver finds the DPD that the referenced device element exposes for
that DDI (through the element's DOR references) and names the channel after
the device, element and process data designators. When no unique DPD can be
found the channel is kept under the raw element reference, so no data is
dropped.
"""

import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

from isoxml_catalog import NotFoundError, SchemaCatalog, TaskDataError, parse_ddi
from timelog_types import Channel, ValueKind


I32_MIN = -2**31
I32_MAX = 2**31 - 1


class AmbiguousChannelError(TaskDataError):
    """No unique process data definition matches a DLV."""

    def __init__(self, element_ref: str, ddi_code: str, count: int):
        self.element_ref = element_ref
        self.ddi_code = ddi_code
        self.count = count
        super().__init__(
            f'{count} process data definitions for DDI {ddi_code} on {element_ref}'
        )


def parse_literal(text: Optional[str]) -> int:
    """Parse a DLV value as a signed 32-bit integer; malformed text yields 0."""
    try:
        value = int(text)
    except (TypeError, ValueError):
        return 0
    if not I32_MIN <= value <= I32_MAX:
        return 0
    return value


class ChannelResolver:
    """
    Turns (device element ref, DDI code) pairs into Channel descriptors.

    Every fallback to an unnamed channel is recorded in `unresolved` as
    (element ref, DDI code) so callers can report them.
    """

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog
        self.unresolved: List[Tuple[str, str]] = []

    def lookup(self, element_ref: str, ddi_code: str) -> Tuple[ET.Element, ET.Element]:
        """
        Find the (DET, DPD) pair for a DLV.

        Raises AmbiguousChannelError unless exactly one DPD in the document matches
        both the DDI text and the element's DOR set.
        """
        try:
            det = self.catalog.device_element(element_ref)
        except NotFoundError:
            raise AmbiguousChannelError(element_ref, ddi_code, 0) from None

        object_refs = {dor.get('A') for dor in det.iter('DOR')}
        matches = [
            dpd for dpd in self.catalog.process_data(ddi_code)
            if dpd.get('A') in object_refs
        ]
        if len(matches) != 1:
            raise AmbiguousChannelError(element_ref, ddi_code, len(matches))
        return det, matches[0]

    def resolve(self, element_ref: str, ddi_code: str, literal: Optional[str] = None) -> Channel:
        """Build the channel for a DLV, seeded with its literal value."""
        ddi = parse_ddi(ddi_code)
        if ddi is None:
            ddi = 0

        try:
            det, dpd = self.lookup(element_ref, ddi_code)
        except AmbiguousChannelError:
            self.unresolved.append((element_ref, ddi_code))
            channel = Channel(name=element_ref, ddi=ddi)
        else:
            owner = self.catalog.owner_device(det)
            designator = dpd.get('E', '')
            channel = Channel(
                name=designator,
                ddi=ddi,
                process_data_designator=designator,
                device_designator=owner.get('B', '') if owner is not None else '',
                element_designator=det.get('D', ''),
                element_number=det.get('A', ''),
                kind=ValueKind.I32,
            )

        channel.series.append(parse_literal(literal))
        return channel

    def resolve_dlv(self, dlv: ET.Element) -> Channel:
        return self.resolve(dlv.get('C', ''), dlv.get('A', ''), dlv.get('B'))
