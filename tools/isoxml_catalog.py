#!/usr/bin/env python3
"""
isoxml_catalog.py - Lookup index over a merged ISOXML task document

Indexes the tables of a TASKDATA document (after external fragments have
been merged in) so that time log decoding can cross-reference them by id:

    PDT  product            A=id  B=designator
    TZN  treatment zone     PDV children: C=product ref, D=device element ref
    PFD  partfield          A=id  C=designator
    FRM  farm               A=id  B=designator
    DVC  device             A=id  B=designator  D=client NAME
    DET  device element     A=id  D=designator  DOR children (A=object ref)
    DPD  process data       A=id  B=DDI  E=designator
    TSK  task               A=id  B=designator  D=farm ref  E=field ref  G=status

Identifiers are opaque, case-sensitive strings. The catalog never modifies
the document it was built from.

Usage:
    from isoxml_catalog import SchemaCatalog

    catalog = SchemaCatalog(merged_root)
    name = catalog.farm_name(task)
"""

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional


class TaskDataError(Exception):
    """Base class for task data decoding errors."""


class NotFoundError(TaskDataError, LookupError):
    """A single-match lookup returned zero or several entries."""

    def __init__(self, table: str, key: Optional[str], count: int):
        self.table = table
        self.key = key
        self.count = count
        if count == 0:
            detail = 'no match'
        else:
            detail = f'{count} matches'
        super().__init__(f'{table} lookup for {key!r}: {detail}')


def build_product_map(root: ET.Element) -> Dict[str, str]:
    """
    Product names keyed for channel lookup.

    Starts from PDT id -> designator. When a treatment zone exists the map is
    rebuilt from the first TZN's PDV entries, keyed by device element ref.
    Any PDV that cannot be resolved abandons the rebuild as a whole and the
    PDT map is returned unchanged.
    """
    products = {
        pdt.get('A'): pdt.get('B', '')
        for pdt in root.iter('PDT')
        if pdt.get('A') is not None
    }

    zone = next(root.iter('TZN'), None)
    if zone is None or not products:
        return products

    by_element: Dict[str, str] = {}
    for pdv in zone.iter('PDV'):
        element_ref = pdv.get('D')
        product_ref = pdv.get('C')
        if element_ref is None or product_ref not in products or element_ref in by_element:
            return products
        by_element[element_ref] = products[product_ref]
    return by_element


class SchemaCatalog:
    """Read-only index of a merged task document."""

    def __init__(self, root: ET.Element):
        self.root = root
        self.products = build_product_map(root)

        self._farms = self._index('FRM')
        self._fields = self._index('PFD')
        self._devices = self._index('DVC')
        self._elements: Dict[str, List[ET.Element]] = {}
        self._process_data: Dict[str, List[ET.Element]] = {}
        self._owner: Dict[int, ET.Element] = {}

        for dvc in root.iter('DVC'):
            for det in dvc.iter('DET'):
                self._owner[id(det)] = dvc
            for dpd in dvc.iter('DPD'):
                self._owner[id(dpd)] = dvc
        for det in root.iter('DET'):
            self._elements.setdefault(det.get('A'), []).append(det)
        for dpd in root.iter('DPD'):
            self._process_data.setdefault(dpd.get('B'), []).append(dpd)

        self.tasks = list(root.iter('TSK'))

    def _index(self, tag: str) -> Dict[str, List[ET.Element]]:
        table: Dict[str, List[ET.Element]] = {}
        for elem in self.root.iter(tag):
            table.setdefault(elem.get('A'), []).append(elem)
        return table

    @staticmethod
    def _single(table: Dict[str, List[ET.Element]], tag: str, key: Optional[str]) -> ET.Element:
        matches = table.get(key, [])
        if len(matches) != 1:
            raise NotFoundError(tag, key, len(matches))
        return matches[0]

    # -- single-match lookups ------------------------------------------------

    def device(self, ref: str) -> ET.Element:
        return self._single(self._devices, 'DVC', ref)

    def device_element(self, ref: str) -> ET.Element:
        return self._single(self._elements, 'DET', ref)

    def owner_device(self, elem: ET.Element) -> Optional[ET.Element]:
        """The DVC containing a DET or DPD, if any."""
        return self._owner.get(id(elem))

    def process_data(self, ddi_code: str) -> List[ET.Element]:
        """All DPD entries whose DDI text is exactly `ddi_code`, in document order."""
        return list(self._process_data.get(ddi_code, []))

    def farm_name(self, task: ET.Element) -> str:
        """Farm designator of a task; empty when the document has no farms."""
        return self._name_by_ref(self._farms, 'FRM', task.get('D'), 'B')

    def field_name(self, task: ET.Element) -> str:
        """Partfield designator of a task; empty when the document has no partfields."""
        return self._name_by_ref(self._fields, 'PFD', task.get('E'), 'C')

    def _name_by_ref(self, table, tag: str, ref: Optional[str], attr: str) -> str:
        if not table or ref is None:
            return ''
        return self._single(table, tag, ref).get(attr, '')


def parse_ddi(code: Optional[str]) -> Optional[int]:
    """DDI from its hexadecimal text ('0084', '84'); None if not a valid DDI."""
    try:
        ddi = int(code, 16)
    except (TypeError, ValueError):
        return None
    if not 0 <= ddi <= 0xFFFF:
        return None
    return ddi
