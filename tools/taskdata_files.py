#!/usr/bin/env python3
"""
taskdata_files.py - Locate and load the files of an ISOXML task set

A task set is a directory holding TASKDATA.XML plus:

    <XFR A="...">    external fragments, <name>.XML with an XFC root whose
                     children belong to the main document
    <TLG A="...">    time log header descriptor <name>.XML and binary
                     <name>.BIN

Terminals write file names in varying case, so all lookups ignore case.

Two sources share the same interface (load_document / load_header /
open_binary): TaskDataDirectory reads from disk, InMemoryTaskData from
strings and bytes.
"""

import copy
import io
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union

from isoxml_catalog import TaskDataError


XmlInput = Union[str, bytes, ET.Element]


class DocumentLoadError(TaskDataError):
    """The task document, an external fragment or a header descriptor could not be loaded."""


def find_file(directory: Union[str, Path], name: str) -> Path:
    """
    Find `name` in `directory` ignoring case.

    Raises FileNotFoundError when there is no match or the match is ambiguous.
    """
    directory = Path(directory)
    wanted = name.lower()
    try:
        matches = [p for p in directory.iterdir() if p.is_file() and p.name.lower() == wanted]
    except OSError as e:
        raise FileNotFoundError(f'Cannot list {directory}: {e}') from e
    if len(matches) != 1:
        detail = 'not found' if not matches else f'{len(matches)} candidates'
        raise FileNotFoundError(f'{name} in {directory}: {detail}')
    return matches[0]


def merge_external_fragments(root: ET.Element, fragments: Dict[str, ET.Element]) -> ET.Element:
    """
    Return a copy of `root` with external fragments spliced in.

    Every XFR element is removed; the children of each referenced fragment
    (the XFC root) are appended to the document root in XFR order. Neither
    `root` nor the fragments are modified.
    """
    merged = copy.deepcopy(root)
    refs = [xfr.get('A', '') for xfr in merged.iter('XFR')]

    for parent in list(merged.iter()):
        for xfr in parent.findall('XFR'):
            parent.remove(xfr)

    for ref in refs:
        if ref not in fragments:
            raise DocumentLoadError(f'External fragment {ref!r} not loaded')
        for child in fragments[ref]:
            merged.append(copy.deepcopy(child))
    return merged


def parse_xml(data: XmlInput) -> ET.Element:
    if isinstance(data, ET.Element):
        return data
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise DocumentLoadError(f'Invalid XML: {e}') from e


class TaskDataDirectory:
    """Task set on disk, addressed by the path of its TASKDATA.XML."""

    def __init__(self, task_file: Union[str, Path]):
        self.task_file = Path(task_file)
        self.directory = self.task_file.parent

    def _parse(self, path: Path) -> ET.Element:
        try:
            return ET.parse(path).getroot()
        except (OSError, ET.ParseError) as e:
            raise DocumentLoadError(f'Cannot load {path}: {e}') from e

    def _locate(self, name: str) -> Path:
        try:
            return find_file(self.directory, name)
        except FileNotFoundError as e:
            raise DocumentLoadError(str(e)) from e

    def load_document(self) -> ET.Element:
        """Main document with all XFR fragments merged in."""
        root = self._parse(self.task_file)
        fragments = {}
        for xfr in root.iter('XFR'):
            ref = xfr.get('A', '')
            fragments[ref] = self._parse(self._locate(ref + '.xml'))
        return merge_external_fragments(root, fragments)

    def load_header(self, name: str) -> ET.Element:
        return self._parse(self._locate(name + '.xml'))

    def open_binary(self, name: str) -> Optional[BinaryIO]:
        """Open <name>.bin for reading; None when the task set has no such file."""
        try:
            path = find_file(self.directory, name + '.bin')
        except FileNotFoundError:
            return None
        return path.open('rb')


class InMemoryTaskData:
    """Task set held in memory; fragments are keyed by XFR A, headers and binaries by TLG A."""

    def __init__(self, document: XmlInput,
                 headers: Optional[Dict[str, XmlInput]] = None,
                 binaries: Optional[Dict[str, bytes]] = None,
                 fragments: Optional[Dict[str, XmlInput]] = None):
        self.document = document
        self.headers = headers or {}
        self.binaries = binaries or {}
        self.fragments = fragments or {}

    def load_document(self) -> ET.Element:
        fragments = {name: parse_xml(data) for name, data in self.fragments.items()}
        return merge_external_fragments(parse_xml(self.document), fragments)

    def load_header(self, name: str) -> ET.Element:
        if name not in self.headers:
            raise DocumentLoadError(f'No header descriptor for {name}')
        return parse_xml(self.headers[name])

    def open_binary(self, name: str) -> Optional[BinaryIO]:
        data = self.binaries.get(name)
        if data is None:
            return None
        return io.BytesIO(data)
