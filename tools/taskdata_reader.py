#!/usr/bin/env python3
"""
taskdata_reader.py - Read ISOXML task sets into per-task time series

Walks the tasks (TSK) of a TASKDATA.XML document in order:

- planned tasks (TSK G="1") yield their name, field, farm and products
- every time log (TLG) of a recorded task yields one TaskResult with the
  header series (time, position, GNSS quality) and one series per DLV

Failures stay local where possible: an unknown device skips its run, a
damaged or unreadable binary ends its run with the values read so far and
a missing binary leaves the run without samples. Only a document that
cannot be loaded ends the whole read.

Usage:
    taskdata_reader.py TASKDATA.XML
    taskdata_reader.py TASKDATA.XML --format json -o tasks.json
    taskdata_reader.py TASKDATA.XML --summary -v

    from taskdata_reader import read_task_file
    for task in read_task_file('TASKDATA/TASKDATA.XML'):
        print(task.task_name, task.samples)
"""

import argparse
import json
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import yaml

from channel_resolver import ChannelResolver
from isoxml_catalog import NotFoundError, SchemaCatalog
from taskdata_config import ConfigError, ReaderOptions, load_options
from taskdata_files import DocumentLoadError, TaskDataDirectory
from timelog_decoder import TimeLogDecodeError, TimeLogDecoder
from timelog_header import build_header_fields, data_log_values, header_root
from timelog_types import DeviceInfo, TaskResult


def log_info(msg: str) -> None:
    print(f"[INFO] {msg}", file=sys.stderr)


def log_warn(msg: str) -> None:
    print(f"[WARN] {msg}", file=sys.stderr)


class TaskDataReader:
    """
    Decode all tasks of a task data source.

    `source` provides load_document(), load_header(name) and
    open_binary(name); see taskdata_files.py.
    """

    def __init__(self, source, options: Optional[ReaderOptions] = None):
        self.source = source
        self.options = options or ReaderOptions()

    def read(self) -> List[TaskResult]:
        """All task results; partial when a document fails to load."""
        results: List[TaskResult] = []
        try:
            for result in self.iter_tasks():
                results.append(result)
        except DocumentLoadError as e:
            log_warn(f"Stopped reading task data: {e}")
        return results

    def iter_tasks(self) -> Iterator[TaskResult]:
        catalog = SchemaCatalog(self.source.load_document())

        for task in catalog.tasks:
            task_id = task.get('A', '')
            try:
                metadata = self._task_metadata(catalog, task)
            except NotFoundError as e:
                log_warn(f"Task {task_id}: {e}")
                continue

            if task.get('G') == self.options.planned_status:
                yield TaskResult(planned=True, **metadata)
                continue

            for tlg in task.iter('TLG'):
                try:
                    result = self._read_timelog(catalog, task, tlg, metadata)
                except NotFoundError as e:
                    log_warn(f"Task {task_id}, {tlg.get('A', '')}: {e}")
                    continue
                yield result

    def _task_metadata(self, catalog: SchemaCatalog, task: ET.Element) -> Dict[str, Any]:
        return {
            'task_id': task.get('A', ''),
            'task_name': task.get('B', ''),
            'field_name': catalog.field_name(task),
            'farm_name': catalog.farm_name(task),
            'products': dict(catalog.products),
        }

    @staticmethod
    def _devices(catalog: SchemaCatalog, task: ET.Element) -> List[DeviceInfo]:
        devices = []
        for dan in task.findall('DAN'):
            ref = dan.get('C')
            if ref is None:
                continue
            dvc = catalog.device(ref)
            devices.append(DeviceInfo(dvc.get('B', ''), dvc.get('D', '')))
        return devices

    def _load_header(self, name: str) -> ET.Element:
        try:
            return header_root(self.source.load_header(name))
        except ValueError as e:
            raise DocumentLoadError(f"{name}: {e}") from e

    def _read_timelog(self, catalog: SchemaCatalog, task: ET.Element,
                      tlg: ET.Element, metadata: Dict[str, Any]) -> TaskResult:
        name = tlg.get('A', '')
        devices = self._devices(catalog, task)
        tim = self._load_header(name)

        header = build_header_fields(tim)
        resolver = ChannelResolver(catalog)
        channels = [resolver.resolve_dlv(dlv) for dlv in data_log_values(tim)]
        if self.options.verbose:
            for element_ref, ddi_code in resolver.unresolved:
                log_info(f"{name}: no process data for DDI {ddi_code} on {element_ref}")

        result = TaskResult(
            devices=devices,
            header=header,
            channels=channels,
            timelog=name,
            **metadata,
        )

        decoder = TimeLogDecoder(header, channels, self.options.byte_order)
        try:
            stream = self.source.open_binary(name)
            if stream is None:
                if self.options.verbose:
                    log_info(f"{name}: no binary file, run has no samples")
            else:
                with stream:
                    decoder.decode(stream)
        except (TimeLogDecodeError, OSError) as e:
            log_warn(f"{name}: {e}")
        finally:
            decoder.finish()

        if self.options.verbose:
            log_info(f"{name}: {decoder.records} records, {len(channels)} channels")
        return result


def read_task_file(path, options: Optional[ReaderOptions] = None) -> List[TaskResult]:
    """Read a TASKDATA.XML file and the time logs next to it."""
    return TaskDataReader(TaskDataDirectory(path), options).read()


def dump_results(results: List[TaskResult], output_format: str = 'yaml') -> str:
    data = [r.to_dict() for r in results]
    if output_format == 'json':
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, default_flow_style=None, sort_keys=False)


def format_summary(results: List[TaskResult], verbose: bool = False) -> str:
    lines = []
    for r in results:
        label = r.task_name or r.task_id
        if r.planned:
            lines.append(f"{label} (planned) field={r.field_name!r} farm={r.farm_name!r}")
            continue
        lines.append(
            f"{label} [{r.timelog}] field={r.field_name!r} farm={r.farm_name!r}: "
            f"{r.samples} samples, {len(r.header)} header fields, {len(r.channels)} channels"
        )
        if verbose:
            for d in r.devices:
                lines.append(f"    device {d.name} ({d.client_name})")
            for c in r.channels:
                lines.append(
                    f"    {c.ddi_code} {c.name} [{c.device_designator}/{c.element_designator}] "
                    f"{len(c.series)} values"
                )
    return '\n'.join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Decode ISOXML task data time logs')
    parser.add_argument('input', type=Path, help='TASKDATA.XML file')
    parser.add_argument('-o', '--output', type=Path, help='Output file (default: stdout)')
    parser.add_argument('--format', choices=['yaml', 'json'], help='Output format')
    parser.add_argument('--config', type=Path, help='Reader options (YAML)')
    parser.add_argument('--byte-order', choices=['little', 'big', 'native'],
                        help='Byte order of binary time logs')
    parser.add_argument('--summary', action='store_true', help='Print a per-task summary')
    parser.add_argument('-v', '--verbose', action='store_true', help='Report details on stderr')
    args = parser.parse_args(argv)

    try:
        options = load_options(args.config) if args.config else ReaderOptions()
        options = options.updated(
            byte_order=args.byte_order,
            output_format=args.format,
            verbose=True if args.verbose else None,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.input.exists():
        print(f"Error: {args.input} not found", file=sys.stderr)
        return 1

    results = read_task_file(args.input, options)

    if args.summary:
        output = format_summary(results, options.verbose)
    else:
        output = dump_results(results, options.output_format)

    if args.output:
        args.output.write_text(output)
        print(f"Wrote {len(results)} task results to {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
