#!/usr/bin/env python3
"""
taskdata_config.py - Reader options, optionally loaded from YAML

Example reader.yaml:

    byte_order: little      # little | big | native
    planned_status: "1"     # TSK G value marking a planned task
    output_format: yaml     # yaml | json
    verbose: false
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from timelog_decoder import BYTE_ORDERS


OUTPUT_FORMATS = ('yaml', 'json')


class ConfigError(ValueError):
    """Invalid reader configuration."""


@dataclass(frozen=True)
class ReaderOptions:
    byte_order: str = 'little'
    planned_status: str = '1'
    output_format: str = 'yaml'
    verbose: bool = False

    def __post_init__(self):
        if self.byte_order not in BYTE_ORDERS:
            raise ConfigError(
                f"byte_order must be one of {', '.join(BYTE_ORDERS)}, got {self.byte_order!r}"
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output_format!r}"
            )
        if not isinstance(self.verbose, bool):
            raise ConfigError(f'verbose must be true or false, got {self.verbose!r}')

    def updated(self, **overrides: Any) -> 'ReaderOptions':
        """Copy with the given non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def options_from_dict(data: Optional[Dict[str, Any]]) -> ReaderOptions:
    if data is None:
        return ReaderOptions()
    if not isinstance(data, dict):
        raise ConfigError('Reader configuration must be a mapping')

    known = {f.name for f in fields(ReaderOptions)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values = dict(data)
    if 'planned_status' in values:
        # YAML reads an unquoted 1 as an integer
        values['planned_status'] = str(values['planned_status'])
    return ReaderOptions(**values)


def load_options(path: Union[str, Path]) -> ReaderOptions:
    """Load ReaderOptions from a YAML file."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f'Cannot read {path}: {e}') from e
    except yaml.YAMLError as e:
        raise ConfigError(f'Invalid YAML in {path}: {e}') from e
    return options_from_dict(data)
