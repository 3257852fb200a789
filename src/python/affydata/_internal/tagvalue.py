# affydata/_internal/tagvalue.py

"""
Internal functions to parse the free-text name/value blobs embedded in
Affymetrix headers.

The binary and legacy layouts store algorithm parameters, header tags and
summary statistics as loosely structured strings with slightly different
separators per format. Each helper returns a plain dict; merging into a
parser's parameter map is done with `merge_into`.
"""

import re
from typing import Iterable, Mapping, Optional, TypeAlias

ParameterMap: TypeAlias = dict[str, str]

# Undocumented DatHeader convention: "... <chip>.1sq ..."
_DAT_HEADER_CHIP = re.compile(r' ([^ .]*).1sq ', re.IGNORECASE)

def merge_into(target: ParameterMap, values: Mapping[str, Optional[str]]) -> None:
    """
    Adds name/value pairs to `target`. Later names overwrite earlier ones;
    None or empty values are dropped.
    """
    for key, value in values.items():
        if value is None or value == '':
            continue
        target[key] = value

def parse_header_tags(text: str) -> dict[str, str]:
    """Parses newline-separated `key=value` header tags."""
    tags: dict[str, str] = {}
    for line in re.split(r'[\r\n]+', text):
        if not line:
            continue
        key, _, value = line.partition('=')
        tags[key] = value
    return tags

def chip_type_from_dat_header(dat_header: Optional[str]) -> Optional[str]:
    """Extracts the chip type from a DatHeader tag value, if present."""
    if not dat_header:
        return None
    match = _DAT_HEADER_CHIP.search(dat_header)
    return match.group(1) if match else None

def _split_pair(text: str, separators: str) -> tuple[str, Optional[str]]:
    parts = re.split(f'[{separators}]', text)
    return parts[0], (parts[1] if len(parts) > 1 else None)

def parse_algorithm_parameters(text: Optional[str]) -> dict[str, Optional[str]]:
    """Parses a `;`-separated list of `key:value` pairs (header tag form)."""
    if not text:
        return {}
    return dict(_split_pair(item, ':') for item in text.split(';') if item)

def parse_cel_parameters(text: str) -> dict[str, Optional[str]]:
    """
    Parses the v4 CEL algorithm-parameter blob: entries separated by `;` or
    whitespace, each `key:value` or `key=value`.
    """
    items = (item for item in re.split(r'[;\s]+', text) if item)
    return dict(_split_pair(item, ':=') for item in items)

def parse_whitespace_parameters(text: str) -> dict[str, Optional[str]]:
    """Parses whitespace-separated `name=value` pairs (legacy CHP form)."""
    items = (item for item in text.split() if item)
    return dict(_split_pair(item, '=') for item in items)

def parse_legacy_statistics(text: str) -> dict[str, Optional[str]]:
    """
    Parses legacy CHP statistics: whitespace-separated `prefix=valuestring`,
    where valuestring is a comma list of `value` or `name:value` entries.

    >>> parse_legacy_statistics('Background=avg:52.4,stdev:1.3 Noise=2.1')
    {'Background avg': '52.4', 'Background stdev': '1.3', 'Noise': '2.1'}
    """
    stats: dict[str, Optional[str]] = {}
    for statlist in text.split():
        prefix, _, valuestring = statlist.partition('=')
        for stat in valuestring.split(','):
            name, sep, value = stat.rpartition(':')
            if not sep:
                value = stat
            stats[f'{prefix} {name}' if name else prefix] = value
    return stats

def split_statistic(name: str, value: str) -> dict[str, Optional[str]]:
    """
    Expands a summary statistic whose value holds comma-separated
    `subname:value` entries into `"name subname"` keys.
    """
    if ',' not in value:
        return {name: value}
    stats: dict[str, Optional[str]] = {}
    for substat in value.split(','):
        subname, subvalue = _split_pair(substat, ':')
        stats[f'{name} {subname}'] = subvalue
    return stats

def strip_values(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Builds a dict from name/value pairs, trimming stray whitespace from values."""
    return {name: value.strip() for name, value in pairs}
