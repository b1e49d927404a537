"""
Series Normalizer
=================

Finds a sensor's history inside an EcoWitt payload and turns it into a plain,
time-sorted list of (time, value) points.

WHY THIS EXISTS:
---------------
EcoWitt doesn't have ONE history format. Depending on firmware, which sensors
are plugged in, and what call_back/unit parameters we sent, temperature might
show up as any of:

    {"temperature": {"data": {...}}}                          (our processed format)
    {"indoor": {"indoor": {"temperature": {"list": {...}}}}}  (nested legacy)
    {"indoor": {"list": {"temperature": {"list": {...}}}}}
    {"temp1c": {"list": {...}}}  or  {"tempf": {...}}         (flat legacy)

...and a sensor that isn't installed is simply missing, never null.

HOW IT WORKS:
------------
1. CANDIDATE_PATHS lists, per sensor kind, every place the series might live,
   newest format first.
2. We walk the list and stop at the FIRST candidate that holds a non-empty
   {epoch_seconds: value} mapping. No merging, no "best" match.
3. Soil moisture also scans every soil_ch<N> channel (the channel number is
   whatever the user plugged the probe into) and reports how many had data.
4. The mapping becomes [{time: seconds * 1000, value: float}] sorted by time.
   Entries that aren't numbers get skipped and logged.
5. Nothing found? You get an empty series back. A missing sensor is normal.

Everything here is a pure function of its input: same payload in, same
series out.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from agritech.models import (
    HistoricalSeries,
    NormalizedSeries,
    SensorKind,
    SeriesPoint,
    SeriesStats,
)

logger = logging.getLogger(__name__)


# Returned by safe_navigate when a path doesn't exist
MISSING = object()


def safe_navigate(payload: Any, path: Sequence[str]) -> Any:
    """
    Follow a key path through nested dicts without ever raising.

    Args:
        payload: Parsed JSON (dicts all the way down, hopefully)
        path: Keys to follow, e.g. ("indoor", "temperature", "list")

    Returns:
        The value at the end of the path, or MISSING if any step isn't there
    """
    node = payload
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return MISSING
        node = node[key]
    return node


def _is_epoch_key(key: Any) -> bool:
    text = str(key).strip()
    return text.isascii() and text.isdigit()


def _is_time_mapping(node: Any) -> bool:
    """A non-empty dict keyed by epoch seconds (at least one key has to look like one)."""
    return isinstance(node, Mapping) and len(node) > 0 and any(_is_epoch_key(k) for k in node)


def _parse_value(raw: Any) -> Optional[float]:
    """Numeric string/number -> float. Anything else (incl. NaN/inf) -> None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


# =============================================================================
# CANDIDATE PATH TABLE
# =============================================================================

@dataclass(frozen=True)
class SeriesMatch:
    """What a candidate found: the raw mapping plus where it came from."""
    source: str
    mapping: Mapping[str, Any]
    unit: Optional[str] = None
    channel_count: int = 1


@dataclass(frozen=True)
class CandidatePath:
    """One fixed place a series might live, e.g. indoor.list.temperature.list"""
    path: tuple

    @property
    def label(self) -> str:
        return ".".join(self.path)

    def find(self, payload: Any) -> Optional[SeriesMatch]:
        node = safe_navigate(payload, self.path)
        if not _is_time_mapping(node):
            return None
        unit = safe_navigate(payload, self.path[:-1] + ("unit",)) if len(self.path) > 1 else MISSING
        return SeriesMatch(
            source=self.label,
            mapping=node,
            unit=unit if isinstance(unit, str) else None,
        )


SOIL_CHANNEL_KEY = re.compile(r"^soil_ch(\d+)$")


@dataclass(frozen=True)
class SoilChannelScan:
    """
    Scan every soil_ch<N> key in numeric order.

    The first channel with a populated series is the primary one. The match
    also carries how many channels had data in total.
    """
    sub_paths: tuple = (
        ("list", "soilmoisture", "list"),
        ("soilmoisture", "list"),
        ("list", "soilmoisture"),
    )

    @property
    def label(self) -> str:
        return "soil_ch<N>"

    def _channel_match(self, channel_key: str, channel: Any) -> Optional[SeriesMatch]:
        for sub_path in self.sub_paths:
            match = CandidatePath((channel_key,) + sub_path).find({channel_key: channel})
            if match:
                return match
        return None

    def find(self, payload: Any) -> Optional[SeriesMatch]:
        if not isinstance(payload, Mapping):
            return None

        channels = []
        for key in payload:
            found = SOIL_CHANNEL_KEY.match(str(key))
            if found:
                channels.append((int(found.group(1)), key))
        channels.sort()

        matches = []
        for _, key in channels:
            match = self._channel_match(key, payload[key])
            if match:
                matches.append(match)

        if not matches:
            return None

        primary = matches[0]
        return SeriesMatch(
            source=primary.source,
            mapping=primary.mapping,
            unit=primary.unit,
            channel_count=len(matches),
        )


def _paths(*dotted: str) -> tuple:
    return tuple(CandidatePath(tuple(d.split("."))) for d in dotted)


# Most-specific/newest format first. First non-empty hit wins.
CANDIDATE_PATHS = {
    SensorKind.TEMPERATURE: _paths(
        "temperature.data",
        "indoor.indoor.temperature.list",
        "indoor.list.indoor.temperature.list",
        "indoor.list.temperature.list",
        "indoor.temperature.list",
        "outdoor.temperature.list",
        "temp1c.list",
        "temp1c",
        "tempf.list",
        "tempf",
    ),
    SensorKind.HUMIDITY: _paths(
        "humidity.data",
        "indoor.indoor.humidity.list",
        "indoor.list.indoor.humidity.list",
        "indoor.list.humidity.list",
        "indoor.humidity.list",
        "outdoor.humidity.list",
        "humidity1.list",
        "humidity1",
        "humidity.list",
        "humidity",
    ),
    SensorKind.PRESSURE: _paths(
        "pressure.data",
        "pressure.pressure.relative.list",
        "pressure.pressure.absolute.list",
        "pressure.list.pressure.relative.list",
        "pressure.list.pressure.absolute.list",
        "pressure.list.relative.list",
        "pressure.list.absolute.list",
        "pressure.relative.list",
        "pressure.absolute.list",
        "baromrelin.list",
        "baromrelin",
        "baromabsin.list",
        "baromabsin",
    ),
    SensorKind.SOIL_MOISTURE: _paths(
        "soilMoisture.data",
        "soilMoisture.primary.data",
    ) + (SoilChannelScan(),) + _paths(
        "soilmoisture1.list",
        "soilmoisture1",
    ),
}


# =============================================================================
# EXTRACTION
# =============================================================================

def _unwrap(payload: Any) -> Any:
    """Accept either the whole vendor response or just its `data` part."""
    if isinstance(payload, Mapping) and "code" in payload and isinstance(payload.get("data"), Mapping):
        return payload["data"]
    return payload


def find_series(payload: Any, kind: SensorKind) -> Optional[SeriesMatch]:
    """Walk the candidate table for `kind` and return the first hit (or None)."""
    payload = _unwrap(payload)
    for candidate in CANDIDATE_PATHS[SensorKind(kind)]:
        match = candidate.find(payload)
        if match:
            return match
    return None


def to_points(mapping: Mapping[str, Any], label: str = "series") -> tuple:
    """
    Convert {epoch_seconds: value} into time-sorted SeriesPoints.

    Returns:
        (points, skipped_count)
    """
    points = []
    skipped = 0

    for raw_time, raw_value in mapping.items():
        if not _is_epoch_key(raw_time):
            skipped += 1
            continue
        value = _parse_value(raw_value)
        if value is None:
            skipped += 1
            continue
        points.append(SeriesPoint(time=int(str(raw_time).strip()) * 1000, value=value))

    if skipped:
        logger.warning(f"[Normalizer] Skipped {skipped} malformed entries in {label}")

    points.sort(key=lambda point: point.time)
    return points, skipped


def _point_value(point: Union[SeriesPoint, Mapping[str, Any]]) -> float:
    if isinstance(point, Mapping):
        return float(point["value"])
    return point.value


def compute_stats(points: Iterable[Union[SeriesPoint, Mapping[str, Any]]]) -> SeriesStats:
    """
    min/max/avg over a series.

    An empty series gives {0, 0, 0}. Check NormalizedSeries.has_data to tell
    that apart from real zeros.
    """
    values = [_point_value(point) for point in points]
    if not values:
        return SeriesStats(min=0.0, max=0.0, avg=0.0)
    return SeriesStats(min=min(values), max=max(values), avg=sum(values) / len(values))


def extract_series(payload: Any, kind: SensorKind) -> NormalizedSeries:
    """
    Pull one sensor's normalized series out of a history payload.

    Never raises on odd payloads - a sensor we can't find comes back as an
    empty series with has_data=False.

    Args:
        payload: EcoWitt history `data` object (or the whole response)
        kind: Which sensor to look for

    Returns:
        NormalizedSeries with points sorted by time (epoch ms)
    """
    kind = SensorKind(kind)
    match = find_series(payload, kind)

    if match is None:
        logger.debug(f"[Normalizer] No {kind.value} series in payload")
        return NormalizedSeries(kind=kind)

    points, skipped = to_points(match.mapping, label=f"{kind.value} ({match.source})")
    return NormalizedSeries(
        kind=kind,
        source=match.source,
        points=points,
        stats=compute_stats(points),
        has_data=bool(points),
        channel_count=match.channel_count if points else 0,
        skipped_entries=skipped,
        unit=match.unit,
    )


def extract_all(payload: Any) -> HistoricalSeries:
    """Run extract_series for all four sensor kinds."""
    return HistoricalSeries(
        temperature=extract_series(payload, SensorKind.TEMPERATURE),
        humidity=extract_series(payload, SensorKind.HUMIDITY),
        pressure=extract_series(payload, SensorKind.PRESSURE),
        soil_moisture=extract_series(payload, SensorKind.SOIL_MOISTURE),
    )
