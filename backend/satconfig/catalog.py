#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Satellite Catalog
#
# Loads the satellites the station observes from a YAML file:
#
#   satellites:
#     - id: "40069"
#       name: METEOR-M 2
#       frequency: 137900000
#       mode: lrpt
#       enabled: true
#       tle:
#         - "1 40069U ..."
#         - "2 40069 ..."
#       params:
#         gain: 45
#
# Entries with an unknown decoder mode or missing fields are skipped.

import logging
import pathlib
from typing import Any, Dict, List, Optional

import yaml

from decoders.registry import DecoderRegistry, decoder_registry
from observations.models import SatelliteDescriptor

logger = logging.getLogger("satellite-config")


def parse_satellite(entry: Dict[str, Any], registry: DecoderRegistry) -> Optional[SatelliteDescriptor]:
    """Build a descriptor from one catalog entry, or None if the entry is unusable."""
    if not isinstance(entry, dict):
        logger.warning(f"Ignoring malformed catalog entry: {entry!r}")
        return None

    sat_id = entry.get("id")
    frequency = entry.get("frequency")
    mode = entry.get("mode")
    if sat_id is None or frequency is None or mode is None:
        logger.warning(f"Catalog entry {entry!r} needs id, frequency and mode")
        return None

    if not registry.exists(str(mode)):
        logger.warning(f"Satellite {sat_id} uses unsupported decoder mode '{mode}', skipping")
        return None

    tle = entry.get("tle")
    if tle is not None:
        tle = tuple(str(line).strip() for line in tle)

    try:
        frequency = int(frequency)
    except (TypeError, ValueError):
        logger.warning(f"Satellite {sat_id} has invalid frequency {frequency!r}, skipping")
        return None

    return SatelliteDescriptor(
        id=str(sat_id),
        frequency=frequency,
        mode=str(mode),
        name=str(entry.get("name", "")),
        enabled=bool(entry.get("enabled", True)),
        tle=tle,
        params=dict(entry.get("params") or {}),
    )


def load_catalog(path: str, registry: Optional[DecoderRegistry] = None) -> List[SatelliteDescriptor]:
    """Load every usable satellite from the catalog file. A missing file yields no satellites."""
    registry = registry or decoder_registry
    catalog_path = pathlib.Path(path)
    if not catalog_path.exists():
        logger.warning(f"Satellite catalog {catalog_path} not found")
        return []

    with open(catalog_path, "r") as f:
        data = yaml.safe_load(f) or {}

    satellites = []
    seen = set()
    for entry in data.get("satellites", []) or []:
        satellite = parse_satellite(entry, registry)
        if satellite is None:
            continue
        if satellite.id in seen:
            logger.warning(f"Duplicate catalog entry for satellite {satellite.id}, keeping the first")
            continue
        seen.add(satellite.id)
        satellites.append(satellite)

    logger.info(f"Loaded {len(satellites)} satellites from {catalog_path}")
    return satellites
