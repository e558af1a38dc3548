import logging
from datetime import datetime, timedelta
from typing import Optional

from skyfield.api import EarthSatellite, Loader, wgs84

from common.configuration import Configuration
from observations.constants import DEFAULT_MIN_ELEVATION, PASS_SEARCH_HOURS
from observations.models import ObserverLocation, PassWindow, SatelliteDescriptor

logger = logging.getLogger("passes-worker")

# skyfield event codes returned by find_events
EVENT_RISE = 0
EVENT_CULMINATE = 1
EVENT_SET = 2


def observer_from_config(config: Configuration) -> Optional[ObserverLocation]:
    """Ground station location from ``location.lat``/``location.lon``, or None when unset."""
    lat = config.get_float("location.lat")
    lon = config.get_float("location.lon")
    if lat is None or lon is None:
        return None
    return ObserverLocation(lat=lat, lon=lon, alt=config.get_float("location.alt", 0.0) or 0.0)


class SkyfieldPassPredictor:
    """
    Finds the next visible pass of a satellite over the ground station.

    A pass starts when the satellite climbs above ``min_elevation`` and ends
    when it drops below it again. Passes already in progress at ``after`` are
    ignored so that a capture never starts mid-pass.
    """

    def __init__(
        self,
        min_elevation: float = DEFAULT_MIN_ELEVATION,
        horizon_hours: float = PASS_SEARCH_HOURS,
        data_dir: str = "/tmp/skyfield-data",
    ):
        self.min_elevation = min_elevation
        self.horizon_hours = horizon_hours
        # set a temporary folder for the skyfield library to do its thing
        self.ts = Loader(data_dir).timescale()

    def next_pass(
        self,
        satellite: SatelliteDescriptor,
        observer: Optional[ObserverLocation],
        after: datetime,
    ) -> Optional[PassWindow]:
        if observer is None:
            logger.info("Ground station location is not configured, no passes predicted")
            return None

        if not satellite.tle or len(satellite.tle) != 2:
            logger.warning(f"Satellite {satellite.id} has no TLE, skipping pass prediction")
            return None

        line1, line2 = satellite.tle
        try:
            earth_satellite = EarthSatellite(line1, line2, satellite.name or satellite.id, self.ts)
        except ValueError as e:
            logger.error(f"Invalid TLE for satellite {satellite.id}: {e}")
            return None

        topos = wgs84.latlon(observer.lat, observer.lon, elevation_m=observer.alt)
        t0 = self.ts.from_datetime(after)
        t1 = self.ts.from_datetime(after + timedelta(hours=self.horizon_hours))

        times, events = earth_satellite.find_events(
            topos, t0, t1, altitude_degrees=self.min_elevation
        )

        difference = earth_satellite - topos
        rise = None
        max_elevation = None
        for t, event in zip(times, events):
            if event == EVENT_RISE:
                rise = t
                max_elevation = None
            elif event == EVENT_CULMINATE and rise is not None:
                alt, _, _ = difference.at(t).altaz()
                if max_elevation is None or alt.degrees > max_elevation:
                    max_elevation = float(alt.degrees)
            elif event == EVENT_SET and rise is not None:
                window = PassWindow(
                    start=rise.utc_datetime(),
                    end=t.utc_datetime(),
                    max_elevation=max_elevation,
                )
                logger.debug(
                    f"Next pass of {satellite.id}: {window.start.isoformat()} - "
                    f"{window.end.isoformat()}, max elevation {max_elevation}"
                )
                return window

        return None
