# ephemeris.py
import math
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
from skyfield.api import Loader

from config import config
from solarsystem import ensure_utc


def equatorial_to_ecliptic(vector: np.ndarray, obliquity_deg: Optional[float] = None) -> np.ndarray:
    """Rotate an equatorial (ICRF) vector about the x axis into the ecliptic frame."""
    if obliquity_deg is None:
        obliquity_deg = config.Ephemeris.OBLIQUITY_DEG
    eps = math.radians(obliquity_deg)
    cos_eps, sin_eps = math.cos(eps), math.sin(eps)
    x, y, z = float(vector[0]), float(vector[1]), float(vector[2])
    return np.array([x, y * cos_eps + z * sin_eps, -y * sin_eps + z * cos_eps], dtype=np.float64)


class SkyfieldEphemeris:
    """High-precision heliocentric positions from a JPL kernel through skyfield.

    Same contract as the Kepler solver: heliocentric ecliptic coordinates in AU.
    `position` returns None when a body id has no kernel target or the date is
    outside the kernel's coverage, which makes `OrbitalMechanics` fall back to
    its Kepler solution.

    Attributes:
        kernel: A loaded skyfield `SpiceKernel` (anything indexable by target name).
        timescale: A skyfield `Timescale`.
        targets (Dict[str, str]): Body id -> kernel target name.
    """

    def __init__(self, kernel, timescale, targets: Optional[Dict[str, str]] = None):
        self.kernel = kernel
        self.timescale = timescale
        self.targets = dict(targets if targets is not None else config.Ephemeris.TARGETS)
        self._sun = kernel['sun']

    def supports(self, body_id: str) -> bool:
        return body_id in self.targets

    def position(self, body_id: str, date: datetime) -> Optional[np.ndarray]:
        target_name = self.targets.get(body_id)
        if target_name is None:
            return None
        try:
            target = self.kernel[target_name]
            t = self.timescale.from_datetime(ensure_utc(date))
            equatorial = (target - self._sun).at(t).position.au
        except (KeyError, ValueError) as e:
            # ValueError covers skyfield's EphemerisRangeError
            logging.debug(f"High-precision position unavailable for '{body_id}' at {date}: {e}")
            return None
        return equatorial_to_ecliptic(equatorial)


def load_ephemeris(directory: Union[str, Path] = '.', kernel_name: Optional[str] = None) -> SkyfieldEphemeris:
    """Load (downloading on first use) a JPL kernel with skyfield's Loader."""
    if kernel_name is None:
        kernel_name = config.Ephemeris.DEFAULT_KERNEL
    loader = Loader(str(directory))
    kernel = loader(kernel_name)
    timescale = loader.timescale()
    logging.info(f"Loaded ephemeris kernel '{kernel_name}' from {directory}.")
    return SkyfieldEphemeris(kernel, timescale)
