# solarsystem.py
import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple, List, Dict, Optional, Iterator, Union

import numpy as np

from config import config, ConfigurationError
from physics_utils import PhysicsError, normalize_angle

ORIGIN = np.zeros(3, dtype=np.float64)


def ensure_utc(date: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare against the J2000 epoch."""
    if date.tzinfo is None:
        return date.replace(tzinfo=timezone.utc)
    return date


def days_since_j2000(date: datetime) -> float:
    """Elapsed days (fractional) between the J2000 epoch and *date*."""
    return (ensure_utc(date) - config.Time.J2000_EPOCH).total_seconds() / 86400.0


@dataclass(frozen=True)
class OrbitalElements:
    """Keplerian elements at the J2000 epoch. Angles in degrees, `a` in AU."""
    a: float  # Semi-major axis
    e: float  # Eccentricity
    i: float  # Inclination
    N: float  # Longitude of ascending node
    w: float  # Argument of perihelion
    M: float  # Mean anomaly at epoch

    @classmethod
    def from_sequence(cls, values) -> 'OrbitalElements':
        a, e, i, N, w, M = (float(v) for v in values)
        return cls(a=a, e=e, i=i, N=N, w=w, M=M)

    @property
    def period_days(self) -> float:
        """Orbital period around a Sun-mass primary (365.25 * a^1.5 days)."""
        return config.Kepler.DAYS_PER_YEAR * self.a ** 1.5


@dataclass(frozen=True)
class CelestialBody:
    id: str
    name: str
    elements: OrbitalElements
    category: str  # star / planet / dwarf / comet / satellite
    mass_ratio: Optional[float] = None  # Mass relative to the Sun
    parent_id: Optional[str] = None  # None for the Sun and heliocentric bodies


@dataclass(frozen=True)
class Ring:
    id: str
    name: str
    parent_id: str
    inner_radius_au: float
    outer_radius_au: float
    tilt_deg: float = 0.0
    category: str = 'ring'


CatalogNode = Union[CelestialBody, Ring]


def solve_kepler(mean_anomaly_rad: float, e: float,
                 max_iterations: Optional[int] = None,
                 tolerance: Optional[float] = None) -> Tuple[float, int, bool]:
    """
    Solves Kepler's Equation M = E - e * sin(E) for eccentric anomaly E using Newton-Raphson.

    The iteration starts at E0 = M and stops once |dE| drops below *tolerance*.
    Hitting the iteration cap is not an error: the last estimate is returned
    with `converged` set to False.

    Args:
        mean_anomaly_rad: Mean anomaly in radians.
        e: Eccentricity (0 <= e < 1).
        max_iterations: Iteration cap (defaults to config.Kepler.MAX_ITERATIONS).
        tolerance: Convergence threshold on |dE| (defaults to config.Kepler.TOLERANCE).

    Returns:
        (E, iterations_used, converged)
    """
    if max_iterations is None:
        max_iterations = config.Kepler.MAX_ITERATIONS
    if tolerance is None:
        tolerance = config.Kepler.TOLERANCE

    E_rad = mean_anomaly_rad
    for iteration in range(1, max_iterations + 1):
        f_E = E_rad - e * math.sin(E_rad) - mean_anomaly_rad
        f_prime_E = 1.0 - e * math.cos(E_rad)
        delta_E = f_E / f_prime_E  # f' >= 1 - e > 0 for elliptical orbits
        E_rad -= delta_E
        if abs(delta_E) < tolerance:
            return E_rad, iteration, True

    if config.Debug.KEPLER_SOLVER:
        logging.debug(f"Kepler solver did not converge after {max_iterations} iterations for "
                      f"M={mean_anomaly_rad}, e={e}. Using last E={E_rad}.")
    return E_rad, max_iterations, False


class OrbitalMechanics:
    """Restricted two-body position model.

    Every body follows its own Kepler ellipse around the Sun (or around its
    parent, for satellites); there is no interaction between bodies. An
    optional high-precision ephemeris can be attached; it is consulted first
    when a caller asks for high precision and the engine falls back to the
    Kepler solution for any id the ephemeris cannot resolve.
    """

    def __init__(self, ephemeris=None, max_iterations: Optional[int] = None, tolerance: Optional[float] = None):
        self.ephemeris = ephemeris
        self.max_iterations = max_iterations if max_iterations is not None else config.Kepler.MAX_ITERATIONS
        self.tolerance = tolerance if tolerance is not None else config.Kepler.TOLERANCE

    def solve_kepler_equation(self, mean_anomaly_rad: float, e: float) -> float:
        """Eccentric anomaly in radians, using this instance's iteration cap and tolerance."""
        E_rad, _, _ = solve_kepler(mean_anomaly_rad, e, self.max_iterations, self.tolerance)
        return E_rad

    def mean_anomaly_at(self, elements: OrbitalElements, date: datetime, mass_multiplier: float = 1.0) -> float:
        """Mean anomaly in degrees at *date*, normalized into [0, 360)."""
        mean_motion = config.Kepler.MEAN_MOTION_DEG_PER_DAY * mass_multiplier / elements.a ** 1.5
        return normalize_angle(elements.M + mean_motion * days_since_j2000(date))

    def calculate_kepler_position(self, elements: OrbitalElements, date: datetime,
                                  mass_multiplier: float = 1.0) -> np.ndarray:
        """
        Position of a body on its Kepler orbit at *date*, relative to its primary.

        Args:
            elements: J2000 orbital elements.
            date: Evaluation time.
            mass_multiplier: Scales the Sun-calibrated mean motion for primaries of
                             other masses (sqrt of the primary's mass relative to the Sun).

        Returns:
            np.ndarray: [x, y, z] in AU, ecliptic frame.
        """
        if elements.a <= 0.0:
            return ORIGIN.copy()

        # 1. Mean anomaly at the requested date
        M_deg = self.mean_anomaly_at(elements, date, mass_multiplier)

        # 2. Eccentric anomaly
        e = elements.e
        E_rad = self.solve_kepler_equation(math.radians(M_deg), e)

        # 3. Perifocal coordinates, then true anomaly and radius
        xv = elements.a * (math.cos(E_rad) - e)
        yv = elements.a * (math.sqrt(1.0 - e * e) * math.sin(E_rad))
        v = math.atan2(yv, xv)
        r = math.hypot(xv, yv)

        # 4. Rotate through w, i and N into the ecliptic frame
        i = math.radians(elements.i)
        N = math.radians(elements.N)
        u = v + math.radians(elements.w)

        x = r * (math.cos(N) * math.cos(u) - math.sin(N) * math.sin(u) * math.cos(i))
        y = r * (math.sin(N) * math.cos(u) + math.cos(N) * math.sin(u) * math.cos(i))
        z = r * (math.sin(u) * math.sin(i))
        return np.array([x, y, z], dtype=np.float64)

    def _high_precision_position(self, body_id: Optional[str], date: datetime) -> Optional[np.ndarray]:
        if self.ephemeris is None or body_id is None:
            return None
        return self.ephemeris.position(body_id, date)

    def calculate_body_position(self, body_id: str, elements: OrbitalElements, date: datetime,
                                use_high_precision: bool = False) -> np.ndarray:
        """Heliocentric position of a Sun-orbiting body. The star sits at the origin."""
        if body_id == config.Projection.STAR_ID:
            return ORIGIN.copy()
        if use_high_precision:
            precise = self._high_precision_position(body_id, date)
            if precise is not None:
                return precise
        return self.calculate_kepler_position(elements, date)

    def calculate_satellite_position(self, elements: OrbitalElements, parent_position: np.ndarray,
                                     date: datetime, mass_multiplier: float = 1.0,
                                     body_id: Optional[str] = None,
                                     use_high_precision: bool = False) -> np.ndarray:
        """Heliocentric position of a satellite: parent position plus its parent-relative orbit."""
        if use_high_precision:
            precise = self._high_precision_position(body_id, date)
            if precise is not None:
                return precise
        return parent_position + self.calculate_kepler_position(elements, date, mass_multiplier)

    def calculate_orbit_path(self, elements: OrbitalElements, steps: Optional[int] = None) -> np.ndarray:
        """
        Geometric ellipse sampled uniformly in eccentric anomaly.

        The perifocal basis vectors P and Q are derived once from (w, i, N), so the
        points are evenly spread along the shape instead of bunching at aphelion
        the way time sampling does.

        Returns:
            np.ndarray: (steps + 1, 3) array; the last point repeats the first.
        """
        if steps is None:
            steps = config.Kepler.GEOMETRIC_PATH_STEPS
        a, e = elements.a, elements.e
        b = a * math.sqrt(1.0 - e * e)

        cos_N, sin_N = math.cos(math.radians(elements.N)), math.sin(math.radians(elements.N))
        cos_i, sin_i = math.cos(math.radians(elements.i)), math.sin(math.radians(elements.i))
        cos_w, sin_w = math.cos(math.radians(elements.w)), math.sin(math.radians(elements.w))

        P = np.array([cos_N * cos_w - sin_N * sin_w * cos_i,
                      sin_N * cos_w + cos_N * sin_w * cos_i,
                      sin_w * sin_i])
        Q = np.array([-cos_N * sin_w - sin_N * cos_w * cos_i,
                      -sin_N * sin_w + cos_N * cos_w * cos_i,
                      cos_w * sin_i])

        E = np.linspace(0.0, 2.0 * math.pi, steps + 1)
        x_orb = a * (np.cos(E) - e)
        y_orb = b * np.sin(E)
        return np.outer(x_orb, P) + np.outer(y_orb, Q)

    def calculate_timed_orbit_path(self, elements: OrbitalElements, start_date: datetime,
                                   steps: Optional[int] = None, mass_multiplier: float = 1.0) -> np.ndarray:
        """
        One full orbital period (365.25 * a^1.5 days) sampled uniformly in time through the solver.

        Returns:
            np.ndarray: (steps + 1, 3) array of positions starting at *start_date*.
        """
        if steps is None:
            steps = config.Kepler.TIMED_PATH_STEPS
        if elements.a <= 0.0:
            return np.zeros((steps + 1, 3))
        period_days = elements.period_days
        if mass_multiplier > 0:
            period_days /= mass_multiplier
        step_days = period_days / steps
        return np.array([
            self.calculate_kepler_position(elements, start_date + timedelta(days=k * step_days), mass_multiplier)
            for k in range(steps + 1)
        ])


class BodyCatalog:
    """Read-only arena of catalog nodes keyed by stable id.

    Satellite and ring trees are stored flat: each node records its parent id
    and the catalog keeps a parent -> children index. Traversals use an explicit
    work list, never recursion.
    """

    def __init__(self, nodes: List[CatalogNode]):
        self._nodes: Dict[str, CatalogNode] = {}
        self._children: Dict[str, List[str]] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise ConfigurationError(f"Duplicate body id '{node.id}' in catalog.")
            self._nodes[node.id] = node
        for node in nodes:
            if node.parent_id is None:
                continue
            if node.parent_id not in self._nodes:
                raise ConfigurationError(f"Parent '{node.parent_id}' for '{node.id}' not found in catalog.")
            self._children.setdefault(node.parent_id, []).append(node.id)
        self._check_acyclic()

    @classmethod
    def from_config(cls, body_data: Optional[Dict[str, Dict]] = None) -> 'BodyCatalog':
        """Build a catalog from `config.SolarSystem.BODY_DATA` (or an equivalent mapping)."""
        if body_data is None:
            body_data = config.SolarSystem.BODY_DATA
        nodes: List[CatalogNode] = []
        for body_id, data in body_data.items():
            elements = OrbitalElements.from_sequence(data['elements'])
            if data['category'] == 'ring':
                nodes.append(Ring(
                    id=body_id,
                    name=data.get('name', body_id),
                    parent_id=data['parent'],
                    inner_radius_au=float(data.get('inner_radius_au', 0.0)),
                    outer_radius_au=float(data.get('outer_radius_au', 0.0)),
                    tilt_deg=elements.i,
                ))
                continue
            if elements.a < 0 or not (0.0 <= elements.e < 1.0):
                raise PhysicsError(f"Malformed orbital elements for '{body_id}': a={elements.a}, e={elements.e}.")
            nodes.append(CelestialBody(
                id=body_id,
                name=data.get('name', body_id),
                elements=elements,
                category=data['category'],
                mass_ratio=data.get('mass_ratio'),
                parent_id=data.get('parent'),
            ))
        catalog = cls(nodes)
        logging.info(f"Body catalog built with {len(catalog)} entries.")
        return catalog

    def _check_acyclic(self):
        for node_id in self._nodes:
            seen = {node_id}
            parent_id = self._nodes[node_id].parent_id
            while parent_id is not None:
                if parent_id in seen:
                    raise ConfigurationError(f"Parent chain of '{node_id}' contains a cycle.")
                seen.add(parent_id)
                parent_id = self._nodes[parent_id].parent_id

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, body_id: str) -> bool:
        return body_id in self._nodes

    def ids(self) -> List[str]:
        return list(self._nodes)

    def get(self, body_id: str) -> CatalogNode:
        try:
            return self._nodes[body_id]
        except KeyError:
            raise PhysicsError(f"Unknown body id '{body_id}'.") from None

    def children_of(self, body_id: str) -> List[CatalogNode]:
        return [self._nodes[child_id] for child_id in self._children.get(body_id, [])]

    def roots(self) -> List[CatalogNode]:
        return [node for node in self._nodes.values() if node.parent_id is None]

    def iter_subtree(self, root_id: str) -> Iterator[CatalogNode]:
        """Depth-first walk of *root_id* and its descendants using an explicit stack."""
        stack = [root_id]
        while stack:
            node_id = stack.pop()
            yield self._nodes[node_id]
            stack.extend(reversed(self._children.get(node_id, [])))

    def mass_multiplier_for(self, body_id: str) -> float:
        """
        Mean-motion multiplier of a body around its primary.

        1.0 for Sun-orbiting bodies; sqrt(parent mass / Sun mass) for satellites.
        A parent without a known mass yields 0.0, which freezes the satellite at
        its epoch anomaly.
        """
        node = self.get(body_id)
        if node.parent_id is None:
            return 1.0
        parent = self._nodes[node.parent_id]
        mass_ratio = getattr(parent, 'mass_ratio', None)
        return math.sqrt(mass_ratio) if mass_ratio else 0.0

    def heliocentric_position(self, body_id: str, date: datetime, mechanics: OrbitalMechanics,
                              use_high_precision: bool = False) -> np.ndarray:
        """
        Heliocentric ecliptic position of any catalog node.

        Satellites are placed relative to their parent's heliocentric position;
        rings sit on their parent. Unknown ids resolve to the origin.
        """
        node = self._nodes.get(body_id)
        if node is None:
            return ORIGIN.copy()

        # Collect the chain from the node up to its heliocentric ancestor
        chain = []
        while node is not None:
            chain.append(node)
            node = self._nodes.get(node.parent_id) if node.parent_id is not None else None

        root = chain[-1]
        if isinstance(root, Ring):
            position = ORIGIN.copy()
        else:
            position = mechanics.calculate_body_position(root.id, root.elements, date, use_high_precision)
        for child in reversed(chain[:-1]):
            if isinstance(child, Ring):
                continue
            position = mechanics.calculate_satellite_position(
                child.elements, position, date,
                mass_multiplier=self.mass_multiplier_for(child.id),
                body_id=child.id,
                use_high_precision=use_high_precision,
            )
        return position

    def positions_at(self, date: datetime, mechanics: OrbitalMechanics,
                     use_high_precision: bool = False) -> Dict[str, np.ndarray]:
        """Heliocentric positions of every node, parents computed once and reused by their children."""
        positions: Dict[str, np.ndarray] = {}
        for root in self.roots():
            for node in self.iter_subtree(root.id):
                if node.parent_id is None:
                    if isinstance(node, Ring):
                        positions[node.id] = ORIGIN.copy()
                    else:
                        positions[node.id] = mechanics.calculate_body_position(
                            node.id, node.elements, date, use_high_precision)
                elif isinstance(node, Ring):
                    positions[node.id] = positions[node.parent_id].copy()
                else:
                    positions[node.id] = mechanics.calculate_satellite_position(
                        node.elements, positions[node.parent_id], date,
                        mass_multiplier=self.mass_multiplier_for(node.id),
                        body_id=node.id,
                        use_high_precision=use_high_precision,
                    )
        return positions
