# events.py
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from config import config
from physics_utils import angle_between_vectors, angular_span, ecliptic_longitude
from solarsystem import BodyCatalog, OrbitalMechanics, ORIGIN

ONE_DAY = timedelta(days=1)


class EventType(Enum):
    TRANSIT = 'TRANSIT'
    PLANETARY_ALIGNMENT = 'PLANETARY_ALIGNMENT'


@dataclass(frozen=True)
class SearchConfig:
    """Value snapshot of the search parameters, taken when a search starts.

    Later edits to user settings never reach an in-flight search because the
    scheduler only ever reads this frozen copy.
    """
    event_type: EventType
    target_ids: Tuple[str, ...]
    tolerance_deg: Optional[float] = None  # None picks the per-type default
    solar_angular_radius_deg: float = config.Search.DEFAULT_SUN_ANGULAR_RADIUS_DEG
    strict_mode: bool = False
    use_high_precision: bool = False

    def __post_init__(self):
        if self.tolerance_deg is None:
            default = (config.Search.DEFAULT_TRANSIT_TOLERANCE_DEG if self.event_type is EventType.TRANSIT
                       else config.Search.DEFAULT_ALIGNMENT_TOLERANCE_DEG)
            object.__setattr__(self, 'tolerance_deg', default)

    @property
    def guard_key(self) -> Tuple[str, Tuple[str, ...]]:
        """(type, sorted target ids): identifies "the same event" for the re-find guard."""
        return self.event_type.value, tuple(sorted(self.target_ids))


@dataclass(frozen=True)
class FoundEvent:
    type: EventType
    target_ids: Tuple[str, ...]
    start_date: datetime
    end_date: datetime
    optimal_date: datetime
    min_angle: float
    strict_mode: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date


@dataclass(frozen=True)
class EventWindow:
    start: datetime
    end: datetime
    capped: bool = False  # expansion stopped at the cap rather than at the predicate edge


class EventDetector:
    """Geometric predicates evaluated from the observer (Earth).

    Positions come from a `BodyCatalog` evaluated by an `OrbitalMechanics`
    instance. The predicates hold no state: repeated calls with the same
    arguments give the same answer, and the order of target ids never matters.
    """

    def __init__(self, catalog: BodyCatalog, mechanics: Optional[OrbitalMechanics] = None,
                 observer_id: Optional[str] = None):
        self.catalog = catalog
        self.mechanics = mechanics if mechanics is not None else OrbitalMechanics()
        self.observer_id = observer_id if observer_id is not None else config.Search.OBSERVER_ID

    def position(self, body_id: str, date: datetime, use_high_precision: bool = False) -> np.ndarray:
        if body_id == config.Projection.STAR_ID:
            return ORIGIN.copy()
        return self.catalog.heliocentric_position(body_id, date, self.mechanics, use_high_precision)

    def transit_angle(self, body_id: str, date: datetime, use_high_precision: bool = False) -> Tuple[float, bool]:
        """
        Observer-centred angle (degrees) between the Sun and *body_id*, and
        whether the body is nearer to the observer than the Sun.
        """
        observer = self.position(self.observer_id, date, use_high_precision)
        body = self.position(body_id, date, use_high_precision)
        to_sun = ORIGIN - observer
        to_body = body - observer
        angle = angle_between_vectors(to_sun, to_body)
        body_distance = float(np.linalg.norm(to_body))
        # The observer has no direction to itself, so it never sits in front of the Sun
        nearer = 0.0 < body_distance < float(np.linalg.norm(to_sun))
        return angle, nearer

    def is_transit(self, body_id: str, date: datetime, tolerance_deg: float,
                   use_high_precision: bool = False, strict: bool = False,
                   solar_angular_radius_deg: float = config.Search.DEFAULT_SUN_ANGULAR_RADIUS_DEG) -> bool:
        """
        True when *body_id* sits within the effective tolerance of the Sun's
        direction and in front of it. Strict mode uses the Sun's apparent radius
        as the tolerance, i.e. the body must cross the solar disc.
        """
        angle, nearer = self.transit_angle(body_id, date, use_high_precision)
        effective_tolerance = solar_angular_radius_deg if strict else tolerance_deg
        return angle <= effective_tolerance and nearer

    def longitudes(self, date: datetime, target_ids: Sequence[str], use_high_precision: bool = False) -> List[float]:
        """Observer-relative ecliptic longitudes of the targets, in [0, 360)."""
        observer = self.position(self.observer_id, date, use_high_precision)
        return [
            ecliptic_longitude(self.position(target_id, date, use_high_precision) - observer)
            for target_id in target_ids
        ]

    def check_alignment(self, date: datetime, target_ids: Sequence[str], tolerance_deg: float,
                        use_high_precision: bool = False) -> bool:
        """True when all targets fit within *tolerance_deg* of ecliptic longitude."""
        if len(target_ids) < 2:
            return False
        return angular_span(self.longitudes(date, target_ids, use_high_precision)) <= tolerance_deg

    def holds(self, search: SearchConfig, date: datetime) -> bool:
        """Search predicate: every target transits at once, or the targets are aligned."""
        if search.event_type is EventType.TRANSIT:
            if not search.target_ids:
                return False
            return all(
                self.is_transit(target_id, date, search.tolerance_deg, search.use_high_precision,
                                search.strict_mode, search.solar_angular_radius_deg)
                for target_id in search.target_ids
            )
        return self.check_alignment(date, search.target_ids, search.tolerance_deg, search.use_high_precision)

    def alignment_metric(self, search: SearchConfig, date: datetime) -> float:
        """
        Scalar to minimise inside an event window.

        Transit: the largest Sun-target separation across targets.
        Alignment: the longitude span (360 - largest gap).
        """
        if search.event_type is EventType.TRANSIT:
            max_angle = 0.0
            for target_id in search.target_ids:
                angle, _ = self.transit_angle(target_id, date, search.use_high_precision)
                max_angle = max(max_angle, angle)
            return max_angle
        if len(search.target_ids) < 2:
            return 0.0
        return angular_span(self.longitudes(date, search.target_ids, search.use_high_precision))


def calculate_event_duration(center: datetime, predicate: Callable[[datetime], bool],
                             cap_days: Optional[int] = None, step: timedelta = ONE_DAY) -> EventWindow:
    """
    Expand from a date known to satisfy *predicate* one step at a time in both
    directions while it keeps holding.

    Each side stops *cap_days* away from the center even if the predicate
    still holds beyond; the returned window then has `capped` set.
    """
    if cap_days is None:
        cap_days = config.Search.EXPANSION_CAP_DAYS
    cap = timedelta(days=cap_days)
    capped = False

    start = center
    while predicate(start - step):
        if center - start >= cap:
            capped = True
            break
        start -= step

    end = center
    while predicate(end + step):
        if end - center >= cap:
            capped = True
            break
        end += step

    if capped:
        logging.warning(f"Event window expansion around {center.isoformat()} hit the {cap_days}-day cap.")
    return EventWindow(start=start, end=end, capped=capped)


def find_optimal_event_time(start: datetime, end: datetime, metric: Callable[[datetime], float],
                            coarse_samples: Optional[int] = None,
                            ternary_iterations: Optional[int] = None) -> Tuple[datetime, float]:
    """
    Instant inside [start, end] that minimises *metric*.

    A uniform coarse pass (endpoints included) picks the best sample, then a
    ternary search narrows a bracket of one coarse step on either side of it.
    The best value seen in either phase is kept, so a metric that is not
    unimodal can only make the refinement less useful, never worse than the
    coarse result.

    Returns:
        (best_time, best_metric)
    """
    if coarse_samples is None:
        coarse_samples = config.Search.OPTIMIZER_COARSE_SAMPLES
    if ternary_iterations is None:
        ternary_iterations = config.Search.OPTIMIZER_TERNARY_ITERATIONS

    span = end - start
    step = span / coarse_samples
    best_time = start
    best_value = float('inf')

    for i in range(coarse_samples + 1):
        t = end if i == coarse_samples else start + step * i
        value = metric(t)
        if value < best_value:
            best_value = value
            best_time = t

    left = max(start, best_time - step)
    right = min(end, best_time + step)
    for _ in range(ternary_iterations):
        third = (right - left) / 3
        m1 = left + third
        m2 = right - third
        v1 = metric(m1)
        v2 = metric(m2)
        if v1 < v2:
            right = m2
            if v1 < best_value:
                best_value, best_time = v1, m1
        else:
            left = m1
            if v2 < best_value:
                best_value, best_time = v2, m2

    return best_time, best_value


def refine_event(detector: EventDetector, search: SearchConfig, hit_date: datetime,
                 cap_days: Optional[int] = None) -> Tuple[FoundEvent, EventWindow]:
    """Expand a hit into its window, locate the optimal instant and build the event record."""
    window = calculate_event_duration(hit_date, lambda d: detector.holds(search, d), cap_days)
    optimal, min_angle = find_optimal_event_time(
        window.start, window.end, lambda d: detector.alignment_metric(search, d))
    event = FoundEvent(
        type=search.event_type,
        target_ids=tuple(search.target_ids),
        start_date=window.start,
        end_date=window.end,
        optimal_date=optimal,
        min_angle=min_angle,
        strict_mode=search.strict_mode,
    )
    return event, window
