# search.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from config import config
from events import EventDetector, EventType, FoundEvent, SearchConfig, refine_event
from solarsystem import ensure_utc


class SearchError(Exception):
    """Raised for search requests that cannot be started (bad type, bad targets, search already running)."""
    pass


class SearchStatus(Enum):
    IDLE = 'idle'
    SEARCHING = 'searching'
    CALCULATING = 'calculating'
    PAUSED = 'paused'
    COMPLETED = 'completed'


ACTIVE_STATUSES = (SearchStatus.SEARCHING, SearchStatus.CALCULATING)


@dataclass
class EventGuard:
    """Window of the last find; days inside it are skipped while scanning for the same key."""
    key: Tuple[str, Tuple[str, ...]]
    start: datetime
    end: datetime

    def covers(self, key, date: datetime) -> bool:
        return key == self.key and self.start <= date <= self.end


@dataclass
class SearchState:
    """Everything the scheduler mutates, kept in one object so it can be inspected between ticks."""
    status: SearchStatus = SearchStatus.IDLE
    search: Optional[SearchConfig] = None
    speed: str = config.Search.DEFAULT_SPEED
    continuous: bool = False
    scan_date: Optional[datetime] = None
    search_start: Optional[datetime] = None
    elapsed_sec: float = 0.0
    found_events: List[FoundEvent] = field(default_factory=list)
    guard: Optional[EventGuard] = None
    status_text: str = ''
    highlighted_ids: Optional[List[str]] = None
    paused_from: Optional[SearchStatus] = None
    completed: bool = False
    batches_run: int = 0
    # Result of the last non-continuous find
    result_start: Optional[datetime] = None
    result_end: Optional[datetime] = None
    result_optimal: Optional[datetime] = None
    result_min_angle: Optional[float] = None
    calculation_result: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class TickOutcome:
    """What one search tick or calculation batch did."""
    scan_date: Optional[datetime]
    event: Optional[FoundEvent] = None
    hit_date: Optional[datetime] = None
    finished: bool = False  # the search left the active states during this tick


def format_search_year(year: int) -> str:
    """Astronomical year numbering: year 0 is 1 BC."""
    return f"{1 - year} BC" if year <= 0 else str(year)


def highlighted_ids_for(search: SearchConfig) -> List[str]:
    observer = config.Search.OBSERVER_ID
    if search.event_type is EventType.TRANSIT:
        return [observer, *search.target_ids, config.Projection.STAR_ID]
    return [observer, *search.target_ids]


def build_search_config(event_type: Union[EventType, str], target_ids: Sequence[str],
                        tolerance_deg: Optional[float] = None, strict_mode: bool = False,
                        solar_angular_radius_deg: Optional[float] = None,
                        use_high_precision: bool = False) -> SearchConfig:
    """
    Validate a search request and capture it as an immutable `SearchConfig`.

    *event_type* may be an `EventType` or its name/value ('transit',
    'PLANETARY_ALIGNMENT', 'alignment', ...). A missing tolerance picks the
    per-type default.

    Raises:
        SearchError: Unknown type, transit without targets, alignment with
                     fewer than two targets, the observer among the targets,
                     or a negative tolerance.
    """
    if isinstance(event_type, str):
        key = event_type.strip().upper()
        if key == 'ALIGNMENT':
            key = EventType.PLANETARY_ALIGNMENT.value
        try:
            event_type = EventType(key)
        except ValueError:
            raise SearchError(f"Unknown event type '{event_type}'.") from None
    if not isinstance(event_type, EventType):
        raise SearchError(f"Unknown event type '{event_type}'.")

    targets = tuple(target_ids)
    if event_type is EventType.TRANSIT and not targets:
        raise SearchError("A transit search needs at least one target.")
    if event_type is EventType.PLANETARY_ALIGNMENT and len(targets) < 2:
        raise SearchError("An alignment search needs at least two targets.")
    if config.Search.OBSERVER_ID in targets:
        raise SearchError(f"The observer '{config.Search.OBSERVER_ID}' cannot be a search target.")

    if tolerance_deg is None:
        tolerance_deg = (config.Search.DEFAULT_TRANSIT_TOLERANCE_DEG if event_type is EventType.TRANSIT
                         else config.Search.DEFAULT_ALIGNMENT_TOLERANCE_DEG)
    if tolerance_deg < 0:
        raise SearchError(f"Tolerance must be non-negative, got {tolerance_deg}.")
    if solar_angular_radius_deg is None:
        solar_angular_radius_deg = config.Search.DEFAULT_SUN_ANGULAR_RADIUS_DEG

    return SearchConfig(
        event_type=event_type,
        target_ids=targets,
        tolerance_deg=float(tolerance_deg),
        solar_angular_radius_deg=float(solar_angular_radius_deg),
        strict_mode=bool(strict_mode),
        use_high_precision=bool(use_high_precision),
    )


class EventSearchScheduler:
    """Incremental search state machine.

    Idle -> Searching (a few days per tick, paced by the host's frames) or
    Idle -> Calculating (large fixed batches, self-scheduled by the clock).
    A find either returns to Idle with the result recorded, or, in continuous
    mode, restarts one step past the found window until the event or span
    cap is reached (Completed). Every tick does a bounded amount of work.

    Attributes:
        detector (EventDetector): Predicate and metric provider.
        state (SearchState): Mutable search state; read it between ticks.
        max_events (int): Continuous searches complete after this many finds.
        max_years (float): ... or after covering this many years.
        cap_days (int): Window expansion cap handed to the refinement.
    """

    def __init__(self, detector: EventDetector, max_events: Optional[int] = None,
                 max_years: Optional[float] = None, cap_days: Optional[int] = None,
                 batch_size: Optional[int] = None):
        self.detector = detector
        self.state = SearchState()
        self.max_events = max_events if max_events is not None else config.Search.CONTINUOUS_MAX_EVENTS
        self.max_years = max_years if max_years is not None else config.Search.CONTINUOUS_MAX_YEARS
        self.cap_days = cap_days if cap_days is not None else config.Search.EXPANSION_CAP_DAYS
        self.batch_size = batch_size if batch_size is not None else config.Search.CALCULATION_BATCH_SIZE
        self.step = timedelta(days=config.Search.STEP_DAYS)

    # --- Commands ---
    def start_search(self, search: SearchConfig, start_date: datetime, speed: Optional[str] = None,
                     continuous: bool = False, keep_history: bool = False):
        """Begin an interactive search that advances a few days per tick."""
        if speed is None:
            speed = config.Search.DEFAULT_SPEED
        if speed not in config.Search.SPEED_ITERATIONS:
            raise SearchError(f"Unknown search speed '{speed}'. Expected one of {list(config.Search.SPEED_ITERATIONS)}.")
        self._begin(SearchStatus.SEARCHING, search, start_date, continuous, keep_history, 'Starting search...')
        self.state.speed = speed

    def start_calculation(self, search: SearchConfig, start_date: datetime,
                          continuous: bool = False, keep_history: bool = False):
        """Begin a batch calculation decoupled from the visible date."""
        self._begin(SearchStatus.CALCULATING, search, start_date, continuous, keep_history, 'Calculating...')

    def _begin(self, status: SearchStatus, search: SearchConfig, start_date: datetime,
               continuous: bool, keep_history: bool, status_text: str):
        if self.state.is_active or self.state.status is SearchStatus.PAUSED:
            raise SearchError("A search is already running. Stop it before starting another.")
        # Re-validate: callers may construct SearchConfig directly
        search = build_search_config(search.event_type, search.target_ids, search.tolerance_deg,
                                     search.strict_mode, search.solar_angular_radius_deg,
                                     search.use_high_precision)
        start_date = ensure_utc(start_date)
        previous = self.state
        state = SearchState(
            status=status,
            search=search,
            continuous=continuous,
            scan_date=start_date,
            search_start=previous.search_start if keep_history and previous.search_start else start_date,
            elapsed_sec=previous.elapsed_sec if keep_history else 0.0,
            found_events=list(previous.found_events) if keep_history else [],
            guard=previous.guard,
            status_text=status_text,
        )
        self.state = state
        logging.info(f"{status.name.title()} for {search.event_type.value} of {list(search.target_ids)} "
                     f"from {start_date.date().isoformat()} (continuous={continuous}, "
                     f"tolerance={search.tolerance_deg}, strict={search.strict_mode}).")

    def stop(self):
        """Cancel the running search. Found events are kept."""
        if self.state.status not in ACTIVE_STATUSES and self.state.status is not SearchStatus.PAUSED:
            return
        self.state.status = SearchStatus.IDLE
        self.state.paused_from = None
        self.state.status_text = ''
        logging.info(f"Search stopped after {len(self.state.found_events)} event(s).")

    def pause(self):
        if not self.state.is_active:
            return
        self.state.paused_from = self.state.status
        self.state.status = SearchStatus.PAUSED
        logging.info("Search paused.")

    def resume(self):
        if self.state.status is not SearchStatus.PAUSED:
            return
        self.state.status = self.state.paused_from or SearchStatus.SEARCHING
        self.state.paused_from = None
        logging.info("Search resumed.")

    def reset_form(self):
        """Forget everything about previous searches, including history and the re-find guard."""
        self.state = SearchState()
        logging.info("Search form reset.")

    def add_elapsed(self, seconds: float):
        """Accumulate wall-clock search time; paused and idle time is not counted."""
        if self.state.is_active:
            self.state.elapsed_sec += seconds

    # --- Ticking ---
    def tick(self, direction: int = 1) -> TickOutcome:
        """One interactive step: the speed setting's number of day-steps."""
        if self.state.status is not SearchStatus.SEARCHING:
            return TickOutcome(scan_date=self.state.scan_date)
        iterations = config.Search.SPEED_ITERATIONS.get(self.state.speed, config.Search.SPEED_ITERATIONS[config.Search.DEFAULT_SPEED])
        outcome = self._advance(iterations, direction)
        if outcome.event is None and self.state.status is SearchStatus.SEARCHING:
            self.state.status_text = f"Searching... {format_search_year(self.state.scan_date.year)}"
        return outcome

    def run_batch(self, direction: int = 1) -> TickOutcome:
        """One calculation batch. The caller schedules the next batch while the status stays Calculating."""
        if self.state.status is not SearchStatus.CALCULATING:
            return TickOutcome(scan_date=self.state.scan_date)
        return self._advance(self.batch_size, direction)

    def _advance(self, iterations: int, direction: int) -> TickOutcome:
        state = self.state
        search = state.search
        key = search.guard_key
        step = self.step if direction >= 0 else -self.step
        date = state.scan_date
        hit_date = None
        state.batches_run += 1

        try:
            for _ in range(iterations):
                date = date + step
                if state.continuous and self._years_searched(date) >= self.max_years:
                    state.scan_date = date
                    self._complete(f"Continuous search completed with {len(state.found_events)} event(s): "
                                   f"no further events within {self.max_years:g} years.")
                    return TickOutcome(scan_date=date, finished=True)
                if state.guard is not None and state.guard.covers(key, date):
                    continue
                if self.detector.holds(search, date):
                    hit_date = date
                    break
            state.scan_date = date

            if config.Debug.SEARCH:
                logging.debug(f"Search batch {state.batches_run} reached {date.date().isoformat()}.")

            if hit_date is None:
                return TickOutcome(scan_date=date)
            return self._record_find(hit_date, direction)
        except OverflowError:
            state.scan_date = date
            self._complete(f"Reached the end of the representable date range at {date.date().isoformat()}.",
                           warn=True)
            return TickOutcome(scan_date=date, finished=True)

    def _record_find(self, hit_date: datetime, direction: int) -> TickOutcome:
        state = self.state
        search = state.search
        event, window = refine_event(self.detector, search, hit_date, self.cap_days)
        state.guard = EventGuard(key=search.guard_key, start=window.start, end=window.end)
        state.found_events.append(event)
        logging.info(f"Found {event.type.value} of {list(event.target_ids)}: "
                     f"{event.start_date.date().isoformat()} .. {event.end_date.date().isoformat()}, "
                     f"optimal {event.optimal_date.isoformat()} ({event.min_angle:.4f} deg).")

        if state.continuous:
            edge = window.end if direction >= 0 else window.start
            years_searched = self._years_searched(edge)
            if len(state.found_events) >= self.max_events or years_searched >= self.max_years:
                state.scan_date = edge
                self._complete(f"Continuous search completed with {len(state.found_events)} event(s) "
                               f"over {years_searched:.1f} years.")
                return TickOutcome(scan_date=edge, event=event, hit_date=hit_date, finished=True)
            # OverflowError here is caught by the caller
            state.scan_date = edge + self.step if direction >= 0 else edge - self.step
            state.status_text = 'Found event. Continuing...'
            return TickOutcome(scan_date=state.scan_date, event=event, hit_date=hit_date)

        state.status = SearchStatus.IDLE
        state.status_text = ''
        state.speed = config.Search.DEFAULT_SPEED
        state.highlighted_ids = highlighted_ids_for(search)
        state.result_start = window.start
        state.result_end = window.end
        state.result_optimal = event.optimal_date
        state.result_min_angle = event.min_angle
        state.calculation_result = hit_date
        state.scan_date = hit_date
        return TickOutcome(scan_date=hit_date, event=event, hit_date=hit_date, finished=True)

    def _years_searched(self, date: datetime) -> float:
        return abs((date - self.state.search_start).total_seconds()) / (86400.0 * 365.0)

    def _complete(self, message: str, warn: bool = False):
        self.state.status = SearchStatus.COMPLETED
        self.state.completed = True
        self.state.status_text = 'Completed'
        if warn:
            logging.warning(message)
        else:
            logging.info(message)
