# simulation.py
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Optional

from config import config
from events import EventDetector, FoundEvent, SearchConfig
from search import EventSearchScheduler, SearchStatus, TickOutcome, format_search_year
from solarsystem import ensure_utc


class TaskQueue:
    """FIFO of zero-argument callables run cooperatively by the host loop.

    A task may enqueue its successor, so long-running work proceeds one
    bounded step per `run_pending` call without growing the call stack.
    """

    def __init__(self):
        self._tasks: Deque[Callable[[], None]] = deque()

    def schedule(self, task: Callable[[], None]):
        self._tasks.append(task)

    def clear(self):
        self._tasks.clear()

    def __len__(self) -> int:
        return len(self._tasks)

    def run_pending(self) -> int:
        """Run the tasks queued before this call; tasks they schedule wait for the next call."""
        count = len(self._tasks)
        for _ in range(count):
            task = self._tasks.popleft()
            task()
        return count


class SimulationClock:
    """Owns the current date and drives the search scheduler.

    Outside a search the date advances at BASE_SPEED_DAYS_PER_SEC x speed
    multiplier x direction per real second while playing. An interactive
    search replaces that advancement with one scheduler tick per frame, so
    the visible date follows the scan. A calculation runs as self-scheduling
    batches on the task queue and leaves the visible date alone.

    Attributes:
        current_date (datetime): Simulated date shown to the host.
        is_playing (bool): Whether time advances on frames.
        speed_multiplier (float): Multiplier of the base rate.
        direction (int): +1 forward, -1 backward.
        scheduler (EventSearchScheduler): Search state machine.
        tasks (TaskQueue): Queue of pending calculation batches.
        on_event (Callable): Optional callback invoked with each FoundEvent.
    """

    def __init__(self, detector: EventDetector, start_date: Optional[datetime] = None,
                 scheduler: Optional[EventSearchScheduler] = None,
                 on_event: Optional[Callable[[FoundEvent], None]] = None):
        self.current_date = ensure_utc(start_date) if start_date is not None else config.Time.J2000_EPOCH
        self.is_playing = False
        self.speed_multiplier = 1.0
        self.direction = 1
        self.scheduler = scheduler if scheduler is not None else EventSearchScheduler(detector)
        self.tasks = TaskQueue()
        self.on_event = on_event
        self._batch_pending = False

    @property
    def search_state(self):
        return self.scheduler.state

    # --- Command surface ---
    def set_date(self, date: datetime):
        self.current_date = ensure_utc(date)

    def set_speed(self, multiplier: float):
        if multiplier <= 0:
            raise ValueError(f"Speed multiplier must be positive, got {multiplier}.")
        self.speed_multiplier = float(multiplier)

    def set_direction(self, direction: int):
        if direction not in (1, -1):
            raise ValueError(f"Direction must be 1 or -1, got {direction}.")
        self.direction = direction

    def play(self):
        self.is_playing = True

    def pause(self):
        self.is_playing = False

    def start_search(self, search: SearchConfig, speed: Optional[str] = None, continuous: bool = False,
                     keep_history: bool = False):
        """Interactive search from the current date, one tick per frame."""
        self.scheduler.start_search(search, self.current_date, speed, continuous, keep_history)

    def start_calculation(self, search: SearchConfig, continuous: bool = False, keep_history: bool = False):
        """Batch calculation from the current date, driven by the task queue."""
        self.scheduler.start_calculation(search, self.current_date, continuous, keep_history)
        self._schedule_batch()

    def stop_search(self):
        self.scheduler.stop()
        self.tasks.clear()
        self._batch_pending = False

    def pause_search(self):
        self.scheduler.pause()

    def resume_search(self):
        self.scheduler.resume()
        if self.scheduler.state.status is SearchStatus.CALCULATING:
            self._schedule_batch()

    def reset_search(self):
        self.stop_search()
        self.scheduler.reset_form()

    # --- Driving ---
    def frame(self, real_delta_sec: float) -> Optional[TickOutcome]:
        """
        Advance one rendered frame.

        Args:
            real_delta_sec: Wall-clock seconds since the previous frame; clamped
                            to config.Time.MAX_FRAME_DELTA_SEC.

        Returns:
            The scheduler's outcome when a search tick ran, else None.
        """
        delta = max(0.0, min(real_delta_sec, config.Time.MAX_FRAME_DELTA_SEC))
        state = self.scheduler.state

        if state.status is SearchStatus.CALCULATING:
            self.scheduler.add_elapsed(delta)
            return None

        if state.status is SearchStatus.SEARCHING:
            self.scheduler.add_elapsed(delta)
            outcome = self.scheduler.tick(self.direction)
            if outcome.scan_date is not None:
                self.current_date = outcome.scan_date
            self._handle_outcome(outcome)
            return outcome

        if state.status is SearchStatus.PAUSED:
            return None

        if self.is_playing:
            days = delta * config.Time.BASE_SPEED_DAYS_PER_SEC * self.speed_multiplier * self.direction
            try:
                self.current_date = self.current_date + timedelta(days=days)
            except OverflowError:
                logging.warning(f"Clock reached the end of the representable date range at {self.current_date}.")
                self.is_playing = False
        return None

    def pump(self, max_rounds: Optional[int] = None) -> int:
        """Run queued batches until the queue drains (or *max_rounds* rounds). Returns tasks run."""
        total = 0
        rounds = 0
        while len(self.tasks) and (max_rounds is None or rounds < max_rounds):
            total += self.tasks.run_pending()
            rounds += 1
        return total

    def _schedule_batch(self):
        if not self._batch_pending:
            self._batch_pending = True
            self.tasks.schedule(self._run_calculation_batch)

    def _run_calculation_batch(self):
        self._batch_pending = False
        if self.scheduler.state.status is not SearchStatus.CALCULATING:
            return
        outcome = self.scheduler.run_batch(self.direction)
        state = self.scheduler.state
        if state.batches_run % config.Search.STATUS_REPORT_EVERY_BATCHES == 0 and state.scan_date is not None:
            logging.info(f"Calculating... scanned to {format_search_year(state.scan_date.year)} "
                         f"({len(state.found_events)} event(s) so far).")
        self._handle_outcome(outcome)
        if state.status is SearchStatus.CALCULATING:
            self._schedule_batch()

    def _handle_outcome(self, outcome: TickOutcome):
        if outcome.event is None:
            return
        state = self.scheduler.state
        if self.on_event is not None:
            self.on_event(outcome.event)
        if state.status is SearchStatus.IDLE:
            # Single find: stop on the result so it can be inspected
            self.is_playing = False
            self.speed_multiplier = 1.0
            if outcome.hit_date is not None:
                self.current_date = outcome.hit_date
