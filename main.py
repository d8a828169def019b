# main.py
import sys
import logging
import cProfile
import argparse  # For command line options, including profiling
from datetime import datetime, timedelta
from typing import List, Optional

from config import config, ConfigurationError  # Use the global config instance
from ephemeris import load_ephemeris
from events import EventDetector, FoundEvent
from search import SearchError, SearchStatus, build_search_config
from simulation import SimulationClock
from solarsystem import BodyCatalog, OrbitalMechanics, ensure_utc

FRAME_DELTA_SEC = 1.0 / 60.0


class EventSearchRun:
    """Headless driver: builds the engine, runs one search to the end and reports the events.

    Attributes:
        catalog (BodyCatalog): Built-in body catalog from `config.SolarSystem.BODY_DATA`.
        mechanics (OrbitalMechanics): Kepler solver, optionally backed by a skyfield ephemeris.
        detector (EventDetector): Transit/alignment predicates.
        clock (SimulationClock): Owns the date and the search scheduler.
        max_span (timedelta): A single (non-continuous) search that scans this far from its start date is stopped.
            Continuous searches complete on their own at the same span.
    """

    def __init__(self, start_date: datetime, high_precision: bool = False, ephemeris_dir: str = '.',
                 max_events: Optional[int] = None, max_years: Optional[float] = None):
        ephemeris = None
        if high_precision:
            ephemeris = load_ephemeris(ephemeris_dir)
        try:
            self.catalog = BodyCatalog.from_config()
            self.mechanics = OrbitalMechanics(ephemeris=ephemeris)
            self.detector = EventDetector(self.catalog, self.mechanics)
            self.clock = SimulationClock(self.detector, start_date=start_date, on_event=self._log_event)
        except ConfigurationError as e:
            logging.critical(f"Failed to initialize the event search due to ConfigurationError: {e}", exc_info=True)
            raise
        if max_events is not None:
            self.clock.scheduler.max_events = max_events
        years = max_years if max_years is not None else config.Search.CONTINUOUS_MAX_YEARS
        self.clock.scheduler.max_years = years
        self.max_span = timedelta(days=years * 365.0)
        self.start_date = ensure_utc(start_date)
        logging.info("EventSearchRun initialized successfully.")

    def _log_event(self, event: FoundEvent):
        logging.info(f"Event #{len(self.clock.search_state.found_events)}: {event.type.value} "
                     f"{', '.join(event.target_ids)} optimal at {event.optimal_date.isoformat()}")

    def _out_of_span(self) -> bool:
        state = self.clock.search_state
        if state.scan_date is None:
            return False
        return abs(state.scan_date - self.start_date) > self.max_span

    def run(self, args) -> List[FoundEvent]:
        """Start the requested search and drive it until it stops being active."""
        search = build_search_config(
            args.type, args.targets, tolerance_deg=args.tolerance, strict_mode=args.strict,
            use_high_precision=args.high_precision,
        )
        self.clock.set_direction(-1 if args.direction == 'backward' else 1)

        if args.mode == 'calculate':
            self.clock.start_calculation(search, continuous=args.continuous)
            while self.clock.search_state.status is SearchStatus.CALCULATING:
                self.clock.pump(max_rounds=1)
                if self._out_of_span():
                    logging.warning(f"No further events within {self.max_span.days} days; stopping.")
                    self.clock.stop_search()
        else:
            self.clock.start_search(search, speed=args.speed, continuous=args.continuous)
            while self.clock.search_state.status is SearchStatus.SEARCHING:
                self.clock.frame(FRAME_DELTA_SEC)
                if self._out_of_span():
                    logging.warning(f"No further events within {self.max_span.days} days; stopping.")
                    self.clock.stop_search()

        events = list(self.clock.search_state.found_events)
        for event in events:
            logging.info(f"{event.type.value} [{', '.join(event.target_ids)}] "
                         f"{event.start_date.date().isoformat()} -> {event.end_date.date().isoformat()}, "
                         f"optimal {event.optimal_date.isoformat()}, min angle {event.min_angle:.4f} deg"
                         f"{' (strict)' if event.strict_mode else ''}")
        logging.info(f"Search finished with status {self.clock.search_state.status.name} "
                     f"and {len(events)} event(s).")
        return events


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search simulated time for planetary transits and alignments.")
    parser.add_argument("--type", choices=['transit', 'alignment'], default='transit',
                        help="Event type to search for.")
    parser.add_argument("--targets", nargs='+', default=['venus'],
                        help="Target body ids, e.g. 'venus' or 'mars jupiter saturn'.")
    parser.add_argument("--start", type=datetime.fromisoformat, default=config.Time.J2000_EPOCH,
                        help="ISO start date (naive dates are UTC).")
    parser.add_argument("--direction", choices=['forward', 'backward'], default='forward')
    parser.add_argument("--mode", choices=['search', 'calculate'], default='calculate',
                        help="'search' steps a few days per frame; 'calculate' runs large batches.")
    parser.add_argument("--speed", choices=list(config.Search.SPEED_ITERATIONS), default=config.Search.DEFAULT_SPEED)
    parser.add_argument("--tolerance", type=float, default=None, help="Tolerance in degrees.")
    parser.add_argument("--strict", action="store_true", help="Transit must cross the solar disc.")
    parser.add_argument("--continuous", action="store_true", help="Keep searching after each find.")
    parser.add_argument("--max-events", type=int, default=None,
                        help="Continuous searches complete after this many events.")
    parser.add_argument("--max-years", type=float, default=None,
                        help="Give up after scanning this many years from the start date.")
    parser.add_argument("--high-precision", action="store_true",
                        help="Use a JPL kernel through skyfield where available.")
    parser.add_argument("--ephemeris-dir", default='.', help="Directory for the JPL kernel.")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable profiling. Statistics will be saved to 'search_profile.prof'."
    )
    return parser


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)

    profiler = None
    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        logging.info("cProfile profiling enabled. Output will be saved to search_profile.prof upon completion.")

    exit_code = 0
    try:
        run = EventSearchRun(args.start, high_precision=args.high_precision, ephemeris_dir=args.ephemeris_dir,
                             max_events=args.max_events, max_years=args.max_years)
        run.run(args)
    except (ConfigurationError, SearchError) as e:
        logging.critical(f"Event search could not run: {e}", exc_info=True)
        exit_code = 1
    except Exception as e:
        logging.critical(f"An unexpected critical error occurred during the event search: {e}", exc_info=True)
        exit_code = 1
    finally:
        if profiler:
            profiler.disable()
            stats_file = "search_profile.prof"
            try:
                profiler.dump_stats(stats_file)
                logging.info(f"Profiling data successfully saved to {stats_file}")
            except OSError as e_profile_dump:
                logging.error(f"Failed to save profiling data to {stats_file}: {e_profile_dump}", exc_info=True)
        logging.info("Event search terminated.")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
