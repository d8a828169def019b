# config.py
import math
import logging
from datetime import datetime, timezone

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(module)s - %(message)s')

# Fundamental constants (used across different config sections)
AU_KM = 149597870.7  # Astronomical Unit in kilometers
SECONDS_PER_DAY = 86400.0
J2000_EPOCH = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

# Display scale constants (pixels per AU at zoom k = 1)
AU_SCALE_SCHEMATIC = 65.0
AU_SCALE_TRUE = 23500.0
TRUE_TO_SCHEMATIC_RATIO = AU_SCALE_SCHEMATIC / AU_SCALE_TRUE

class ConfigurationError(Exception):
    """Custom exception for engine configuration errors.

    Raised by `SimulationConfig.validate()` and by catalog construction when
    settings or body data are invalid, inconsistent, or reference missing
    bodies.

    Attributes:
        message (str): A human-readable explanation of the configuration error.
                       This is the first argument passed to the exception constructor.
    """
    pass

class SimulationConfig:
    """Centralized, hierarchical configuration for the orrery event engine.

    All tunable constants live in nested static classes (e.g.
    `SimulationConfig.Kepler`, `SimulationConfig.Projection`,
    `SimulationConfig.Search`). An instance named `config` is created at the
    end of this module, making it available via `from config import config`.

    The constructor invokes `validate()`, which checks ranges and
    interdependencies across every section and raises `ConfigurationError`
    if anything is inconsistent. Values that a caller may legitimately want
    to vary per call (iteration caps, expansion caps, batch sizes) are read
    here as defaults and can be overridden by keyword arguments where they
    are consumed.

    Example Usage:
        >>> from config import config
        >>> print(f"Kepler iteration cap: {config.Kepler.MAX_ITERATIONS}")
        >>> print(f"Calculation batch size: {config.Search.CALCULATION_BATCH_SIZE}")
    """

    # --- Time Configuration ---
    class Time:
        """Simulated time and clock pacing.

        Attributes:
            J2000_EPOCH (datetime): Reference epoch of all orbital elements (UTC).
            BASE_SPEED_DAYS_PER_SEC (float): Simulated days advanced per real second
                                             at speed multiplier 1.
            MAX_FRAME_DELTA_SEC (float): Wall-clock frame deltas are clamped to this
                                         value so a stalled host does not jump the
                                         simulation forward by years.
        """
        J2000_EPOCH = J2000_EPOCH
        BASE_SPEED_DAYS_PER_SEC = 7.0
        MAX_FRAME_DELTA_SEC = 0.25

    # --- Kepler Solver Configuration ---
    class Kepler:
        """Two-body Kepler solver and orbit samplers.

        Attributes:
            MEAN_MOTION_DEG_PER_DAY (float): Gaussian mean motion for a 1 AU orbit around
                                             a Sun-mass primary (~360 / 365.256).
            MAX_ITERATIONS (int): Newton-Raphson iteration cap.
            TOLERANCE (float): Convergence threshold on |dE| in radians.
            DAYS_PER_YEAR (float): Julian year used for orbital periods.
            GEOMETRIC_PATH_STEPS (int): Default sample count of the eccentric-anomaly sampler.
            TIMED_PATH_STEPS (int): Default sample count of the time sampler.
        """
        MEAN_MOTION_DEG_PER_DAY = 0.9856076686
        MAX_ITERATIONS = 100
        TOLERANCE = 1e-6
        DAYS_PER_YEAR = 365.25
        GEOMETRIC_PATH_STEPS = 90
        TIMED_PATH_STEPS = 90

    # --- High Precision Ephemeris Configuration ---
    class Ephemeris:
        """Optional skyfield-backed ephemeris.

        Attributes:
            OBLIQUITY_DEG (float): Fixed obliquity used for the equatorial -> ecliptic rotation.
            DEFAULT_KERNEL (str): JPL kernel file name loaded by `ephemeris.load_ephemeris`.
            TARGETS (Dict[str, str]): Body id -> kernel target name.
        """
        OBLIQUITY_DEG = 23.4392911
        DEFAULT_KERNEL = 'de421.bsp'
        TARGETS = {
            'mercury': 'mercury',
            'venus': 'venus',
            'earth': 'earth',
            'moon': 'moon',
            'mars': 'mars barycenter',
            'jupiter': 'jupiter barycenter',
            'saturn': 'saturn barycenter',
            'uranus': 'uranus barycenter',
            'neptune': 'neptune barycenter',
            'pluto': 'pluto barycenter',
        }

    # --- Display Configuration ---
    class Display:
        """Base distance scales of the two display modes.

        Attributes:
            AU_SCALE_SCHEMATIC (float): Pixels per AU in schematic mode at zoom 1.
            AU_SCALE_TRUE (float): Pixels per AU in true-scale mode at zoom 1.
            TRUE_TO_SCHEMATIC_RATIO (float): Converts a schematic zoom threshold into the
                                             equivalent true-scale one.
        """
        AU_SCALE_SCHEMATIC = AU_SCALE_SCHEMATIC
        AU_SCALE_TRUE = AU_SCALE_TRUE
        TRUE_TO_SCHEMATIC_RATIO = TRUE_TO_SCHEMATIC_RATIO

    # --- Projection / Camera Configuration ---
    class Projection:
        """Perspective camera and proximity fading.

        Attributes:
            BASE_PROXIMITY_CONST (float): Camera distance (pixels) at zoom 1 when proximity
                                          simulation is on; divided by zoom.
            INFINITE_CAMERA_DIST (float): Camera distance used when proximity simulation is off.
            STAR_ID (str): Id of the central star, always opaque.
            ALWAYS_VISIBLE_IDS (List[str]): Bodies that never fade below `ALWAYS_VISIBLE_MIN_OPACITY`.
            ALWAYS_VISIBLE_MIN_OPACITY (float): Floor applied to the always-visible tier.
            NEAR_PLANE (float): Distance at which ordinary bodies are fully faded.
            FADE_RANGE (float): Distance beyond the near plane over which they fade back in.
            INNER_BODY_IDS (List[str]): The two innermost bodies, using the smaller parameters.
            INNER_NEAR_PLANE (float): Near plane of `INNER_BODY_IDS`.
            INNER_FADE_RANGE (float): Fade range of `INNER_BODY_IDS`.
            VISIBILITY_EPSILON (float): Points with opacity below this are not visible.
        """
        BASE_PROXIMITY_CONST = 2000.0
        INFINITE_CAMERA_DIST = 100000.0
        STAR_ID = 'sun'
        ALWAYS_VISIBLE_IDS = ['jupiter', 'saturn', 'uranus', 'neptune']
        ALWAYS_VISIBLE_MIN_OPACITY = 0.3
        NEAR_PLANE = 100.0
        FADE_RANGE = 300.0
        INNER_BODY_IDS = ['mercury', 'venus']
        INNER_NEAR_PLANE = 50.0
        INNER_FADE_RANGE = 150.0
        VISIBILITY_EPSILON = 0.01
        MIN_TILT_DEG = -90.0
        MAX_TILT_DEG = 90.0

    # --- Level of Detail Configuration ---
    class LevelOfDetail:
        """Zoom-dependent opacity of body groups.

        Thresholds are given for schematic mode; the true-scale equivalents are the
        same thresholds multiplied by `Display.TRUE_TO_SCHEMATIC_RATIO`.

        Attributes:
            INNER_SYSTEM_THRESHOLD_AU (float): Bodies with a <= this belong to the inner group.
            OUTER_SYSTEM_THRESHOLD_AU (float): Bodies with a >= this belong to the outer group.
            INNER_ZOOM_THRESHOLD (float): Inner bodies fade out when zooming out past this.
            OUTER_ZOOM_THRESHOLD (float): Outer bodies fade out when zooming in past this.
            SMOOTH_WINDOW_FRACTION (float): Half width of the smoothstep window, relative
                                            to the threshold.
            COMET_ECO_MAX_DISTANCE_AU (float): Eco comets are drawn only within this distance.
            ECO_VISIBILITY_THRESHOLD (float): Skip-render threshold on mobile/eco hosts.
            DEFAULT_VISIBILITY_THRESHOLD (float): Skip-render threshold otherwise.
            QUALITIES (List[str]): Accepted region quality settings.
        """
        INNER_SYSTEM_THRESHOLD_AU = 4.8
        OUTER_SYSTEM_THRESHOLD_AU = 30.0
        INNER_ZOOM_THRESHOLD = 0.35
        OUTER_ZOOM_THRESHOLD = 0.15
        SMOOTH_WINDOW_FRACTION = 0.10
        COMET_ECO_MAX_DISTANCE_AU = 50.0
        ECO_VISIBILITY_THRESHOLD = 0.9
        DEFAULT_VISIBILITY_THRESHOLD = 0.01
        QUALITIES = ['eco', 'standard', 'performance']

    # --- Event Search Configuration ---
    class Search:
        """Event detection, search scheduling and refinement.

        Attributes:
            DEFAULT_SUN_ANGULAR_RADIUS_DEG (float): Apparent solar radius used by strict transits.
            DEFAULT_TRANSIT_TOLERANCE_DEG (float): Default transit tolerance.
            DEFAULT_ALIGNMENT_TOLERANCE_DEG (float): Default alignment span tolerance.
            OBSERVER_ID (str): Body the geometry is measured from.
            STEP_DAYS (float): Simulated days per predicate evaluation.
            SPEED_ITERATIONS (Dict[str, int]): Evaluations per rendered frame while searching.
            CALCULATION_BATCH_SIZE (int): Evaluations per self-scheduled calculation batch.
            CONTINUOUS_MAX_EVENTS (int): Continuous searches complete after this many finds.
            CONTINUOUS_MAX_YEARS (float): ... or after scanning this many years.
            EXPANSION_CAP_DAYS (int): Window expansion stops after this many days per side.
            OPTIMIZER_COARSE_SAMPLES (int): Uniform samples across the window.
            OPTIMIZER_TERNARY_ITERATIONS (int): Ternary refinement iterations.
            STATUS_REPORT_EVERY_BATCHES (int): Calculation batches between status log lines.
        """
        DEFAULT_SUN_ANGULAR_RADIUS_DEG = 0.266
        DEFAULT_TRANSIT_TOLERANCE_DEG = 1.0
        DEFAULT_ALIGNMENT_TOLERANCE_DEG = 10.0
        OBSERVER_ID = 'earth'
        STEP_DAYS = 1.0
        SPEED_ITERATIONS = {'low': 4, 'medium': 15, 'high': 30}
        DEFAULT_SPEED = 'medium'
        CALCULATION_BATCH_SIZE = 200
        CONTINUOUS_MAX_EVENTS = 50
        CONTINUOUS_MAX_YEARS = 2000.0
        EXPANSION_CAP_DAYS = 3650
        OPTIMIZER_COARSE_SAMPLES = 20
        OPTIMIZER_TERNARY_ITERATIONS = 10
        STATUS_REPORT_EVERY_BATCHES = 50

    # --- Solar System Configuration ---
    class SolarSystem:
        """Built-in body catalog.

        Attributes:
            BODY_DATA (Dict[str, Dict]): Body id -> parameters. Elements are
                (a [AU], e, i, N, w, M) at J2000; `mass_ratio` is the body mass
                relative to the Sun; `parent` is the id of the body it orbits
                (None for bodies orbiting the Sun and for the Sun itself);
                `category` is one of `CATEGORIES`.
            CATEGORIES (List[str]): Accepted category tags.
        """
        CATEGORIES = ['star', 'planet', 'dwarf', 'comet', 'satellite', 'ring']

        BODY_DATA = {
            'sun': {
                'name': 'Sun', 'category': 'star', 'parent': None, 'mass_ratio': 1.0,
                'elements': (0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
            },
            'mercury': {
                'name': 'Mercury', 'category': 'planet', 'parent': None, 'mass_ratio': 1.6601e-7,
                'elements': (0.38709893, 0.20563069, 7.00487, 48.33167, 29.12478, 174.79439),
            },
            'venus': {
                'name': 'Venus', 'category': 'planet', 'parent': None, 'mass_ratio': 2.4478e-6,
                'elements': (0.72333199, 0.00677323, 3.39471, 76.68069, 54.85229, 50.44675),
            },
            'earth': {
                'name': 'Earth', 'category': 'planet', 'parent': None, 'mass_ratio': 3.0035e-6,
                'elements': (1.00000011, 0.01671022, 0.00005, -11.26064, 102.94719, 357.51716),
            },
            'moon': {
                'name': 'Moon', 'category': 'satellite', 'parent': 'earth', 'mass_ratio': 3.6943e-8,
                'elements': (0.00257, 0.0549, 5.145, 125.08, 318.15, 115.36),
            },
            'mars': {
                'name': 'Mars', 'category': 'planet', 'parent': None, 'mass_ratio': 3.2272e-7,
                'elements': (1.52366231, 0.09341233, 1.85061, 49.57854, 286.4623, 19.41248),
            },
            'ceres': {
                'name': 'Ceres', 'category': 'dwarf', 'parent': None, 'mass_ratio': 4.72e-10,
                'elements': (2.7675, 0.0785, 10.59, 80.31, 73.60, 95.99),
            },
            'jupiter': {
                'name': 'Jupiter', 'category': 'planet', 'parent': None, 'mass_ratio': 9.5459e-4,
                'elements': (5.20336301, 0.04839266, 1.3053, 100.55615, 274.19770, 19.65053),
            },
            'io': {
                'name': 'Io', 'category': 'satellite', 'parent': 'jupiter', 'mass_ratio': 4.49e-8,
                'elements': (0.002819, 0.0041, 0.050, 0.0, 0.0, 0.0),
            },
            'europa': {
                'name': 'Europa', 'category': 'satellite', 'parent': 'jupiter', 'mass_ratio': 2.41e-8,
                'elements': (0.004486, 0.0094, 0.470, 0.0, 0.0, 100.0),
            },
            'ganymede': {
                'name': 'Ganymede', 'category': 'satellite', 'parent': 'jupiter', 'mass_ratio': 7.45e-8,
                'elements': (0.007155, 0.0013, 0.204, 0.0, 0.0, 200.0),
            },
            'callisto': {
                'name': 'Callisto', 'category': 'satellite', 'parent': 'jupiter', 'mass_ratio': 5.41e-8,
                'elements': (0.012585, 0.0074, 0.205, 0.0, 0.0, 300.0),
            },
            'saturn': {
                'name': 'Saturn', 'category': 'planet', 'parent': None, 'mass_ratio': 2.8582e-4,
                'elements': (9.53707032, 0.05415060, 2.48446, 113.71504, 338.71690, 317.51238),
            },
            'titan': {
                'name': 'Titan', 'category': 'satellite', 'parent': 'saturn', 'mass_ratio': 6.76e-8,
                'elements': (0.008168, 0.0288, 0.34854, 0.0, 0.0, 0.0),
            },
            'saturn_rings': {
                'name': "Saturn's Rings", 'category': 'ring', 'parent': 'saturn', 'mass_ratio': None,
                'elements': (0.0, 0.0, 26.73, 0.0, 0.0, 0.0),
                'inner_radius_au': 0.00049, 'outer_radius_au': 0.00094,
            },
            'uranus': {
                'name': 'Uranus', 'category': 'planet', 'parent': None, 'mass_ratio': 4.3662e-5,
                'elements': (19.19126393, 0.04716771, 0.76986, 74.22988, 96.73436, 142.26794),
            },
            'neptune': {
                'name': 'Neptune', 'category': 'planet', 'parent': None, 'mass_ratio': 5.1514e-5,
                'elements': (30.06896348, 0.00858587, 1.76917, 131.72169, 273.24966, 259.90868),
            },
            'pluto': {
                'name': 'Pluto', 'category': 'dwarf', 'parent': None, 'mass_ratio': 6.5812e-9,
                'elements': (39.48168677, 0.24880766, 17.14175, 110.30347, 113.76329, 14.86205),
            },
            'halley': {
                'name': "Halley's Comet", 'category': 'comet', 'parent': None, 'mass_ratio': None,
                'elements': (17.834, 0.96714, 162.26, 58.42, 111.33, 38.38),
            },
        }

    # --- Debug Configuration ---
    class Debug:
        """Verbose logging toggles for the numerical hot path.

        Attributes:
            KEPLER_SOLVER (bool): Log non-converged Kepler solutions at DEBUG level.
            SEARCH (bool): Log every scheduler batch at DEBUG level.
            PROJECTION (bool): Log culled points at DEBUG level.
        """
        KEPLER_SOLVER = False
        SEARCH = False
        PROJECTION = False

    def __init__(self):
        """Initializes the `SimulationConfig` instance and validates it.

        Raises:
            ConfigurationError: If `self.validate()` detects any issue with the
                                configuration values.
        """
        self.validate()

    def validate(self):
        """Performs comprehensive validation of all engine configuration settings.

        Checks that scales, solver caps and search budgets are positive, that the
        level-of-detail thresholds are ordered, that the tilt range is symmetric
        and within [-90, 90], and that every catalog entry has well-formed
        elements, a known category and a parent that exists and is not itself.

        Raises:
            ConfigurationError: If any configuration setting is found to be invalid.
        """
        # Display scales
        if self.Display.AU_SCALE_SCHEMATIC <= 0 or self.Display.AU_SCALE_TRUE <= 0:
            raise ConfigurationError("Display AU scales must be positive.")

        # Time
        if self.Time.BASE_SPEED_DAYS_PER_SEC <= 0:
            raise ConfigurationError("Time.BASE_SPEED_DAYS_PER_SEC must be positive.")
        if self.Time.MAX_FRAME_DELTA_SEC <= 0:
            raise ConfigurationError("Time.MAX_FRAME_DELTA_SEC must be positive.")

        # Kepler
        if self.Kepler.MEAN_MOTION_DEG_PER_DAY <= 0:
            raise ConfigurationError("Kepler.MEAN_MOTION_DEG_PER_DAY must be positive.")
        if self.Kepler.MAX_ITERATIONS <= 0:
            raise ConfigurationError("Kepler.MAX_ITERATIONS must be positive.")
        if not (0 < self.Kepler.TOLERANCE < 1):
            raise ConfigurationError(f"Kepler.TOLERANCE ({self.Kepler.TOLERANCE}) must be in (0, 1).")
        if self.Kepler.GEOMETRIC_PATH_STEPS <= 0 or self.Kepler.TIMED_PATH_STEPS <= 0:
            raise ConfigurationError("Kepler path step counts must be positive.")

        # Projection
        if self.Projection.BASE_PROXIMITY_CONST <= 0 or self.Projection.INFINITE_CAMERA_DIST <= 0:
            raise ConfigurationError("Projection camera distances must be positive.")
        if self.Projection.FADE_RANGE <= 0 or self.Projection.INNER_FADE_RANGE <= 0:
            raise ConfigurationError("Projection fade ranges must be positive.")
        if not (self.Projection.INNER_NEAR_PLANE <= self.Projection.NEAR_PLANE and
                self.Projection.INNER_FADE_RANGE <= self.Projection.FADE_RANGE):
            raise ConfigurationError(
                "Projection inner-body near plane/fade range must not exceed the default ones "
                f"(near: {self.Projection.INNER_NEAR_PLANE} vs {self.Projection.NEAR_PLANE}, "
                f"range: {self.Projection.INNER_FADE_RANGE} vs {self.Projection.FADE_RANGE})."
            )
        if not (0.0 <= self.Projection.ALWAYS_VISIBLE_MIN_OPACITY <= 1.0):
            raise ConfigurationError("Projection.ALWAYS_VISIBLE_MIN_OPACITY must be between 0 and 1.")
        if self.Projection.MIN_TILT_DEG != -self.Projection.MAX_TILT_DEG or self.Projection.MAX_TILT_DEG > 90.0:
            raise ConfigurationError("Projection tilt range must be symmetric and within [-90, 90].")

        # Level of detail
        lod = self.LevelOfDetail
        if not (0 < lod.INNER_SYSTEM_THRESHOLD_AU < lod.OUTER_SYSTEM_THRESHOLD_AU):
            raise ConfigurationError(
                f"LevelOfDetail thresholds (inner: {lod.INNER_SYSTEM_THRESHOLD_AU}, "
                f"outer: {lod.OUTER_SYSTEM_THRESHOLD_AU}) must be positive and ordered."
            )
        if lod.INNER_ZOOM_THRESHOLD <= 0 or lod.OUTER_ZOOM_THRESHOLD <= 0:
            raise ConfigurationError("LevelOfDetail zoom thresholds must be positive.")
        if not (0 < lod.SMOOTH_WINDOW_FRACTION < 1):
            raise ConfigurationError("LevelOfDetail.SMOOTH_WINDOW_FRACTION must be in (0, 1).")

        # Search
        search = self.Search
        if search.STEP_DAYS <= 0:
            raise ConfigurationError("Search.STEP_DAYS must be positive.")
        if set(search.SPEED_ITERATIONS) != {'low', 'medium', 'high'}:
            raise ConfigurationError("Search.SPEED_ITERATIONS must define 'low', 'medium' and 'high'.")
        if not (search.SPEED_ITERATIONS['low'] <= search.SPEED_ITERATIONS['medium'] <= search.SPEED_ITERATIONS['high']):
            raise ConfigurationError("Search.SPEED_ITERATIONS must be ordered low <= medium <= high.")
        if search.DEFAULT_SPEED not in search.SPEED_ITERATIONS:
            raise ConfigurationError(f"Search.DEFAULT_SPEED '{search.DEFAULT_SPEED}' is not a known speed.")
        if search.CALCULATION_BATCH_SIZE < search.SPEED_ITERATIONS['high']:
            logging.warning(
                f"Search.CALCULATION_BATCH_SIZE ({search.CALCULATION_BATCH_SIZE}) is smaller than the "
                f"'high' search speed ({search.SPEED_ITERATIONS['high']}). Calculation mode will be slower."
            )
        for name in ('CALCULATION_BATCH_SIZE', 'CONTINUOUS_MAX_EVENTS', 'EXPANSION_CAP_DAYS',
                     'OPTIMIZER_COARSE_SAMPLES', 'OPTIMIZER_TERNARY_ITERATIONS', 'STATUS_REPORT_EVERY_BATCHES'):
            if getattr(search, name) <= 0:
                raise ConfigurationError(f"Search.{name} must be positive.")
        if search.CONTINUOUS_MAX_YEARS <= 0:
            raise ConfigurationError("Search.CONTINUOUS_MAX_YEARS must be positive.")
        if search.DEFAULT_SUN_ANGULAR_RADIUS_DEG <= 0:
            raise ConfigurationError("Search.DEFAULT_SUN_ANGULAR_RADIUS_DEG must be positive.")

        # Solar system data
        bodies = self.SolarSystem.BODY_DATA
        star_id = self.Projection.STAR_ID
        if star_id not in bodies:
            raise ConfigurationError(f"Star '{star_id}' missing from SolarSystem.BODY_DATA.")
        if search.OBSERVER_ID not in bodies:
            raise ConfigurationError(f"Observer '{search.OBSERVER_ID}' missing from SolarSystem.BODY_DATA.")

        for body_id, data in bodies.items():
            if data.get('category') not in self.SolarSystem.CATEGORIES:
                raise ConfigurationError(f"Body '{body_id}' has unknown category '{data.get('category')}'.")
            elements = data.get('elements')
            if elements is None or len(elements) != 6 or not all(math.isfinite(v) for v in elements):
                raise ConfigurationError(f"Body '{body_id}' must define six finite orbital elements.")
            a, e = elements[0], elements[1]
            if a < 0:
                raise ConfigurationError(f"Semi-major axis of '{body_id}' cannot be negative.")
            if a == 0 and data['category'] not in ('star', 'ring'):
                raise ConfigurationError(f"Body '{body_id}' needs a positive semi-major axis.")
            if not (0.0 <= e < 1.0):
                raise ConfigurationError(f"Eccentricity of '{body_id}' ({e}) must be >= 0 and < 1.")

            parent = data.get('parent')
            if parent is not None:
                if parent not in bodies:
                    raise ConfigurationError(f"Parent '{parent}' for '{body_id}' not found in BODY_DATA.")
                if parent == body_id:
                    raise ConfigurationError(f"Body '{body_id}' cannot orbit itself.")
            elif data['category'] in ('satellite', 'ring'):
                raise ConfigurationError(f"{data['category'].capitalize()} '{body_id}' must define a parent.")

        logging.info("Configuration validated successfully.")


# --- Instantiate the configuration ---
# This makes the config object available for import and runs validation.
# e.g., from config import config
try:
    config = SimulationConfig()
except ConfigurationError as e:
    logging.error(f"FATAL CONFIGURATION ERROR: {e}", exc_info=True)
    raise
