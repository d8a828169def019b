import unittest
from unittest import mock

from config import config, ConfigurationError, SimulationConfig


class TestSimulationConfig(unittest.TestCase):

    def test_default_configuration_is_valid(self):
        SimulationConfig()  # raises on failure
        self.assertEqual(config.Kepler.MAX_ITERATIONS, 100)
        self.assertEqual(config.Search.EXPANSION_CAP_DAYS, 3650)

    def test_rejects_non_positive_iteration_cap(self):
        with mock.patch.object(SimulationConfig.Kepler, 'MAX_ITERATIONS', 0):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()

    def test_rejects_unordered_lod_thresholds(self):
        with mock.patch.object(SimulationConfig.LevelOfDetail, 'OUTER_SYSTEM_THRESHOLD_AU', 1.0):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()

    def test_rejects_unknown_default_speed(self):
        with mock.patch.object(SimulationConfig.Search, 'DEFAULT_SPEED', 'warp'):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()

    def test_rejects_satellite_without_parent(self):
        bodies = dict(SimulationConfig.SolarSystem.BODY_DATA)
        bodies['phobos'] = {'name': 'Phobos', 'category': 'satellite', 'parent': None, 'mass_ratio': None,
                            'elements': (0.0000627, 0.0151, 1.08, 0.0, 0.0, 0.0)}
        with mock.patch.object(SimulationConfig.SolarSystem, 'BODY_DATA', bodies):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()

    def test_rejects_missing_parent(self):
        bodies = dict(SimulationConfig.SolarSystem.BODY_DATA)
        bodies['phobos'] = {'name': 'Phobos', 'category': 'satellite', 'parent': 'barsoom', 'mass_ratio': None,
                            'elements': (0.0000627, 0.0151, 1.08, 0.0, 0.0, 0.0)}
        with mock.patch.object(SimulationConfig.SolarSystem, 'BODY_DATA', bodies):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()

    def test_rejects_hyperbolic_orbit(self):
        bodies = dict(SimulationConfig.SolarSystem.BODY_DATA)
        bodies['oumuamua'] = {'name': "'Oumuamua", 'category': 'comet', 'parent': None, 'mass_ratio': None,
                              'elements': (1.27, 1.2, 122.7, 24.6, 241.8, 0.0)}
        with mock.patch.object(SimulationConfig.SolarSystem, 'BODY_DATA', bodies):
            with self.assertRaises(ConfigurationError):
                SimulationConfig()


if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
