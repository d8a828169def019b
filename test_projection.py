import unittest

import numpy as np

from config import config
from projection import CameraState, project_3d, project_path, proximity_opacity


class TestProjectPivot(unittest.TestCase):

    def test_pivot_projects_to_origin_for_any_orientation(self):
        pivot = (1.3, -0.4, 0.2)
        for yaw in (0.0, 37.0, 180.0, 311.5):
            for tilt in (-90.0, -45.0, 0.0, 12.0, 90.0):
                for perspective in (False, True):
                    camera = CameraState(yaw_deg=yaw, tilt_deg=tilt, pivot=pivot,
                                         enable_perspective=perspective, enable_proximity=True, zoom=2.0)
                    point = project_3d(np.array(pivot), 65.0, camera, body_id='earth')
                    self.assertAlmostEqual(point.x, 0.0)
                    self.assertAlmostEqual(point.y, 0.0)
                    self.assertAlmostEqual(point.depth, 0.0)

    def test_explicit_pivot_overrides_camera_pivot(self):
        camera = CameraState(pivot=(5.0, 5.0, 5.0))
        point = project_3d([1.0, 2.0, 3.0], 10.0, camera, pivot=(1.0, 2.0, 3.0))
        self.assertAlmostEqual(point.x, 0.0)
        self.assertAlmostEqual(point.y, 0.0)


class TestOrientation(unittest.TestCase):

    def test_top_down_view_puts_north_up(self):
        camera = CameraState(yaw_deg=0.0, tilt_deg=90.0)
        point = project_3d([0.0, 1.0, 0.0], 100.0, camera)
        self.assertAlmostEqual(point.x, 0.0)
        self.assertAlmostEqual(point.y, -100.0)  # screen y grows downwards
        east = project_3d([1.0, 0.0, 0.0], 100.0, camera)
        self.assertAlmostEqual(east.x, 100.0)
        self.assertAlmostEqual(east.y, 0.0)

    def test_edge_on_view_shows_height(self):
        camera = CameraState(tilt_deg=0.0)
        point = project_3d([0.0, 0.0, 1.0], 100.0, camera)
        self.assertAlmostEqual(point.y, -100.0)
        behind = project_3d([0.0, 1.0, 0.0], 100.0, camera)
        self.assertAlmostEqual(behind.y, 0.0)
        self.assertAlmostEqual(behind.depth, -100.0)

    def test_yaw_rotates_about_polar_axis(self):
        camera = CameraState(yaw_deg=90.0, tilt_deg=90.0)
        point = project_3d([1.0, 0.0, 0.0], 10.0, camera)
        self.assertAlmostEqual(point.x, 0.0)
        self.assertAlmostEqual(point.y, -10.0)

    def test_projection_is_pure(self):
        camera = CameraState(yaw_deg=20.0, tilt_deg=35.0, zoom=3.0, enable_perspective=True, enable_proximity=True)
        first = project_3d([0.7, -0.2, 0.05], 65.0, camera, body_id='mars')
        second = project_3d([0.7, -0.2, 0.05], 65.0, camera, body_id='mars')
        self.assertEqual(first, second)


class TestPerspective(unittest.TestCase):

    def test_orthographic_without_perspective(self):
        camera = CameraState(tilt_deg=0.0)
        point = project_3d([1.0, -50.0, 0.0], 100.0, camera)
        self.assertEqual(point.scale_factor, 1.0)
        self.assertEqual(point.opacity, 1.0)
        self.assertTrue(point.is_visible)

    def test_point_behind_camera_is_culled(self):
        camera = CameraState(tilt_deg=0.0, enable_perspective=True, enable_proximity=True, zoom=1.0)
        # depth = -y * scale when edge-on; camera distance is 2000 at zoom 1
        point = project_3d([0.0, -30.0, 0.0], 100.0, camera, body_id='mars')
        self.assertFalse(point.is_visible)
        self.assertEqual(point.scale_factor, 0.0)

    def test_scale_factor_grows_toward_camera(self):
        camera = CameraState(tilt_deg=0.0, enable_perspective=True, enable_proximity=True, zoom=1.0)
        near = project_3d([0.0, -10.0, 0.0], 100.0, camera, body_id='sun')
        far = project_3d([0.0, 10.0, 0.0], 100.0, camera, body_id='sun')
        self.assertAlmostEqual(near.scale_factor, 2000.0 / 1000.0)
        self.assertAlmostEqual(far.scale_factor, 2000.0 / 3000.0)

    def test_proximity_moves_camera_with_zoom(self):
        self.assertEqual(CameraState().camera_distance, config.Projection.INFINITE_CAMERA_DIST)
        self.assertAlmostEqual(CameraState(enable_proximity=True, zoom=4.0).camera_distance,
                               config.Projection.BASE_PROXIMITY_CONST / 4.0)

    def test_close_body_fades_out(self):
        camera = CameraState(tilt_deg=0.0, enable_perspective=True, enable_proximity=True, zoom=1.0)
        # dist = 2000 - 1950 = 50 < near plane
        point = project_3d([0.0, -19.5, 0.0], 100.0, camera, body_id='mars')
        self.assertEqual(point.opacity, 0.0)
        self.assertFalse(point.is_visible)

    def test_project_path(self):
        camera = CameraState()
        points = project_path(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]), 10.0, camera)
        self.assertEqual(len(points), 2)
        self.assertAlmostEqual(points[1].x, 10.0)


class TestProximityOpacity(unittest.TestCase):

    def test_star_always_opaque(self):
        self.assertEqual(proximity_opacity('sun', 0.0), 1.0)

    def test_gas_giants_keep_floor(self):
        self.assertEqual(proximity_opacity('jupiter', 0.0), config.Projection.ALWAYS_VISIBLE_MIN_OPACITY)
        self.assertEqual(proximity_opacity('saturn', 10000.0), 1.0)

    def test_default_fade_window(self):
        self.assertEqual(proximity_opacity('mars', 100.0), 0.0)
        self.assertAlmostEqual(proximity_opacity('mars', 250.0), 0.5)
        self.assertEqual(proximity_opacity('mars', 400.0), 1.0)

    def test_inner_bodies_use_smaller_window(self):
        self.assertAlmostEqual(proximity_opacity('mercury', 125.0), 0.5)
        self.assertEqual(proximity_opacity('venus', 200.0), 1.0)
        self.assertLess(proximity_opacity('mars', 200.0), 1.0)


class TestCameraState(unittest.TestCase):

    def test_rotation_wraps_yaw_and_clamps_tilt(self):
        camera = CameraState(yaw_deg=350.0, tilt_deg=80.0).rotated(d_yaw=20.0, d_tilt=30.0)
        self.assertAlmostEqual(camera.yaw_deg, 10.0)
        self.assertEqual(camera.tilt_deg, 90.0)
        camera = camera.rotated(d_yaw=-30.0, d_tilt=-500.0)
        self.assertAlmostEqual(camera.yaw_deg, 340.0)
        self.assertEqual(camera.tilt_deg, -90.0)

    def test_zoom_and_center(self):
        camera = CameraState().zoomed(2.0).zoomed(1.5).centered_on(np.array([1.0, 2.0, 0.0]))
        self.assertAlmostEqual(camera.zoom, 3.0)
        self.assertEqual(camera.pivot, (1.0, 2.0, 0.0))

    def test_rejects_non_positive_zoom(self):
        with self.assertRaises(ValueError):
            CameraState().zoomed(0.0)
        with self.assertRaises(ValueError):
            CameraState(zoom=-1.0)

    def test_true_scale_switches_au_scale(self):
        self.assertEqual(CameraState().au_scale, config.Display.AU_SCALE_SCHEMATIC)
        self.assertEqual(CameraState(true_scale=True).au_scale, config.Display.AU_SCALE_TRUE)


if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
