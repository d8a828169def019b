# projection.py
import math
import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, List

import numpy as np

from config import config
from physics_utils import clamp, normalize_angle


@dataclass(frozen=True)
class CameraState:
    """Snapshot of the view used for one frame.

    Attributes:
        yaw_deg (float): Rotation about the polar (z) axis, 0-360.
        tilt_deg (float): 90 looks down from the north pole, 0 is edge-on,
                          -90 looks up from the south pole.
        zoom (float): Current zoom factor k.
        pivot (tuple): Center of rotation in AU.
        enable_perspective (bool): Apply the perspective divide.
        enable_proximity (bool): Camera distance shrinks as zoom grows.
        true_scale (bool): True-scale display mode instead of schematic.
    """
    yaw_deg: float = 0.0
    tilt_deg: float = 90.0
    zoom: float = 1.0
    pivot: tuple = (0.0, 0.0, 0.0)
    enable_perspective: bool = False
    enable_proximity: bool = False
    true_scale: bool = False

    def __post_init__(self):
        if self.zoom <= 0:
            raise ValueError(f"Zoom must be positive, got {self.zoom}.")

    @property
    def au_scale(self) -> float:
        return config.Display.AU_SCALE_TRUE if self.true_scale else config.Display.AU_SCALE_SCHEMATIC

    @property
    def camera_distance(self) -> float:
        """Effective camera distance in screen units."""
        if self.enable_proximity:
            return config.Projection.BASE_PROXIMITY_CONST / self.zoom
        return config.Projection.INFINITE_CAMERA_DIST

    def rotated(self, d_yaw: float = 0.0, d_tilt: float = 0.0) -> 'CameraState':
        """New state with yaw wrapped into [0, 360) and tilt clamped to [-90, 90]."""
        return replace(
            self,
            yaw_deg=normalize_angle(self.yaw_deg + d_yaw),
            tilt_deg=clamp(self.tilt_deg + d_tilt, config.Projection.MIN_TILT_DEG, config.Projection.MAX_TILT_DEG),
        )

    def zoomed(self, factor: float) -> 'CameraState':
        return replace(self, zoom=self.zoom * factor)

    def centered_on(self, pivot) -> 'CameraState':
        return replace(self, pivot=tuple(float(c) for c in pivot))


@dataclass(frozen=True)
class ProjectedPoint:
    x: float
    y: float
    depth: float
    scale_factor: float
    opacity: float  # proximity opacity only
    is_visible: bool


def proximity_opacity(body_id: Optional[str], dist: float) -> float:
    """
    Opacity of a body whose distance to the camera plane is *dist*.

    The star is always opaque. The always-visible tier fades but never below
    its floor. Every other body fades to zero across [near_plane,
    near_plane + fade_range]; the two innermost bodies use smaller parameters.
    """
    proj = config.Projection
    if body_id == proj.STAR_ID:
        return 1.0

    if body_id in proj.INNER_BODY_IDS:
        near_plane, fade_range = proj.INNER_NEAR_PLANE, proj.INNER_FADE_RANGE
    else:
        near_plane, fade_range = proj.NEAR_PLANE, proj.FADE_RANGE

    if dist <= near_plane:
        opacity = 0.0
    elif dist < near_plane + fade_range:
        opacity = (dist - near_plane) / fade_range
    else:
        opacity = 1.0

    if body_id in proj.ALWAYS_VISIBLE_IDS:
        return max(opacity, proj.ALWAYS_VISIBLE_MIN_OPACITY)
    return opacity


def project_3d(position: Sequence[float], scale: float, camera: CameraState,
               body_id: Optional[str] = None, pivot: Optional[Sequence[float]] = None) -> ProjectedPoint:
    """
    Project a heliocentric position (AU) to screen space.

    1. Translate relative to the pivot.
    2. Rotate about z by yaw.
    3. Tilt about x while projecting orthographically: north maps to the top
       of the screen (screen y grows downwards).
    4. Optionally apply perspective, hard-culling anything behind the camera,
       and fade bodies that come too close.

    Pure: the same inputs always give the same point, and the pivot itself
    always lands on (0, 0) at depth 0.
    """
    if pivot is None:
        pivot = camera.pivot

    tilt = math.radians(camera.tilt_deg)
    yaw = math.radians(camera.yaw_deg)
    sin_tilt, cos_tilt = math.sin(tilt), math.cos(tilt)
    sin_yaw, cos_yaw = math.sin(yaw), math.cos(yaw)

    x_rel = float(position[0]) - float(pivot[0])
    y_rel = float(position[1]) - float(pivot[1])
    z_rel = float(position[2]) - float(pivot[2])

    x_yaw = x_rel * cos_yaw - y_rel * sin_yaw
    y_yaw = x_rel * sin_yaw + y_rel * cos_yaw
    z_yaw = z_rel

    x_screen = x_yaw * scale
    y_screen = -(y_yaw * sin_tilt + z_yaw * cos_tilt) * scale
    depth = (z_yaw * sin_tilt - y_yaw * cos_tilt) * scale

    scale_factor = 1.0
    opacity = 1.0

    if camera.enable_perspective:
        camera_distance = camera.camera_distance
        dist = camera_distance - depth

        # Behind the camera
        if dist <= 0:
            if config.Debug.PROJECTION:
                logging.debug(f"Culled '{body_id}' behind camera (depth={depth:.2f}, camera={camera_distance:.2f}).")
            return ProjectedPoint(x=0.0, y=0.0, depth=depth, scale_factor=0.0, opacity=0.0, is_visible=False)

        scale_factor = camera_distance / dist
        opacity = proximity_opacity(body_id, dist)

    return ProjectedPoint(
        x=x_screen * scale_factor,
        y=y_screen * scale_factor,
        depth=depth,
        scale_factor=scale_factor,
        opacity=opacity,
        is_visible=opacity >= config.Projection.VISIBILITY_EPSILON,
    )


def project_path(points: np.ndarray, scale: float, camera: CameraState,
                 body_id: Optional[str] = None, pivot: Optional[Sequence[float]] = None) -> List[ProjectedPoint]:
    """Project every row of an (N, 3) array, e.g. an orbit path."""
    return [project_3d(point, scale, camera, body_id, pivot) for point in points]
