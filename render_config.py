# render_config.py
"""Zoom-dependent level-of-detail opacity, independent of the camera's proximity fading.

The renderer multiplies the value returned here with `ProjectedPoint.opacity`.
"""
from typing import Optional

from config import config
from physics_utils import smooth_step

INNER = 'inner'
MID = 'mid'
OUTER = 'outer'
STAR = 'sun'


def _check_quality(quality: str):
    if quality not in config.LevelOfDetail.QUALITIES:
        raise ValueError(f"Unknown quality '{quality}'. Expected one of {config.LevelOfDetail.QUALITIES}.")


def get_body_group(body_id: str, semi_major_axis: float) -> str:
    """Classify a body by semi-major axis: star, inner, mid-range or outer."""
    if body_id == config.Projection.STAR_ID:
        return STAR
    if semi_major_axis <= config.LevelOfDetail.INNER_SYSTEM_THRESHOLD_AU:
        return INNER
    if semi_major_axis >= config.LevelOfDetail.OUTER_SYSTEM_THRESHOLD_AU:
        return OUTER
    return MID


def zoom_threshold(group: str, true_scale: bool = False) -> float:
    """
    Zoom level at which a group switches visibility.

    Thresholds are configured for schematic mode; the true-scale threshold is
    scaled by the ratio of the two modes' AU scales so that the same on-screen
    AU size triggers the transition in either mode.
    """
    lod = config.LevelOfDetail
    threshold = lod.INNER_ZOOM_THRESHOLD if group == INNER else lod.OUTER_ZOOM_THRESHOLD
    if true_scale:
        threshold *= config.Display.TRUE_TO_SCHEMATIC_RATIO
    return threshold


def quality_opacity(k: float, threshold: float, quality: str, fades_in_when_zooming_in: bool) -> float:
    """
    Opacity for one region quality setting.

    - performance: always 1.0
    - eco: hard step at *threshold*
    - standard: cubic smoothstep across threshold +/- SMOOTH_WINDOW_FRACTION
    """
    _check_quality(quality)
    if quality == 'performance':
        return 1.0

    if quality == 'eco':
        if fades_in_when_zooming_in:
            return 1.0 if k > threshold else 0.0
        return 1.0 if k < threshold else 0.0

    window = threshold * config.LevelOfDetail.SMOOTH_WINDOW_FRACTION
    eased = smooth_step(threshold - window, threshold + window, k)
    return eased if fades_in_when_zooming_in else 1.0 - eased


def calculate_body_opacity(body_id: str, semi_major_axis: float, k: float,
                           inner_quality: str = 'eco', outer_quality: str = 'eco',
                           true_scale: bool = False) -> float:
    """
    Level-of-detail opacity of a body at zoom *k*.

    Inner bodies disappear when zooming out to the outer system; outer bodies
    (trans-Neptunian region) disappear when zooming in. The star, the gas
    giants and mid-range bodies are always opaque.
    """
    group = get_body_group(body_id, semi_major_axis)
    if group in (STAR, MID) or body_id in config.Projection.ALWAYS_VISIBLE_IDS:
        return 1.0

    if group == INNER:
        return quality_opacity(k, zoom_threshold(INNER, true_scale), inner_quality, fades_in_when_zooming_in=True)
    return quality_opacity(k, zoom_threshold(OUTER, true_scale), outer_quality, fades_in_when_zooming_in=False)


def should_render_comet(distance_au: float, comet_quality: str = 'performance') -> bool:
    """Performance shows every small body; eco only those within the configured distance."""
    _check_quality(comet_quality)
    if comet_quality == 'performance':
        return True
    return distance_au <= config.LevelOfDetail.COMET_ECO_MAX_DISTANCE_AU


def get_visibility_threshold(is_mobile_or_eco: bool) -> float:
    """Opacity below which the renderer skips a body entirely."""
    lod = config.LevelOfDetail
    return lod.ECO_VISIBILITY_THRESHOLD if is_mobile_or_eco else lod.DEFAULT_VISIBILITY_THRESHOLD


def combined_opacity(lod_opacity: float, proximity_opacity: float, floor: Optional[float] = None) -> float:
    """Compose the level-of-detail and camera proximity opacities."""
    value = lod_opacity * proximity_opacity
    if floor is not None and value < floor:
        return 0.0
    return value
