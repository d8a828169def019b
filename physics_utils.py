# physics_utils.py

import math

import numpy as np

class PhysicsError(Exception):
    """Custom exception for physics-related errors, such as malformed orbital elements."""
    pass

def safe_divide(numerator, denominator, epsilon=1e-12, default_on_zero_denom=0.0):
    """
    Safely divides two numbers, handling potential division by zero.

    Args:
        numerator (float or np.ndarray): The number(s) to be divided.
        denominator (float or np.ndarray): The number(s) to divide by.
        epsilon (float): Threshold below which the denominator is considered zero.
        default_on_zero_denom (float): Value to return if denominator is effectively zero.
                                       float('inf') / float('-inf') pick the infinity matching
                                       the numerator's sign (0/0 stays 0).

    Returns:
        float or np.ndarray: The result of the division, or default_on_zero_denom if denominator is near zero.
    """
    if isinstance(denominator, np.ndarray):
        is_zero = np.abs(denominator) < epsilon
        if default_on_zero_denom == float('inf') or default_on_zero_denom == float('-inf'):
            default_vals = np.where(numerator > 0, float('inf'),
                                    np.where(numerator < 0, float('-inf'), 0.0))
        else:
            default_vals = np.full_like(denominator, default_on_zero_denom, dtype=np.float64)

        result = np.divide(numerator, denominator, out=np.zeros_like(denominator, dtype=np.float64), where=~is_zero)
        result[is_zero] = default_vals[is_zero] if isinstance(default_vals, np.ndarray) else default_vals
        return result
    else:
        if abs(denominator) < epsilon:
            if default_on_zero_denom == float('inf') or default_on_zero_denom == float('-inf'):
                if abs(numerator) < epsilon:
                    return 0.0
                return float('inf') if numerator > 0 else float('-inf')
            return default_on_zero_denom
        return numerator / denominator

def normalize_angle(degrees: float) -> float:
    """Wrap an angle in degrees into [0, 360)."""
    result = math.fmod(degrees, 360.0)
    if result < 0:
        result += 360.0
    # fmod of a tiny negative value can round up to exactly 360
    if result >= 360.0:
        result = 0.0
    return result

def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp *value* between *lo* and *hi*."""
    return max(lo, min(hi, value))

def smooth_step(edge0: float, edge1: float, x: float) -> float:
    """Cubic Hermite easing of *x* across [edge0, edge1]: t^2 (3 - 2t)."""
    if edge1 == edge0:
        return 1.0 if x >= edge1 else 0.0
    t = clamp((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)

def angle_between_vectors(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    Angle between two 3D vectors in degrees.

    Zero-length vectors yield 0.0 rather than NaN. The cosine is clamped to
    [-1, 1] before acos so rounding never leaves the domain.
    """
    mag1 = float(np.linalg.norm(v1))
    mag2 = float(np.linalg.norm(v2))
    cos_theta = clamp(safe_divide(float(np.dot(v1, v2)), mag1 * mag2, default_on_zero_denom=1.0), -1.0, 1.0)
    return math.degrees(math.acos(cos_theta))

def ecliptic_longitude(vector: np.ndarray) -> float:
    """In-plane longitude of a vector (atan2 of y over x) in [0, 360)."""
    return normalize_angle(math.degrees(math.atan2(vector[1], vector[0])))

def angular_span(longitudes) -> float:
    """
    Smallest arc (degrees) containing every longitude.

    The longitudes are sorted and the largest gap between neighbours is found,
    including the wraparound gap from the last back to the first; the span is
    360 minus that gap. Fewer than two longitudes span nothing.
    """
    ordered = sorted(longitudes)
    if len(ordered) < 2:
        return 0.0
    max_gap = 0.0
    for lower, upper in zip(ordered, ordered[1:]):
        max_gap = max(max_gap, upper - lower)
    wrap_gap = 360.0 - (ordered[-1] - ordered[0])
    max_gap = max(max_gap, wrap_gap)
    return 360.0 - max_gap
