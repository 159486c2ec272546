"""Position interpolation and prediction package."""

from trajectory.interpolator import (
    EASE_IN_OUT,
    EASE_LINEAR,
    EASE_OUT,
    AnimationHandle,
    animate_position,
    cubic_bezier,
    ease_in_out_cubic,
    ease_out_cubic,
    interpolate_heading,
    interpolate_position,
    lerp,
    normalize_heading,
)
from trajectory.predictor import (
    PositionPredictor,
    calculate_velocity,
    create_predictor,
    predict_position,
    weighted_prediction,
)

__all__ = [
    "EASE_IN_OUT",
    "EASE_LINEAR",
    "EASE_OUT",
    "AnimationHandle",
    "PositionPredictor",
    "animate_position",
    "calculate_velocity",
    "create_predictor",
    "cubic_bezier",
    "ease_in_out_cubic",
    "ease_out_cubic",
    "interpolate_heading",
    "interpolate_position",
    "lerp",
    "normalize_heading",
    "predict_position",
    "weighted_prediction",
]
