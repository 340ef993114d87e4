"""Feature extraction, hazard prediction and decision heuristics."""

from .decision import Decision, DecisionComposer
from .features import extract_features
from .prediction import predict_hazard_position, time_to_collision

__all__ = [
    "Decision",
    "DecisionComposer",
    "extract_features",
    "predict_hazard_position",
    "time_to_collision",
]
