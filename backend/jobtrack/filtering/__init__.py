"""Deterministic filter stages that run before the AI classifier."""

from jobtrack.filtering.board import board_noise_reason, is_board_noise
from jobtrack.filtering.subject import Verdict, classify_subject

__all__ = [
    "Verdict",
    "board_noise_reason",
    "classify_subject",
    "is_board_noise",
]
