"""
Summary statistics of a finished REM.

Means are taken in the linear domain and reported in dB, matching how the
engine averages iterations.
"""

from dataclasses import dataclass

import numpy as np

from nrrem.rem.grid import RemPoint


@dataclass
class RemSummary:
    """Aggregate view of a REM point list."""

    num_points: int
    min_snr_db: float
    max_snr_db: float
    mean_snr_db: float
    min_sinr_db: float
    max_sinr_db: float
    mean_sinr_db: float
    best_point: tuple[float, float, float]


def summarize(points: list[RemPoint]) -> RemSummary:
    """
    Summarize a REM.

    Raises:
        ValueError: If the point list is empty
    """
    if not points:
        raise ValueError("Cannot summarize an empty REM")

    snr = np.array([p.avg_snr_db for p in points])
    sinr = np.array([p.avg_sinr_db for p in points])
    best = points[int(np.argmax(sinr))]

    return RemSummary(
        num_points=len(points),
        min_snr_db=float(snr.min()),
        max_snr_db=float(snr.max()),
        mean_snr_db=float(10 * np.log10(np.mean(10 ** (snr / 10)))),
        min_sinr_db=float(sinr.min()),
        max_sinr_db=float(sinr.max()),
        mean_sinr_db=float(10 * np.log10(np.mean(10 ** (sinr / 10)))),
        best_point=best.position,
    )
