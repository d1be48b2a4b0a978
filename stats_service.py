from __future__ import annotations
from typing import Dict

from db import ExerciseSetRepository


def _truncated_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


class StatisticsService:
    """Compute workout statistics for analysis."""

    def __init__(self, set_repo: ExerciseSetRepository) -> None:
        self.sets = set_repo

    def overview(self) -> Dict[str, int]:
        """Return aggregated statistics over all workouts and sets.

        A workout's duration runs from its start to its last set; workouts
        without sets are not counted. Averages truncate toward zero.
        """
        spans = self.sets.workout_spans()
        if not spans:
            return {
                "total_workouts": 0,
                "total_duration_s": 0,
                "avg_duration_s": 0,
                "total_sets": 0,
                "total_repetitions": 0,
                "avg_repetitions_per_set": 0,
            }
        total_workouts = len(spans)
        total_duration = sum(int(end) - int(start) for _wid, start, end in spans)
        total_sets, total_reps, avg_reps = self.sets.totals()
        return {
            "total_workouts": total_workouts,
            "total_duration_s": total_duration,
            "avg_duration_s": _truncated_div(total_duration, total_workouts),
            "total_sets": total_sets,
            "total_repetitions": total_reps,
            "avg_repetitions_per_set": avg_reps,
        }
