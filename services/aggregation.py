# services/aggregation.py
"""
Training statistics over a user's workouts.

Everything here is a pure function of its arguments: input records are
never mutated and nothing is persisted. Records with a non-positive sets,
reps or weight (which the validator never produces, but an old cache or a
hand-edited backup might) are dropped before any statistic is computed.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Sequence

from models.workout_schemas import (
    AggregateSnapshot,
    ExerciseCount,
    ExerciseOneRepMax,
    TodayStats,
    VolumePoint,
    WorkoutRecord,
)

PERIOD_DAYS = {
    'today': 1,
    '7days': 7,
    '30days': 30,
    '90days': 90,
}
DEFAULT_PERIOD = '30days'
TOP_EXERCISE_LIMIT = 10

def _round_half_up(numerator: int, denominator: int) -> int:
    # Exact integer rounding of numerator/denominator, .5 goes up
    return (2 * numerator + denominator) // (2 * denominator)

def is_well_formed(record: WorkoutRecord) -> bool:
    return record.sets > 0 and record.reps > 0 and record.weight > 0

def well_formed(records: Iterable[WorkoutRecord]) -> List[WorkoutRecord]:
    return [r for r in records if is_well_formed(r)]

def workout_volume(record: WorkoutRecord) -> int:
    """sets x reps x weight, or 0 for a malformed record"""
    if not is_well_formed(record):
        return 0
    return record.volume

def total_volume(records: Iterable[WorkoutRecord]) -> int:
    return sum(workout_volume(r) for r in records)

def average_weight(records: Iterable[WorkoutRecord]) -> int:
    """Mean weight rounded to the nearest integer, 0 when there is nothing to average"""
    weights = [r.weight for r in well_formed(records)]
    if not weights:
        return 0
    return _round_half_up(sum(weights), len(weights))

def estimate_one_rep_max(weight: int, reps: int) -> int:
    """Epley estimate: weight * (1 + reps/30), rounded"""
    return _round_half_up(weight * (30 + reps), 30)

def period_days(period: str) -> int:
    return PERIOD_DAYS.get(period, PERIOD_DAYS[DEFAULT_PERIOD])

def normalize_period(period: str) -> str:
    return period if period in PERIOD_DAYS else DEFAULT_PERIOD

def window_start(today: date, days: int) -> date:
    return today - timedelta(days=days - 1)

def in_window(records: Iterable[WorkoutRecord], today: date, days: int) -> List[WorkoutRecord]:
    start = window_start(today, days)
    return [r for r in well_formed(records) if start <= r.workout_date <= today]

def volume_by_date(records: Iterable[WorkoutRecord], today: date, days: int) -> List[VolumePoint]:
    """
    Daily volume for the `days` calendar days ending at `today`.

    Dense: every day in the window is present, zero when nothing was
    logged, in ascending order.
    """
    start = window_start(today, days)
    buckets: Dict[date, int] = {start + timedelta(days=i): 0 for i in range(days)}

    for record in in_window(records, today, days):
        buckets[record.workout_date] += workout_volume(record)

    return [VolumePoint(date=day, volume=volume) for day, volume in buckets.items()]

def top_exercises(records: Iterable[WorkoutRecord], limit: int = TOP_EXERCISE_LIMIT) -> List[ExerciseCount]:
    """Most frequent exercises, ties kept in first-seen order"""
    counts: Dict[str, int] = {}
    for record in well_formed(records):
        counts[record.exercise] = counts.get(record.exercise, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [ExerciseCount(exercise=name, count=count) for name, count in ranked[:limit]]

def best_one_rep_max_by_exercise(records: Iterable[WorkoutRecord]) -> List[ExerciseOneRepMax]:
    best: Dict[str, ExerciseOneRepMax] = {}
    for record in well_formed(records):
        estimate = estimate_one_rep_max(record.weight, record.reps)
        current = best.get(record.exercise)
        if current is None or estimate > current.one_rep_max:
            best[record.exercise] = ExerciseOneRepMax(
                exercise=record.exercise,
                one_rep_max=estimate,
                weight=record.weight,
                reps=record.reps,
                workout_date=record.workout_date,
            )

    return sorted(best.values(), key=lambda item: item.one_rep_max, reverse=True)

def today_stats(records: Sequence[WorkoutRecord], today: date) -> TodayStats:
    """Dashboard numbers for workouts logged today"""
    todays = in_window(records, today, 1)
    return TodayStats(
        workouts=len(todays),
        total_volume=total_volume(todays),
        avg_weight=average_weight(todays),
    )

def build_snapshot(records: Sequence[WorkoutRecord], today: date, period: str = DEFAULT_PERIOD) -> AggregateSnapshot:
    period = normalize_period(period)
    days = period_days(period)
    selected = in_window(records, today, days)

    return AggregateSnapshot(
        period=period,
        days=days,
        period_workout_count=len(selected),
        total_volume=total_volume(selected),
        average_weight=average_weight(selected),
        volume_by_date=volume_by_date(selected, today, days),
        top_exercises=top_exercises(selected),
    )
