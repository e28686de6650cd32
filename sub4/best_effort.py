from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import InvalidInput

@dataclass(frozen=True)
class BestEffort:
    distance_meters: float
    time_seconds: float
    start_index: int
    end_index: int

def find_best_effort(
    time: Sequence[float],
    distance: Sequence[float],
    target_meters: float,
) -> BestEffort | None:
    """
    Fastest contiguous interval covering `target_meters`, or None when the
    run is too short. Streams are index-aligned and non-decreasing, as Strava
    returns them (`time` in seconds, `distance` in meters).

    Two-pointer sliding window: `j` is shared across iterations of `i` and
    only moves forward, so total work is O(n). When the window overshoots the
    target, the time at exactly `target_meters` is interpolated linearly
    between samples j-1 and j.
    """
    if len(time) != len(distance):
        raise InvalidInput("time and distance streams must have the same length")
    if target_meters < 0:
        raise InvalidInput("target distance must not be negative")
    n = len(distance)
    if n < 2:
        return None
    if distance[-1] - distance[0] < target_meters:
        return None

    best: BestEffort | None = None
    j = 0
    for i in range(n):
        # a zero-length target can leave j behind i on flat samples
        if j < i:
            j = i
        while j < n and distance[j] - distance[i] < target_meters:
            j += 1
        if j >= n:
            break

        covered = distance[j] - distance[i]
        elapsed = time[j] - time[i]
        if covered > target_meters and j > i:
            prev_covered = distance[j - 1] - distance[i]
            if prev_covered < target_meters:
                ratio = (target_meters - prev_covered) / (distance[j] - distance[j - 1])
                elapsed = (time[j - 1] - time[i]) + (time[j] - time[j - 1]) * ratio

        if best is None or elapsed < best.time_seconds:
            best = BestEffort(
                distance_meters=target_meters,
                time_seconds=elapsed,
                start_index=i,
                end_index=j,
            )
    return best

def find_all_best_efforts(
    time: Sequence[float],
    distance: Sequence[float],
    targets: Iterable[float],
) -> dict[float, BestEffort | None]:
    return {t: find_best_effort(time, distance, t) for t in sorted(set(targets))}
