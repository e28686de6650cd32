from dataclasses import dataclass

# target pace 4:00/km
TARGET_PACE_S_PER_KM = 240

@dataclass(frozen=True)
class Milestone:
    key: str
    distance_meters: float
    target_time_seconds: int
    display_name: str

def _milestone(key: str, meters: float, display_name: str) -> Milestone:
    return Milestone(key, meters, round(meters / 1000 * TARGET_PACE_S_PER_KM), display_name)

# ordered by increasing distance
MILESTONES: dict[str, Milestone] = {
    m.key: m for m in (
        _milestone("1km", 1000, "1 km"),
        _milestone("2km", 2000, "2 km"),
        _milestone("5km", 5000, "5 km"),
        _milestone("7.5km", 7500, "7.5 km"),
        _milestone("10km", 10000, "10 km"),
    )
}

MILESTONE_KEYS = list(MILESTONES)

def beats_milestone(key: str, time_seconds: float) -> bool:
    """Ties count as achieved."""
    return time_seconds <= MILESTONES[key].target_time_seconds

def format_time(seconds: float) -> str:
    mins, secs = divmod(int(seconds), 60)
    return f"{mins}:{secs:02d}"
