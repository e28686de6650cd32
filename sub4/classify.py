RUN_TYPES = {"Run", "TrailRun", "VirtualRun"}

def is_run(sport_type: str | None, activity_type: str | None = None) -> bool:
    return sport_type in RUN_TYPES or activity_type in RUN_TYPES
