# elevatehub/utils/rooms.py
# Realtime room names: one room per (job, participant pair).
from typing import Optional, Tuple

ROOM_PREFIX = "job"


def ordered_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def room_key(job_id: str, user_a: str, user_b: str) -> str:
    lo, hi = ordered_pair(user_a, user_b)
    return f"{ROOM_PREFIX}:{job_id}:{lo}:{hi}"


def parse_room_key(room_id: str) -> Optional[Tuple[str, str, str]]:
    """Return (job_id, lo, hi), or None if `room_id` is not a room key."""
    parts = room_id.split(":") if room_id else []
    if len(parts) != 4 or parts[0] != ROOM_PREFIX or not all(parts[1:]):
        return None
    return parts[1], parts[2], parts[3]
