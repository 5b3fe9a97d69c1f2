"""
Display helpers shared by the shift tables and totals views.
"""
import math
from typing import Dict, List, Optional

from ..schemas.clocking import Shift, UserProfile


def format_duration(hours: Optional[float]) -> str:
    """Hours as "Xh Ym"; "-" when there is no duration."""
    if hours is None:
        return "-"
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{whole}h {minutes}m"


def short_location(full_location: Optional[str]) -> str:
    """
    Shorten a reverse-geocoded address to its leading place name,
    e.g. "Sandton Ward 103, Johannesburg, ..." -> "Sandton".
    """
    if not full_location:
        return "N/A"
    first = full_location.split(",")[0]
    return first.split("Ward")[0].split("Local Municipality")[0].strip()


def display_name(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return "Unknown User"
    if profile.name and profile.surname:
        return f"{profile.name} {profile.surname}"
    return profile.email or "Unknown User"


def on_duty_user_ids(shifts_by_user: Dict[str, List[Shift]]) -> List[str]:
    """Users with an open shift, sorted by id."""
    return sorted(user_id for user_id, shifts in shifts_by_user.items() if any(s.is_open for s in shifts))
