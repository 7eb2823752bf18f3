from typing import Any, Dict, Iterable, List, Mapping, Optional

from imam_roster.services.calendar_service import CalendarDay

AUDIENCES = ("admin", "imam", "public")

AVAILABLE = "available"
BOOKED = "booked"
MINE = "mine"
SELECTED = "selected"


def build_rows(
    days: Iterable[CalendarDay],
    bookings: Mapping[str, int],
    imams: Iterable[Mapping[str, Any]],
    audience: str = "public",
    current_imam_id: Optional[int] = None,
    selected: Iterable[str] = (),
) -> List[Dict[str, Any]]:
    """
    One display row per day for the given audience.

    public sees who leads each day ("TBA" when free); admin sees the same plus
    which rows can be freed; imam sees their own days, their pending picks and
    who holds the rest.
    """
    if audience not in AUDIENCES:
        raise ValueError(f"Unknown audience: {audience}")

    names = {imam["id"]: imam["name"] for imam in imams}
    selected = set(selected)
    rows = []
    for day in days:
        owner = bookings.get(day.date_key)
        row = {
            "date_key": day.date_key,
            "hijri": f"{day.hijri_day} {day.hijri_month}",
            "gregorian": f"{day.gregorian_day} {day.gregorian_month} {day.gregorian_year}",
            "weekday": day.weekday,
        }

        if audience == "imam":
            if owner is not None and owner == current_imam_id:
                status, label = MINE, "Your Slot"
            elif owner is not None:
                status, label = BOOKED, f"Booked by {names.get(owner, 'Other')}"
            elif day.date_key in selected:
                status, label = SELECTED, "Selected"
            else:
                status, label = AVAILABLE, "Available"
            row["selectable"] = status != BOOKED
        elif owner is not None:
            status, label = BOOKED, names.get(owner, "Unknown")
        else:
            status, label = AVAILABLE, "Available" if audience == "admin" else "TBA"

        if audience == "admin":
            row["removable"] = owner is not None
        row["status"] = status
        row["imam"] = label
        rows.append(row)
    return rows
