# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Overlap engine, pure computation, no I/O.

Every member's working window becomes a 24-slot boolean mask in the viewer's
local hours; overlaps are element-wise ANDs of masks. The result is a pure
function of (viewer timezone, members, selection, coarse "now"): the instant
is quantized to OVERLAP_REFRESH_SECONDS buckets, so repeated calls inside one
bucket reuse the memoized rows and always agree.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from itertools import chain
from typing import Iterable, Optional, Sequence

from collabtime.core.config import settings
from collabtime.models.domain import Member
from collabtime.services.timezones import (
    HOURS_IN_DAY,
    convert_hour_to_timezone,
    format_hour,
    get_current_time_position,
)

Mask = tuple[bool, ...]

NO_OVERLAP_TEXT = "No overlap in your time"
EMPTY_MASK: Mask = (False,) * HOURS_IN_DAY


@dataclass(frozen=True)
class MemberRow:
    member: Member
    hours: Mask


@dataclass(frozen=True)
class OverlapView:
    viewer_timezone: str
    rows: tuple[MemberRow, ...]
    pair: tuple[Optional[str], Optional[str]]
    pair_overlap: Mask
    selection_overlap: Mask
    summary: str
    intervals: tuple[tuple[int, int], ...]
    now_position: float
    selected_ids: tuple[str, ...] = field(default=())


# ── Clock ──

def coarse_now(now: Optional[datetime] = None, interval: Optional[int] = None) -> datetime:
    """Floor the instant to the refresh bucket so recomputation is coarse."""
    step = interval or settings.OVERLAP_REFRESH_SECONDS
    current = now or datetime.now(timezone.utc)
    bucket = int(current.timestamp()) // step * step
    return datetime.fromtimestamp(bucket, tz=timezone.utc)


# ── Masks ──

def window_hours(start: int, end: int) -> Iterable[int]:
    """Hours covered by [start, end) in member-local time, honoring wraparound."""
    if start == end:
        return ()
    if start < end:
        return range(start, end)
    return chain(range(start, HOURS_IN_DAY), range(0, end))


def working_mask(member: Member, viewer_tz: str, now: Optional[datetime] = None) -> Mask:
    hours = [False] * HOURS_IN_DAY
    for hour in window_hours(member.working_hours_start, member.working_hours_end):
        hours[convert_hour_to_timezone(hour, member.timezone, viewer_tz, now)] = True
    return tuple(hours)


def intersect_masks(*masks: Mask) -> Mask:
    """Element-wise AND; with no masks nothing overlaps."""
    if not masks:
        return EMPTY_MASK
    return tuple(all(mask[hour] for mask in masks) for hour in range(HOURS_IN_DAY))


def summarize_overlap(mask: Mask) -> str:
    """
    "first true .. last true + 1" of the mask.

    This does not merge intervals: for a non-contiguous mask (possible when a
    window wraps midnight) the span covers the gap too. overlap_intervals()
    gives the exact report.
    """
    if True not in mask:
        return NO_OVERLAP_TEXT
    first = mask.index(True)
    last = HOURS_IN_DAY - 1 - mask[::-1].index(True)
    return f"{format_hour(first)} – {format_hour((last + 1) % HOURS_IN_DAY)}"


def overlap_intervals(mask: Mask) -> tuple[tuple[int, int], ...]:
    """
    Maximal runs of true hours as (start, end) exclusive pairs.
    A run touching both 0 and 23 is joined across midnight, giving start > end.
    An all-true mask is the single interval (0, 24).
    """
    if mask and all(mask):
        return ((0, HOURS_IN_DAY),)
    runs: list[list[int]] = []
    for hour, on in enumerate(mask):
        if not on:
            continue
        if runs and runs[-1][1] == hour:
            runs[-1][1] = hour + 1
        else:
            runs.append([hour, hour + 1])
    if len(runs) > 1 and runs[0][0] == 0 and runs[-1][1] == HOURS_IN_DAY:
        tail = runs.pop()
        runs[0][0] = tail[0]
    return tuple((start, end % HOURS_IN_DAY) for start, end in runs)


# ── Selection ──

def select_members(
    members: Sequence[Member],
    member_ids: Optional[Iterable[str]] = None,
    group_ids: Optional[Iterable[str]] = None,
) -> tuple[Member, ...]:
    """Subset of members (team order kept) matching any given id or group."""
    if member_ids is None and group_ids is None:
        return tuple(members)
    wanted_ids = set(member_ids or ())
    wanted_groups = set(group_ids or ())
    return tuple(
        m for m in members
        if m.id in wanted_ids or (m.group_id is not None and m.group_id in wanted_groups)
    )


def resolve_pair(
    member_ids: Sequence[str],
    selected_a: Optional[str] = None,
    selected_b: Optional[str] = None,
) -> tuple[Optional[str], Optional[str]]:
    """
    Pick the two members compared in the pairwise view.
    A stale or missing choice falls back to the first id (A) or the first id
    different from A (B); A and B are never the same member.
    """
    ids = list(member_ids)
    a = selected_a if selected_a in ids else (ids[0] if ids else None)
    if selected_b in ids and selected_b != a:
        b = selected_b
    else:
        b = next((i for i in ids if i != a), None)
    return a, b


# ── View ──

@lru_cache(maxsize=128)
def _rows_for(members: tuple[Member, ...], viewer_tz: str, bucket: datetime) -> tuple[MemberRow, ...]:
    return tuple(MemberRow(member=m, hours=working_mask(m, viewer_tz, bucket)) for m in members)


def build_member_rows(
    members: Sequence[Member], viewer_tz: str, now: Optional[datetime] = None
) -> tuple[MemberRow, ...]:
    return _rows_for(tuple(members), viewer_tz, coarse_now(now))


def compute_overlap_view(
    members: Sequence[Member],
    viewer_tz: str,
    selected_a: Optional[str] = None,
    selected_b: Optional[str] = None,
    member_ids: Optional[Iterable[str]] = None,
    group_ids: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> OverlapView:
    """Everything the visualizer needs, derived from the current snapshot."""
    bucket = coarse_now(now)
    rows = _rows_for(tuple(members), viewer_tz, bucket)
    by_id = {row.member.id: row for row in rows}

    a, b = resolve_pair([m.id for m in members], selected_a, selected_b)
    if a in by_id and b in by_id:
        pair_overlap = intersect_masks(by_id[a].hours, by_id[b].hours)
    else:
        pair_overlap = EMPTY_MASK

    selected = select_members(members, member_ids, group_ids)
    selection_overlap = intersect_masks(*(by_id[m.id].hours for m in selected))

    return OverlapView(
        viewer_timezone=viewer_tz,
        rows=rows,
        pair=(a, b),
        pair_overlap=pair_overlap,
        selection_overlap=selection_overlap,
        summary=summarize_overlap(pair_overlap),
        intervals=overlap_intervals(pair_overlap),
        now_position=get_current_time_position(viewer_tz, bucket),
        selected_ids=tuple(m.id for m in selected),
    )
