from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from typing import Literal

from fleetops.services.durations import MonthKey, format_duration
from fleetops.services.overtime_entries import OvertimeEntry, merge_entries

ResolutionOutcome = Literal["CREATED_BUCKET", "APPENDED_ENTRY", "MERGED_ENTRY"]


@dataclass(frozen=True, slots=True)
class MonthlyOvertimeBucket:
    month: MonthKey
    entries: tuple[OvertimeEntry, ...] = ()
    total_minutes: int = 0
    formatted_total: str = "0h 0m"

    @property
    def month_key(self) -> str:
        return self.month.label

    def sorted_entries(self) -> list[OvertimeEntry]:
        return sorted(self.entries, key=lambda entry: entry.date)


@dataclass(frozen=True, slots=True)
class BucketResolution:
    buckets: tuple[MonthlyOvertimeBucket, ...]
    index: int
    outcome: ResolutionOutcome

    @property
    def bucket(self) -> MonthlyOvertimeBucket:
        return self.buckets[self.index]


def recompute_bucket(bucket: MonthlyOvertimeBucket) -> MonthlyOvertimeBucket:
    total_minutes = sum(entry.total_minutes for entry in bucket.entries)
    return replace(
        bucket,
        total_minutes=total_minutes,
        formatted_total=format_duration(total_minutes),
    )


def find_bucket(
    buckets: Sequence[MonthlyOvertimeBucket],
    month: MonthKey,
) -> tuple[int, MonthlyOvertimeBucket] | None:
    for index, bucket in enumerate(buckets):
        if bucket.month == month:
            return index, bucket
    return None


def find_entry(bucket: MonthlyOvertimeBucket, day: date) -> tuple[int, OvertimeEntry] | None:
    for index, entry in enumerate(bucket.entries):
        if entry.date == day:
            return index, entry
    return None


def resolve_bucket(
    buckets: Sequence[MonthlyOvertimeBucket],
    entry: OvertimeEntry,
) -> BucketResolution:
    """Place ``entry`` into its month bucket.

    A missing month gets a new bucket appended at the end. Inside an existing
    bucket the entry is either appended or merged into the entry for the same
    day. The touched bucket is rolled up again before it is returned.
    """
    current = tuple(buckets)
    located_bucket = find_bucket(current, entry.month)

    if located_bucket is None:
        new_bucket = recompute_bucket(MonthlyOvertimeBucket(month=entry.month, entries=(entry,)))
        return BucketResolution(
            buckets=current + (new_bucket,),
            index=len(current),
            outcome="CREATED_BUCKET",
        )

    bucket_index, bucket = located_bucket
    located_entry = find_entry(bucket, entry.date)
    if located_entry is None:
        entries = bucket.entries + (entry,)
        outcome: ResolutionOutcome = "APPENDED_ENTRY"
    else:
        entry_index, existing = located_entry
        entries = (
            bucket.entries[:entry_index]
            + (merge_entries(existing, entry),)
            + bucket.entries[entry_index + 1 :]
        )
        outcome = "MERGED_ENTRY"

    updated_bucket = recompute_bucket(replace(bucket, entries=entries))
    return BucketResolution(
        buckets=current[:bucket_index] + (updated_bucket,) + current[bucket_index + 1 :],
        index=bucket_index,
        outcome=outcome,
    )
