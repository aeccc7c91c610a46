"""
Legacy mastery migration and encounter tracking.

Progress saved before SM-2 scheduling existed only has a 0-100 strength and
a last-practiced timestamp. These helpers derive an SM-2 state and encounter
counts from that data. Migration is safe to run repeatedly; callers gate it
on ``needs_migration``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from src.core.models import (
    CURRENT_PROGRESS_VERSION,
    MAX_ENCOUNTER_HISTORY,
    EncounterData,
    EncounterEvent,
    EncounterType,
    MasteryRecord,
    SM2State,
)
from src.core.timeutil import MS_PER_DAY, now_ms, parse_iso_ms, round_half_up

TARGET_ENCOUNTERS = 12

# (exclusive upper strength bound, interval days, repetitions, ease factor)
_STRENGTH_BANDS: tuple[tuple[int, int, int, float], ...] = (
    (40, 1, 1, 2.3),
    (60, 3, 2, 2.5),
    (80, 7, 3, 2.6),
)
_MASTERED_BAND = (14, 4, 2.7)
_NEW_BAND_LIMIT = 20


def migrate_strength_to_sm2(strength: int, last_practiced: str, now: int | None = None) -> SM2State:
    """
    Map a legacy strength onto an SM-2 state.

    Bands:
        0-19   new:       interval 0,  reps 0, EF 2.5, due now
        20-39  learning:  interval 1,  reps 1, EF 2.3
        40-59  familiar:  interval 3,  reps 2, EF 2.5
        60-79  familiar+: interval 7,  reps 3, EF 2.6
        80-100 mastered:  interval 14, reps 4, EF 2.7

    Bands from 20 up are due ``last_practiced + interval`` days; an
    unparsable ``last_practiced`` falls back to now.
    """
    current = now_ms() if now is None else now

    if strength < _NEW_BAND_LIMIT:
        return SM2State(ease_factor=2.5, interval=0, repetitions=0, next_review_date=current)

    base_time = parse_iso_ms(last_practiced)
    if base_time is None:
        base_time = current

    for upper, interval, repetitions, ease_factor in _STRENGTH_BANDS:
        if strength < upper:
            break
    else:
        interval, repetitions, ease_factor = _MASTERED_BAND

    return SM2State(
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_date=base_time + interval * MS_PER_DAY,
    )


def estimate_encounters_from_legacy(record: MasteryRecord) -> EncounterData:
    """Use the legacy attempt counters as a proxy for exercise encounters."""
    exercise_count = record.times_correct + record.times_incorrect
    return EncounterData(
        total=exercise_count,
        by_type={
            EncounterType.EXERCISE: exercise_count,
            EncounterType.FLASHCARD: 0,
            EncounterType.READING: 0,
            EncounterType.LISTENING: 0,
        },
        history=[],
    )


def add_encounter(
    current: EncounterData,
    encounter_type: EncounterType | str,
    now: int | None = None,
) -> EncounterData:
    """
    Record one encounter.

    Returns:
        New EncounterData with the event prepended and history capped at 20
    """
    encounter_type = EncounterType(encounter_type)
    event = EncounterEvent(date=now_ms() if now is None else now, type=encounter_type)
    by_type = dict(current.by_type)
    by_type[encounter_type] = by_type.get(encounter_type, 0) + 1
    return EncounterData(
        total=current.total + 1,
        by_type=by_type,
        history=[event, *current.history][:MAX_ENCOUNTER_HISTORY],
    )


def has_reached_target_encounters(encounters: EncounterData) -> bool:
    return encounters.total >= TARGET_ENCOUNTERS


def get_encounter_progress(encounters: EncounterData) -> int:
    """Percentage of the target encounter count reached, capped at 100."""
    return min(100, round_half_up(encounters.total / TARGET_ENCOUNTERS * 100))


def migrate_legacy_mastery(record: MasteryRecord, now: int | None = None) -> tuple[SM2State, EncounterData]:
    return (
        migrate_strength_to_sm2(record.strength, record.last_practiced, now),
        estimate_encounters_from_legacy(record),
    )


def needs_migration(record: MasteryRecord | Mapping[str, Any] | None) -> bool:
    """
    True when a record has legacy strength data but no SM-2 state.

    Accepts either a MasteryRecord or the raw stored mapping.
    """
    if isinstance(record, MasteryRecord):
        return record.sm2 is None and isinstance(record.last_practiced, str)
    if not isinstance(record, Mapping):
        return False
    strength = record.get("strength")
    return (
        isinstance(strength, (int, float))
        and not isinstance(strength, bool)
        and isinstance(record.get("lastPracticed"), str)
        and "sm2" not in record
    )


def _fill_legacy_defaults(stored: Mapping[str, Any]) -> dict[str, Any]:
    """A version-1 record with a missing strength or date read as 0 and "" (due now)."""
    record = dict(stored)
    if record.get("strength") is None:
        record["strength"] = 0
    if not isinstance(record.get("lastPracticed"), str):
        record["lastPracticed"] = ""
    return record


def migrate_progress_data(raw: dict[str, Any], now: int | None = None) -> tuple[dict[str, Any], bool]:
    """
    Bring a stored progress blob up to the current version.

    Version 1 blobs gain ``sm2`` and ``encounters`` on every legacy record.

    Returns:
        Tuple of (migrated blob, whether anything changed)
    """
    version = raw.get("version", CURRENT_PROGRESS_VERSION)
    if version >= CURRENT_PROGRESS_VERSION:
        return raw, False

    migrated_mastery: dict[str, Any] = {}
    migrated_count = 0
    for word_id, stored in (raw.get("wordMastery") or {}).items():
        if isinstance(stored, Mapping) and "sm2" not in stored:
            legacy = _fill_legacy_defaults(stored)
            try:
                sm2, encounters = migrate_legacy_mastery(MasteryRecord.from_dict(legacy), now)
            except (TypeError, ValueError) as e:
                logger.warning(f"Leaving record {word_id!r} unmigrated: {e}")
            else:
                stored = {**legacy, "sm2": sm2.to_dict(), "encounters": encounters.to_dict()}
                migrated_count += 1
        migrated_mastery[word_id] = stored

    logger.info(f"Migrated progress v{version} -> v{CURRENT_PROGRESS_VERSION} ({migrated_count} records)")
    return {**raw, "version": CURRENT_PROGRESS_VERSION, "wordMastery": migrated_mastery}, True
