"""
Statistics over schedule entries and session summaries.

Read-only. Shares the scheduler's conventions: levels are clamped with
`clamp_level` and every date is a UTC calendar day.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from kadi.core.config import settings
from kadi.models.enums import CardType
from kadi.schemas.stats import (
    Averages,
    DayHistory,
    LeitnerStats,
    LevelCount,
    ProgressEntry,
    ReviewTotals,
    StatsOverview,
    TypeTotals,
)
from kadi.schemas.trainer import SessionSummaryRecord
from kadi.services.leitner import MAX_LEVEL, MIN_LEVEL, clamp_level, level_label, utc_today
from kadi.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


def _utc_day(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def display_level(level) -> int:
    """Stored level 0..5 shown as 1..6."""
    return clamp_level(level) + 1


def build_leitner_stats(entries: Iterable[ProgressEntry], today: date) -> LeitnerStats:
    """
    Level distribution and due buckets for one owner.

    Entries due today or earlier count as due today; entries without a due
    date are counted per level but not bucketed.
    """
    entries = list(entries)
    tomorrow = today + timedelta(days=1)

    level_counts: Dict[int, int] = {level: 0 for level in range(MIN_LEVEL, MAX_LEVEL + 1)}
    due_today = due_tomorrow = due_later = 0
    next_due: Optional[date] = None

    for entry in entries:
        level_counts[clamp_level(entry.level)] += 1

        due = entry.due_date
        if due is None:
            continue
        if due <= today:
            due_today += 1
        elif due == tomorrow:
            due_tomorrow += 1
        else:
            due_later += 1
        if due > today and (next_due is None or due < next_due):
            next_due = due

    return LeitnerStats(
        total=len(entries),
        by_level=[
            LevelCount(level=level, label=level_label(level), count=count)
            for level, count in sorted(level_counts.items())
        ],
        due_today_count=due_today,
        due_tomorrow_count=due_tomorrow,
        due_later_count=due_later,
        next_due_date=next_due,
        next_due_in_days=(next_due - today).days if next_due else None,
    )


def _wrong_count(summary: SessionSummaryRecord) -> int:
    if summary.wrong_card_ids is not None:
        return len(summary.wrong_card_ids)
    return max(summary.total_count - summary.correct_count, 0)


def count_types(card_types: Iterable[Optional[CardType]], card_type: Optional[CardType] = None) -> TypeTotals:
    """Cards per type; untyped cards count as vocab."""
    totals = TypeTotals()
    for type_ in card_types:
        if type_ == CardType.SENTENCE:
            totals.sentence += 1
        else:
            totals.vocab += 1
        totals.all += 1

    if card_type == CardType.SENTENCE:
        return TypeTotals(all=totals.sentence, vocab=0, sentence=totals.sentence)
    if card_type == CardType.VOCAB:
        return TypeTotals(all=totals.vocab, vocab=totals.vocab, sentence=0)
    return totals


def build_overview(
    card_types: Iterable[Optional[CardType]],
    entries: Iterable[ProgressEntry],
    summaries: Iterable[SessionSummaryRecord],
    today: date,
    card_type: Optional[CardType] = None,
    history_days: int = 7
) -> StatsOverview:
    """
    Dashboard rollup: totals, level distribution and session history.

    Args:
        card_types: Type of every card of the owner
        entries: Schedule entries (already filtered by card type)
        summaries: Session summaries covering the history window
        today: Current UTC day
        card_type: Type filter applied to the totals
        history_days: Number of days in the history, ending today

    Returns:
        StatsOverview
    """
    history_days = max(1, history_days)

    by_level = {str(level + 1): 0 for level in range(MIN_LEVEL, MAX_LEVEL + 1)}
    for entry in entries:
        by_level[str(display_level(entry.level))] += 1

    days = [today - timedelta(days=offset) for offset in range(history_days - 1, -1, -1)]
    history: Dict[date, DayHistory] = {day: DayHistory(day=day) for day in days}

    total_sessions = total_reviewed = total_correct = total_wrong = 0
    for summary in summaries:
        bucket = history.get(_utc_day(summary.created_at))
        if bucket is None:
            continue
        wrong = _wrong_count(summary)
        bucket.sessions += 1
        bucket.reviewed += summary.total_count
        bucket.correct += summary.correct_count
        bucket.wrong += wrong

        total_sessions += 1
        total_reviewed += summary.total_count
        total_correct += summary.correct_count
        total_wrong += wrong

    today_bucket = history[today]
    averages = Averages(
        accuracy=total_correct / total_reviewed if total_reviewed > 0 else 0.0,
        avg_wrong_per_session=total_wrong / total_sessions if total_sessions > 0 else 0.0,
        avg_cards_per_session=total_reviewed / total_sessions if total_sessions > 0 else 0.0,
    )

    return StatsOverview(
        totals=count_types(card_types, card_type),
        by_level=by_level,
        today=ReviewTotals(
            reviewed=today_bucket.reviewed,
            correct=today_bucket.correct,
            wrong=today_bucket.wrong
        ),
        history=[history[day] for day in days],
        averages=averages,
    )


async def get_leitner_stats(
    store: ProgressStore,
    owner_key: str,
    card_type: Optional[CardType] = None,
    today: Optional[date] = None
) -> LeitnerStats:
    entries = await store.fetch_progress_entries(owner_key, card_type)
    return build_leitner_stats(entries, today or utc_today())


async def get_overview(
    store: ProgressStore,
    owner_key: str,
    card_type: Optional[CardType] = None,
    today: Optional[date] = None,
    history_days: Optional[int] = None
) -> StatsOverview:
    today = today or utc_today()
    history_days = history_days or settings.stats_history_days
    start = today - timedelta(days=max(1, history_days) - 1)

    card_types = await store.fetch_card_types(owner_key)
    entries = await store.fetch_progress_entries(owner_key, card_type)
    summaries = await store.fetch_session_summaries(owner_key, start, today)
    logger.info(
        f"Stats overview for owner {owner_key}: {len(entries)} entries, "
        f"{len(summaries)} session(s) since {start}"
    )
    return build_overview(card_types, entries, summaries, today, card_type, history_days)
