"""
Trainer session orchestration.

Binds the pure engine in `trainer_engine` to a `ProgressStore`:

- loads the queue (due cards, all cards, or last-missed cards),
- persists every grade before the queue advances,
- re-queues missed cards within the session, at most `repeat_cap` times,
- keeps the cross-session last-missed set up to date,
- appends a session summary once the queue is exhausted.
"""
import logging
import random
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from kadi.core.config import settings
from kadi.core.exceptions import SessionStateError, StoreError
from kadi.models.enums import CardType, DrillSource, LearnMode, TrainerStatus
from kadi.schemas.trainer import CardSnapshot, SessionSummary, TrainerState
from kadi.services import trainer_engine as engine
from kadi.services.leitner import grade_card
from kadi.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class TrainerSession:
    """One learner working through one queue of cards."""

    def __init__(
        self,
        store: ProgressStore,
        owner_key: str,
        mode: LearnMode = LearnMode.LEITNER,
        drill_source: DrillSource = DrillSource.ALL,
        repeat_cap: Optional[int] = None,
        shuffle: bool = True,
        rng: Optional[random.Random] = None
    ):
        self.store = store
        self.owner_key = owner_key
        self.mode = mode
        self.drill_source = drill_source
        self.repeat_cap = settings.session_repeat_cap if repeat_cap is None else max(0, repeat_cap)
        self.shuffle = shuffle
        self.rng = rng or random.Random()

        self.state = TrainerState()
        self.error: Optional[str] = None
        self.answered: Set[str] = set()
        self._seen_ids: List[str] = []
        self._wrong_ids: List[str] = []
        self._repeat_counts: Dict[str, int] = {}
        self._summary_saved = False

    @property
    def status(self) -> TrainerStatus:
        return self.state.status

    @property
    def current_item(self) -> Optional[CardSnapshot]:
        if self.state.status not in (TrainerStatus.IN_SESSION, TrainerStatus.ERROR):
            return None
        return engine.current_item(self.state)

    @property
    def progress(self) -> Tuple[int, int]:
        """(1-based position of the current card, queue length)."""
        total = len(self.state.items)
        return (0 if total == 0 else self.state.index + 1, total)

    @property
    def wrong_card_ids(self) -> List[str]:
        return list(self._wrong_ids)

    def _reset_tracking(self) -> None:
        self.error = None
        self.answered = set()
        self._seen_ids = []
        self._wrong_ids = []
        self._repeat_counts = {}
        self._summary_saved = False

    async def _load(self, card_type: Optional[CardType]) -> List[CardSnapshot]:
        if self.mode == LearnMode.LEITNER:
            return await self.store.fetch_due_cards(self.owner_key, card_type)
        if self.drill_source == DrillSource.LAST_MISSED:
            return await self.store.fetch_last_missed(self.owner_key, card_type)
        return await self.store.fetch_all_cards(self.owner_key, card_type)

    async def start(self, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        """
        Load the queue and start the session.

        A load failure moves the session to the error status with a message;
        the previous queue is discarded and nothing is raised.

        Returns:
            The session queue (empty on failure or when nothing is due)
        """
        self._reset_tracking()
        self.state = TrainerState(status=TrainerStatus.LOADING)
        try:
            loaded = await self._load(card_type)
        except StoreError as e:
            logger.error(f"Could not start {self.mode.value} session for owner {self.owner_key}: {str(e)}")
            self.error = str(e) or "Session could not be started."
            self.state = TrainerState(status=TrainerStatus.ERROR)
            return []

        items = engine.normalize_snapshots(loaded)
        if self.shuffle:
            self.rng.shuffle(items)
        self.state = engine.init_session(items)
        self._seen_ids = list(dict.fromkeys(item.card_id for item in items))
        logger.info(f"Started {self.mode.value} session for owner {self.owner_key} with {len(items)} card(s)")
        return self.state.items

    def on_reveal(self) -> TrainerState:
        self.state = engine.reveal(self.state)
        return self.state

    async def on_grade(
        self,
        correct: bool,
        answered: Optional[Set[str]] = None,
        now: Optional[datetime] = None
    ) -> TrainerState:
        """
        Grade the current card, persist the result, then advance.

        Args:
            correct: Whether the learner knew the card
            answered: Card IDs already done this session (defaults to the session's own set)
            now: Grading instant (defaults to now)

        Returns:
            The state after advancing

        Raises:
            SessionStateError: If there is no card to grade
            StoreError: If the grade could not be saved. The session is left in
                the error status on the same card so grading can be retried.
        """
        item = engine.current_item(self.state)
        if self.state.status not in (TrainerStatus.IN_SESSION, TrainerStatus.ERROR) or item is None:
            raise SessionStateError("No card to grade")

        base_answered = set(self.answered if answered is None else answered)
        graded = engine.grade_success(self.state) if correct else engine.grade_fail(self.state)
        card_id = engine.resolve_card_id(item)
        requeue_item = None

        if card_id:
            try:
                requeue_item = await self._persist(item, correct, now)
            except StoreError as e:
                logger.error(f"Grade for card {card_id} not saved, staying on card: {str(e)}")
                self.error = str(e)
                self.state = graded.model_copy(update={"status": TrainerStatus.ERROR})
                raise

            if correct:
                base_answered.add(card_id)
            else:
                if card_id not in self._wrong_ids:
                    self._wrong_ids.append(card_id)
                repeats = self._repeat_counts.get(card_id, 0)
                if repeats < self.repeat_cap:
                    self._repeat_counts[card_id] = repeats + 1
                    graded = engine.requeue(graded, requeue_item)
                else:
                    base_answered.add(card_id)

        self.error = None
        self.answered = base_answered
        graded = graded.model_copy(update={"status": TrainerStatus.IN_SESSION})
        self.state = engine.next_card(graded, self.answered)

        if self.state.status == TrainerStatus.FINISHED:
            await self._save_summary(len(self._seen_ids))
        return self.state

    async def _persist(self, item: CardSnapshot, correct: bool, now: Optional[datetime]) -> CardSnapshot:
        """Write the grade's side effects; returns the snapshot to re-queue on a miss."""
        card_id = item.card_id
        if not correct:
            await self.store.upsert_last_missed(self.owner_key, card_id)

        if self.mode == LearnMode.LEITNER:
            result = grade_card(card_id, item.level, correct, now)
            await self.store.upsert_grade(self.owner_key, result)
            return item.model_copy(update={"level": result.new_level, "due_date": result.due_date})

        if correct and self.drill_source == DrillSource.LAST_MISSED:
            await self.store.remove_last_missed(self.owner_key, card_id)
        return item

    async def end_session(self) -> TrainerState:
        """
        Stop early: record what was answered so far and finish.

        Only a running session (or one waiting for a grade retry) is recorded;
        in any other status this is a no-op.
        """
        if self.state.status not in (TrainerStatus.IN_SESSION, TrainerStatus.ERROR) or not self.state.items:
            return self.state
        answered_count = len(self.answered | set(self._wrong_ids))
        self.state = self.state.model_copy(update={
            "items": [],
            "index": 0,
            "reveal": False,
            "status": TrainerStatus.FINISHED,
        })
        await self._save_summary(answered_count)
        return self.state

    def build_summary(self, total_count: int) -> SessionSummary:
        """Cards missed at least once count as wrong; the rest as correct."""
        wrong = list(self._wrong_ids)
        return SessionSummary(
            mode=self.mode,
            total_count=total_count,
            correct_count=max(total_count - len(wrong), 0),
            wrong_card_ids=wrong,
        )

    async def _save_summary(self, total_count: int) -> None:
        if self._summary_saved:
            return
        self._summary_saved = True
        summary = self.build_summary(total_count)
        try:
            await self.store.append_session_summary(self.owner_key, summary)
        except StoreError as e:
            # History is best-effort; the session is finished either way
            logger.warning(f"Session summary for owner {self.owner_key} not saved: {str(e)}")
