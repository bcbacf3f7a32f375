"""
Card/progress store used by the trainer.

`ProgressStore` is the boundary between the scheduling core and storage.
`SqlProgressStore` talks to the database directly (used by the API
endpoints); `ApiProgressStore` talks to the HTTP API (used by clients
driving a `TrainerSession` remotely).
"""
# pyright: reportAttributeAccessIssue=false
# pyright: reportArgumentType=false
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from kadi.core.exceptions import StoreError
from kadi.models.enums import CardType, LastMissedAction
from kadi.models.card import Card
from kadi.models.card_progress import CardProgress
from kadi.models.last_missed import LastMissed
from kadi.models.learn_session import LearnSession
from kadi.schemas.stats import ProgressEntry
from kadi.schemas.trainer import (
    CardSnapshot,
    GradeResult,
    SessionSummary,
    SessionSummaryRecord,
    SetupCounts,
)
from kadi.services.leitner import utc_today
from kadi.services.trainer_engine import normalize_snapshots

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _clean_card_ids(card_ids: Optional[List[str]]) -> List[str]:
    return [str(card_id).strip() for card_id in card_ids or [] if str(card_id).strip()]


class ProgressStore(ABC):
    """Storage operations consumed by the trainer and the stats aggregator."""

    @abstractmethod
    async def fetch_due_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        """Cards whose due date is today (UTC) or earlier."""

    @abstractmethod
    async def fetch_all_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        """All cards, ignoring due dates (drill mode)."""

    @abstractmethod
    async def fetch_last_missed(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        """Cards in the owner's last-missed set."""

    @abstractmethod
    async def upsert_grade(self, owner_key: str, result: GradeResult) -> None:
        """Write a graded schedule entry; idempotent per (owner, card)."""

    @abstractmethod
    async def upsert_last_missed(self, owner_key: str, card_id: str) -> None:
        """Add a card to the last-missed set; idempotent."""

    @abstractmethod
    async def remove_last_missed(self, owner_key: str, card_id: str) -> None:
        """Remove a card from the last-missed set; idempotent."""

    @abstractmethod
    async def append_session_summary(self, owner_key: str, summary: SessionSummary) -> None:
        """Append a finished session summary."""

    @abstractmethod
    async def fetch_progress_entries(self, owner_key: str, card_type: Optional[CardType] = None) -> List[ProgressEntry]:
        """Schedule entries for the stats aggregator."""

    @abstractmethod
    async def fetch_session_summaries(self, owner_key: str, start: date, end: date) -> List[SessionSummaryRecord]:
        """Session summaries created on UTC days start..end (inclusive)."""

    @abstractmethod
    async def count_setup(self, owner_key: str, card_type: Optional[CardType] = None) -> SetupCounts:
        """Counts shown before a session starts."""

    @abstractmethod
    async def fetch_card_types(self, owner_key: str) -> List[Optional[CardType]]:
        """Type of every card of an owner, for per-type totals."""


class SqlProgressStore(ProgressStore):
    """ProgressStore backed by the SQLModel tables."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Store error while trying to {action}: {str(e)}")
            raise StoreError(f"Failed to {action}") from e

    @staticmethod
    def _snapshot(card: Card, progress: Optional[CardProgress] = None) -> CardSnapshot:
        return CardSnapshot(
            card_id=card.id,
            level=progress.level if progress else 0,
            due_date=progress.due_date if progress else None,
            front_text=card.front_text,
            back_text=card.back_text,
            type=card.type,
            image_path=card.image_path,
            audio_path=card.audio_path,
        )

    async def fetch_due_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        with self._guard("load due cards"):
            query = (
                select(CardProgress, Card)
                .join(Card, Card.id == CardProgress.card_id)
                .where(
                    CardProgress.owner_key == owner_key,
                    Card.owner_key == owner_key,
                    CardProgress.due_date <= utc_today()
                )
                .order_by(CardProgress.due_date, Card.created_at)
            )
            if card_type is not None:
                query = query.where(Card.type == card_type)
            rows = self.session.exec(query).all()
        return [self._snapshot(card, progress) for progress, card in rows]

    async def fetch_all_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        with self._guard("load cards"):
            query = select(Card).where(Card.owner_key == owner_key).order_by(Card.created_at)
            if card_type is not None:
                query = query.where(Card.type == card_type)
            cards = self.session.exec(query).all()
        return [self._snapshot(card) for card in cards]

    async def fetch_last_missed(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        with self._guard("load last missed cards"):
            query = (
                select(Card)
                .join(LastMissed, LastMissed.card_id == Card.id)
                .where(LastMissed.owner_key == owner_key, Card.owner_key == owner_key)
                .order_by(LastMissed.created_at)
            )
            if card_type is not None:
                query = query.where(Card.type == card_type)
            cards = self.session.exec(query).all()
        return [self._snapshot(card) for card in cards]

    async def upsert_grade(self, owner_key: str, result: GradeResult) -> None:
        graded_at = _naive_utc(result.graded_at)
        with self._guard("save grade"):
            progress = self.session.exec(
                select(CardProgress).where(
                    CardProgress.owner_key == owner_key,
                    CardProgress.card_id == result.card_id
                )
            ).first()
            if not progress:
                progress = CardProgress(
                    owner_key=owner_key,
                    card_id=result.card_id,
                    due_date=result.due_date
                )
                self.session.add(progress)
            progress.level = result.new_level
            progress.due_date = result.due_date
            progress.last_seen_at = graded_at
            progress.updated_at = graded_at
            self.session.commit()
        logger.info(
            f"Saved grade for owner {owner_key}, card {result.card_id}: "
            f"level {result.previous_level} -> {result.new_level}, due {result.due_date}"
        )

    async def upsert_last_missed(self, owner_key: str, card_id: str) -> None:
        with self._guard("update last missed"):
            existing = self.session.exec(
                select(LastMissed).where(
                    LastMissed.owner_key == owner_key,
                    LastMissed.card_id == card_id
                )
            ).first()
            if existing:
                return
            self.session.add(LastMissed(owner_key=owner_key, card_id=card_id))
            try:
                self.session.commit()
            except IntegrityError:
                # Added concurrently; membership is what matters
                self.session.rollback()

    async def remove_last_missed(self, owner_key: str, card_id: str) -> None:
        await self.clear_last_missed(owner_key, card_id)

    async def clear_last_missed(self, owner_key: str, card_id: Optional[str] = None) -> int:
        """Remove one card, or every card, from the last-missed set."""
        with self._guard("clear last missed"):
            query = select(LastMissed).where(LastMissed.owner_key == owner_key)
            if card_id:
                query = query.where(LastMissed.card_id == card_id)
            rows = self.session.exec(query).all()
            for row in rows:
                self.session.delete(row)
            self.session.commit()
        return len(rows)

    async def append_session_summary(self, owner_key: str, summary: SessionSummary) -> None:
        wrong_card_ids = None
        if summary.wrong_card_ids is not None:
            wrong_card_ids = _clean_card_ids(summary.wrong_card_ids)
        with self._guard("save session"):
            record = LearnSession(
                owner_key=owner_key,
                mode=summary.mode,
                total_count=summary.total_count,
                correct_count=summary.correct_count,
                wrong_card_ids=wrong_card_ids,
            )
            self.session.add(record)
            self.session.commit()
        logger.info(
            f"Saved {summary.mode.value} session for owner {owner_key}: "
            f"{summary.correct_count}/{summary.total_count} correct"
        )

    async def fetch_progress_entries(self, owner_key: str, card_type: Optional[CardType] = None) -> List[ProgressEntry]:
        with self._guard("load progress"):
            query = (
                select(CardProgress, Card.type)
                .join(Card, Card.id == CardProgress.card_id)
                .where(CardProgress.owner_key == owner_key)
            )
            if card_type is not None:
                query = query.where(Card.type == card_type)
            rows = self.session.exec(query).all()
        return [
            ProgressEntry(
                card_id=progress.card_id,
                level=progress.level,
                due_date=progress.due_date,
                type=type_
            )
            for progress, type_ in rows
        ]

    async def fetch_session_summaries(self, owner_key: str, start: date, end: date) -> List[SessionSummaryRecord]:
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end + timedelta(days=1), time.min)
        with self._guard("load sessions"):
            rows = self.session.exec(
                select(LearnSession)
                .where(
                    LearnSession.owner_key == owner_key,
                    LearnSession.created_at >= window_start,
                    LearnSession.created_at < window_end
                )
                .order_by(LearnSession.created_at)
            ).all()
        return [SessionSummaryRecord.model_validate(row) for row in rows]

    async def fetch_card_types(self, owner_key: str) -> List[Optional[CardType]]:
        with self._guard("load cards"):
            return list(self.session.exec(select(Card.type).where(Card.owner_key == owner_key)).all())

    async def count_setup(self, owner_key: str, card_type: Optional[CardType] = None) -> SetupCounts:
        with self._guard("count cards"):
            due_query = (
                select(func.count(CardProgress.id))
                .join(Card, Card.id == CardProgress.card_id)
                .where(CardProgress.owner_key == owner_key, CardProgress.due_date <= utc_today())
            )
            total_query = select(func.count(Card.id)).where(Card.owner_key == owner_key)
            missed_query = (
                select(func.count(LastMissed.id))
                .join(Card, Card.id == LastMissed.card_id)
                .where(LastMissed.owner_key == owner_key)
            )
            if card_type is not None:
                due_query = due_query.where(Card.type == card_type)
                total_query = total_query.where(Card.type == card_type)
                missed_query = missed_query.where(Card.type == card_type)
            return SetupCounts(
                today_due=self.session.exec(due_query).one(),
                total_cards=self.session.exec(total_query).one(),
                last_missed_count=self.session.exec(missed_query).one(),
            )


class ApiProgressStore(ProgressStore):
    """
    ProgressStore that calls the Kadi HTTP API.

    Requests run in a worker thread so the trainer's event loop is not
    blocked. Any non-2xx response becomes a StoreError carrying the server's
    `detail` message.
    """

    def __init__(self, base_url: str = "", http: Any = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout

    def _request_sync(
        self,
        method: str,
        path: str,
        fallback: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if params is not None:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = self.http.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise StoreError(fallback) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            detail = payload.get("detail") if isinstance(payload, dict) else None
            logger.error(f"{method} {path} returned {response.status_code}: {detail}")
            raise StoreError(detail if isinstance(detail, str) and detail else fallback)
        return payload if isinstance(payload, dict) else {}

    async def _request(self, method: str, path: str, fallback: str, **kwargs) -> Dict[str, Any]:
        return await asyncio.to_thread(self._request_sync, method, path, fallback, **kwargs)

    @staticmethod
    def _type_value(card_type: Optional[CardType]) -> Optional[str]:
        return card_type.value if card_type is not None else None

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, fallback: str) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Malformed {model.__name__} in response: {str(e)}")
            raise StoreError(fallback) from e

    async def _fetch_items(self, path: str, owner_key: str, card_type: Optional[CardType]) -> List[CardSnapshot]:
        payload = await self._request(
            "GET", path, "Failed to load cards",
            params={"owner_key": owner_key, "type": self._type_value(card_type)}
        )
        return normalize_snapshots(payload.get("items") or payload.get("cards") or [])

    async def fetch_due_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        return await self._fetch_items("/learn/today", owner_key, card_type)

    async def fetch_all_cards(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        return await self._fetch_items("/cards/all", owner_key, card_type)

    async def fetch_last_missed(self, owner_key: str, card_type: Optional[CardType] = None) -> List[CardSnapshot]:
        return await self._fetch_items("/learn/last-missed", owner_key, card_type)

    async def upsert_grade(self, owner_key: str, result: GradeResult) -> None:
        # The server applies the same grading policy to the shown level
        await self._request(
            "POST", "/learn/grade", "Failed to save grade",
            json={
                "owner_key": owner_key,
                "card_id": result.card_id,
                "correct": result.correct,
                "current_level": result.previous_level,
            }
        )

    async def _post_last_missed(self, owner_key: str, card_id: str, action: LastMissedAction) -> None:
        await self._request(
            "POST", "/learn/last-missed", "Failed to update last missed",
            json={"owner_key": owner_key, "card_id": card_id, "action": action.value}
        )

    async def upsert_last_missed(self, owner_key: str, card_id: str) -> None:
        await self._post_last_missed(owner_key, card_id, LastMissedAction.ADD)

    async def remove_last_missed(self, owner_key: str, card_id: str) -> None:
        await self._post_last_missed(owner_key, card_id, LastMissedAction.REMOVE)

    async def append_session_summary(self, owner_key: str, summary: SessionSummary) -> None:
        body = summary.model_dump(mode="json")
        body["owner_key"] = owner_key
        await self._request("POST", "/learn/sessions", "Failed to save session", json=body)

    async def fetch_progress_entries(self, owner_key: str, card_type: Optional[CardType] = None) -> List[ProgressEntry]:
        payload = await self._request(
            "GET", "/learn/progress", "Failed to load progress",
            params={"owner_key": owner_key, "type": self._type_value(card_type)}
        )
        return [self._parse(ProgressEntry, item, "Failed to load progress") for item in payload.get("items") or []]

    async def fetch_session_summaries(self, owner_key: str, start: date, end: date) -> List[SessionSummaryRecord]:
        payload = await self._request(
            "GET", "/learn/sessions", "Failed to load sessions",
            params={"owner_key": owner_key, "start": start.isoformat(), "end": end.isoformat()}
        )
        return [self._parse(SessionSummaryRecord, item, "Failed to load sessions") for item in payload.get("items") or []]

    async def count_setup(self, owner_key: str, card_type: Optional[CardType] = None) -> SetupCounts:
        payload = await self._request(
            "GET", "/learn/setup-counts", "Failed to load setup counts",
            params={"owner_key": owner_key, "type": self._type_value(card_type)}
        )
        return self._parse(SetupCounts, payload, "Failed to load setup counts")

    async def fetch_card_types(self, owner_key: str) -> List[Optional[CardType]]:
        cards = await self.fetch_all_cards(owner_key)
        return [card.type for card in cards]
