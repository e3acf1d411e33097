"""Answer ledger: the per-question record embedded in a quiz session.

The ledger is created once, in catalog order, when the session is created and
never grows or shrinks afterwards. Entries live in a tuple; lookups by
question id go through a position index built when the ledger is loaded.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, Sequence

from app.common.clock import seconds_between
from app.core.app_exceptions import InvalidArgumentError, NotFoundError


@dataclass
class AnswerEntry:
    question_id: str
    selected_answer: Any = None
    is_correct: bool | None = None
    time_spent: int = 0
    flagged: bool = False
    skipped: bool = False
    answered_at: datetime | None = None

    @property
    def is_answered(self) -> bool:
        return self.selected_answer is not None and not self.skipped

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["answered_at"] = self.answered_at.isoformat() if self.answered_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnswerEntry":
        answered_at = data.get("answered_at")
        if isinstance(answered_at, str):
            answered_at = datetime.fromisoformat(answered_at)
        return cls(
            question_id=str(data["question_id"]),
            selected_answer=data.get("selected_answer"),
            is_correct=data.get("is_correct"),
            time_spent=int(data.get("time_spent") or 0),
            flagged=bool(data.get("flagged", False)),
            skipped=bool(data.get("skipped", False)),
            answered_at=answered_at,
        )


@dataclass(frozen=True)
class LedgerProgress:
    answered: int
    flagged: int
    skipped: int
    total: int

    @property
    def percentage_complete(self) -> int:
        if self.total == 0:
            return 0
        return round(self.answered / self.total * 100)


class AnswerLedger:
    """Fixed-size sequence of answer entries with a question-id index."""

    def __init__(self, entries: Iterable[AnswerEntry]):
        self._entries: tuple[AnswerEntry, ...] = tuple(entries)
        self._positions: dict[str, int] = {}
        for position, entry in enumerate(self._entries):
            if entry.question_id in self._positions:
                raise InvalidArgumentError(
                    "Duplicate question in answer ledger",
                    details={"question_id": entry.question_id},
                )
            if entry.skipped and entry.selected_answer is not None:
                raise InvalidArgumentError(
                    "An answer entry cannot be both answered and skipped",
                    details={"question_id": entry.question_id},
                )
            self._positions[entry.question_id] = position

    @classmethod
    def for_questions(cls, question_ids: Sequence[str]) -> "AnswerLedger":
        return cls(AnswerEntry(question_id=qid) for qid in question_ids)

    @classmethod
    def load(cls, raw: Iterable[dict[str, Any]] | None) -> "AnswerLedger":
        return cls(AnswerEntry.from_dict(item) for item in raw or [])

    def dump(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AnswerEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> AnswerEntry:
        return self._entries[index]

    @property
    def question_ids(self) -> list[str]:
        return [entry.question_id for entry in self._entries]

    def contains_index(self, index: int) -> bool:
        return 0 <= index < len(self._entries)

    def entry_for(self, question_id: str) -> AnswerEntry:
        position = self._positions.get(str(question_id))
        if position is None:
            raise NotFoundError(
                "Question not found in session", details={"question_id": str(question_id)}
            )
        return self._entries[position]

    def record_answer(
        self,
        question_id: str,
        value: Any,
        is_correct: bool,
        now: datetime,
        last_active: datetime | None,
    ) -> AnswerEntry:
        """Store a selection; time spent is only measured on the first one."""
        if value is None:
            raise InvalidArgumentError("selected_answer is required")

        entry = self.entry_for(question_id)
        if entry.selected_answer is None:
            entry.time_spent = seconds_between(last_active, now)
        entry.selected_answer = value
        entry.is_correct = is_correct
        entry.skipped = False
        entry.answered_at = now
        return entry

    def skip(self, question_id: str, now: datetime) -> AnswerEntry:
        entry = self.entry_for(question_id)
        entry.skipped = True
        entry.selected_answer = None
        entry.is_correct = None
        entry.answered_at = now
        return entry

    def toggle_flag(self, question_id: str) -> AnswerEntry:
        entry = self.entry_for(question_id)
        entry.flagged = not entry.flagged
        return entry

    def progress(self) -> LedgerProgress:
        return LedgerProgress(
            answered=sum(1 for e in self._entries if e.is_answered),
            flagged=sum(1 for e in self._entries if e.flagged),
            skipped=sum(1 for e in self._entries if e.skipped),
            total=len(self._entries),
        )
