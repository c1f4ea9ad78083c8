"""Idempotent membership toggles over join tables.

A toggle flips whether the pair ``(actor, target)`` is present in a relation
table such as ``repost``, ``critique_like`` or ``follow``. The composite
primary key of each table is what keeps concurrent double-submissions honest:
the insert runs inside a SAVEPOINT, and a duplicate-key failure means another
request toggled first, so the engine re-reads and tries again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from redpen.db.session import Base
from redpen.errors import Conflict, InvalidTarget
from redpen.models import Critique, CritiqueLike, Follow, Post, Repost, User

logger = logging.getLogger(__name__)

MAX_TOGGLE_ATTEMPTS = 3


@dataclass(frozen=True)
class ToggleRelation:
    """Describes one join table the engine can flip membership in."""

    name: str
    model: type[Base]
    actor_column: str
    target_column: str
    target_model: type[Base]
    # Optional denormalized counter on the target row.
    counter: InstrumentedAttribute[Any] | None = None


@dataclass(frozen=True)
class ToggleResult:
    """Outcome of a toggle: resulting membership and the counter change."""

    active: bool
    counter_delta: int


REPOST = ToggleRelation(
    name="repost",
    model=Repost,
    actor_column="user_id",
    target_column="post_id",
    target_model=Post,
)

CRITIQUE_LIKE = ToggleRelation(
    name="critique_like",
    model=CritiqueLike,
    actor_column="user_id",
    target_column="critique_id",
    target_model=Critique,
    counter=Critique.like_count,
)

FOLLOW = ToggleRelation(
    name="follow",
    model=Follow,
    actor_column="follower_id",
    target_column="followee_id",
    target_model=User,
)


class ToggleEngine:
    """Create-or-remove primitive shared by reposts, likes and follows.

    The engine only checks that the target exists. Rules such as "cannot
    follow yourself" belong to the caller.
    """

    def __init__(self, relation: ToggleRelation, *, max_attempts: int = MAX_TOGGLE_ATTEMPTS) -> None:
        self.relation = relation
        self.max_attempts = max_attempts

    def _pair_filter(self, actor_id: int, target_id: int) -> tuple[Any, Any]:
        model = self.relation.model
        return (
            getattr(model, self.relation.actor_column) == actor_id,
            getattr(model, self.relation.target_column) == target_id,
        )

    def is_active(self, db: Session, actor_id: int, target_id: int) -> bool:
        """Return True if the pair is currently a member of the relation."""
        stmt = select(self.relation.model).where(*self._pair_filter(actor_id, target_id))
        return db.execute(stmt).first() is not None

    def _apply_counter(self, db: Session, target_id: int, delta: int) -> None:
        counter = self.relation.counter
        if counter is None:
            return
        target_model = self.relation.target_model
        db.execute(
            update(target_model)
            .where(target_model.id == target_id)  # type: ignore[attr-defined]
            .values({counter.key: counter + delta})
        )

    def _try_insert(self, db: Session, actor_id: int, target_id: int) -> bool:
        values = {
            self.relation.actor_column: actor_id,
            self.relation.target_column: target_id,
        }
        try:
            with db.begin_nested():
                db.execute(insert(self.relation.model).values(values))
        except IntegrityError:
            logger.debug(
                "Concurrent %s insert for actor=%s target=%s; re-reading",
                self.relation.name,
                actor_id,
                target_id,
            )
            return False
        return True

    def _try_delete(self, db: Session, actor_id: int, target_id: int) -> bool:
        result = db.execute(
            delete(self.relation.model)
            .where(*self._pair_filter(actor_id, target_id))
            .execution_options(synchronize_session="evaluate")
        )
        return bool(result.rowcount)

    def toggle(self, db: Session, actor_id: int, target_id: int) -> ToggleResult:
        """Flip membership of ``(actor_id, target_id)``.

        Args:
            db: Active database session; the caller commits.
            actor_id: User performing the action.
            target_id: Post, critique or user identifier, per relation.

        Returns:
            The resulting membership state and the matching counter delta.

        Raises:
            InvalidTarget: If the target row does not exist.
            Conflict: If the row kept changing underneath every attempt.
        """
        if db.get(self.relation.target_model, target_id) is None:
            raise InvalidTarget(f"{self.relation.name} target {target_id} does not exist")

        for _ in range(self.max_attempts):
            if self.is_active(db, actor_id, target_id):
                if self._try_delete(db, actor_id, target_id):
                    self._apply_counter(db, target_id, -1)
                    return ToggleResult(active=False, counter_delta=-1)
                continue

            if self._try_insert(db, actor_id, target_id):
                self._apply_counter(db, target_id, 1)
                return ToggleResult(active=True, counter_delta=1)

        logger.warning(
            "Gave up toggling %s for actor=%s target=%s after %d attempts",
            self.relation.name,
            actor_id,
            target_id,
            self.max_attempts,
        )
        raise Conflict(f"{self.relation.name} changed concurrently; try again")


repost_toggle = ToggleEngine(REPOST)
critique_like_toggle = ToggleEngine(CRITIQUE_LIKE)
follow_toggle = ToggleEngine(FOLLOW)
