# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator, Mapping
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-redpen")

from redpen.api.v1.dependencies import get_payment_processor_dep  # noqa: E402
from redpen.core.security import create_access_token  # noqa: E402
from redpen.db.session import Base  # noqa: E402
from redpen.db.session import get_db as app_get_session  # noqa: E402
from redpen.main import app as fastapi_app  # noqa: E402
from redpen.models import Critique, Follow, Post, Repost, RewardState, User  # noqa: E402
from redpen.services.payments import (  # noqa: E402
    CaptureResult,
    PaymentError,
    PaymentRecord,
    PayoutResult,
)

TEST_DB_URL = "sqlite://"

_HANDLE_COUNTER = count(1)
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    """Return a fixed timestamp ``minutes`` after the test epoch."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakePaymentProcessor:
    """In-memory payment processor that records every call."""

    def __init__(self) -> None:
        self.captures: list[dict[str, Any]] = []
        self.payouts: list[dict[str, Any]] = []
        self.records: dict[str, PaymentRecord] = {}
        self.fail_capture = False
        self.fail_payout = False
        self.fail_lookup = False
        self._references = count(1)

    async def capture(
        self,
        amount: int,
        method_token: str,
        metadata: Mapping[str, str],
    ) -> CaptureResult:
        self.captures.append(
            {"amount": amount, "method_token": method_token, "metadata": dict(metadata)}
        )
        if self.fail_capture:
            raise PaymentError("card declined")
        reference = f"cap_{next(self._references):04d}"
        self.records[reference] = PaymentRecord(
            reference=reference,
            status="captured",
            amount=amount,
            metadata=dict(metadata),
        )
        return CaptureResult(reference=reference, amount=amount)

    async def payout(
        self,
        reference: str,
        amount: int,
        destination_user_id: int,
        *,
        idempotency_key: str,
    ) -> PayoutResult:
        self.payouts.append(
            {
                "reference": reference,
                "amount": amount,
                "destination_user_id": destination_user_id,
                "idempotency_key": idempotency_key,
            }
        )
        if self.fail_payout:
            raise PaymentError("payout destination unavailable")
        return PayoutResult(
            reference=reference,
            amount=amount,
            destination_user_id=destination_user_id,
        )

    async def retrieve(self, reference: str) -> PaymentRecord | None:
        if self.fail_lookup:
            raise PaymentError("processor timed out")
        return self.records.get(reference)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; take control so SAVEPOINTs nest properly.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    TestingSession = sessionmaker(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def payments() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    payments: FakePaymentProcessor,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_payment_processor_dep] = lambda: payments
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_payment_processor_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with unique handles."""

    def _make_user(handle: str | None = None, display_name: str | None = None) -> User:
        handle = handle or f"user{next(_HANDLE_COUNTER)}"
        user = User(handle=handle, display_name=display_name or handle.title())
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice", "Alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob", "Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol", "Carol")


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory persisting posts directly, bypassing the escrow."""

    def _make_post(
        author: User,
        body: str = "Draft for review",
        *,
        created_at: datetime | None = None,
        reward_amount: int = 0,
        payment_reference: str | None = None,
    ) -> Post:
        post = Post(
            author_id=author.id,
            body=body,
            reward_amount=reward_amount,
            payment_reference=payment_reference,
            reward_state=RewardState.CAPTURED if reward_amount else RewardState.NO_REWARD,
        )
        if created_at is not None:
            post.created_at = created_at
        db_session.add(post)
        db_session.commit()
        return post

    return _make_post


@pytest.fixture()
def make_critique(db_session: Session) -> Callable[..., Critique]:
    def _make_critique(
        post: Post,
        author: User,
        body: str = "Tighten the second paragraph.",
        *,
        created_at: datetime | None = None,
    ) -> Critique:
        critique = Critique(post_id=post.id, author_id=author.id, body=body)
        if created_at is not None:
            critique.created_at = created_at
        db_session.add(critique)
        db_session.commit()
        return critique

    return _make_critique


@pytest.fixture()
def make_repost(db_session: Session) -> Callable[..., Repost]:
    def _make_repost(user: User, post: Post, *, created_at: datetime | None = None) -> Repost:
        repost = Repost(user_id=user.id, post_id=post.id)
        if created_at is not None:
            repost.created_at = created_at
        db_session.add(repost)
        db_session.commit()
        return repost

    return _make_repost


@pytest.fixture()
def make_follow(db_session: Session) -> Callable[..., Follow]:
    def _make_follow(follower: User, followee: User) -> Follow:
        follow = Follow(follower_id=follower.id, followee_id=followee.id)
        db_session.add(follow)
        db_session.commit()
        return follow

    return _make_follow


@pytest.fixture()
def rewarded_post(
    make_post: Callable[..., Post],
    payments: FakePaymentProcessor,
    alice: User,
) -> Post:
    """A post by alice holding a captured reward of 1000."""
    reference = "cap_seeded"
    payments.records[reference] = PaymentRecord(
        reference=reference,
        status="captured",
        amount=1000,
        metadata={"author_id": str(alice.id)},
    )
    return make_post(alice, "Please review my essay", reward_amount=1000, payment_reference=reference)


def auth_headers(user: User) -> dict[str, str]:
    """Return authorization headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return auth_headers(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return auth_headers(bob)
