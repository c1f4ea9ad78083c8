# tests/v1/test_payments.py
"""Tests for payment reconciliation endpoints."""

from fastapi import status

from redpen.models import RewardState
from redpen.services.payments import PaymentRecord


def test_payment_status_of_recorded_reward(client, rewarded_post, alice_headers) -> None:
    response = client.get("/api/v1/payments/cap_seeded", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["recorded"] is True
    assert data["post_id"] == rewarded_post.id
    assert data["reward_amount"] == 1000
    assert data["reward_state"] == RewardState.CAPTURED.value


def test_payment_status_of_orphaned_capture(client, alice, payments, alice_headers) -> None:
    payments.records["cap_orphan"] = PaymentRecord(
        reference="cap_orphan",
        status="captured",
        amount=400,
        metadata={"author_id": str(alice.id)},
    )

    response = client.get("/api/v1/payments/cap_orphan", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["recorded"] is False
    assert response.json()["post_id"] is None


def test_payment_status_other_user(client, rewarded_post, bob_headers) -> None:
    response = client.get("/api/v1/payments/cap_seeded", headers=bob_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_payment_status_unknown_reference(client, alice_headers) -> None:
    response = client.get("/api/v1/payments/cap_missing", headers=alice_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_payment_status_processor_unavailable(client, rewarded_post, payments, alice_headers) -> None:
    payments.fail_lookup = True
    response = client.get("/api/v1/payments/cap_seeded", headers=alice_headers)
    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"]["kind"] == "payment_unavailable"


def test_payment_history(client, rewarded_post, alice, make_post, alice_headers) -> None:
    make_post(alice, "free post")

    response = client.get("/api/v1/payments/history", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    payments = response.json()["payments"]
    assert [item["id"] for item in payments] == [rewarded_post.id]
    assert payments[0]["payment_reference"] == "cap_seeded"
