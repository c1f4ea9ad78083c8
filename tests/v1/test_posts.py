# tests/v1/test_posts.py
"""Tests for post, feed and reward endpoints."""

from fastapi import status

from redpen.models import Post, RewardState
from tests.conftest import at, auth_headers


def test_create_post_without_reward(client, alice, alice_headers, payments) -> None:
    """A plain post is stored without touching the payment processor."""
    response = client.post(
        "/api/v1/posts/",
        json={"body": "First sketch of the logo"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["body"] == "First sketch of the logo"
    assert data["author"]["handle"] == "alice"
    assert data["reward_amount"] == 0
    assert data["reward_state"] == RewardState.NO_REWARD.value
    assert data["payment_reference"] is None
    assert data["reposts_count"] == 0
    assert payments.captures == []


def test_create_post_with_reward(client, alice_headers, payments) -> None:
    """A rewarded post is captured before it is stored."""
    response = client.post(
        "/api/v1/posts/",
        json={
            "body": "Which colour works best?",
            "reward_amount": 1000,
            "payment_method_token": "pm_card_visa",
        },
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["reward_amount"] == 1000
    assert data["reward_state"] == RewardState.CAPTURED.value
    assert data["payment_reference"] in payments.records
    assert payments.captures[0]["method_token"] == "pm_card_visa"


def test_create_post_reward_out_of_range(client, alice_headers, payments) -> None:
    response = client.post(
        "/api/v1/posts/",
        json={"body": "Cheap advice wanted", "reward_amount": 50, "payment_method_token": "pm"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = response.json()["detail"]
    assert detail["kind"] == "validation"
    assert "reward_amount" in detail["fields"]
    assert payments.captures == []


def test_create_post_reward_needs_payment_method(client, alice_headers) -> None:
    response = client.post(
        "/api/v1/posts/",
        json={"body": "Pay later?", "reward_amount": 500},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert "payment_method_token" in response.json()["detail"]["fields"]


def test_create_post_capture_declined(client, alice_headers, payments, db_session) -> None:
    payments.fail_capture = True
    response = client.post(
        "/api/v1/posts/",
        json={"body": "Declined", "reward_amount": 500, "payment_method_token": "pm"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
    assert response.json()["detail"]["kind"] == "capture_failed"
    assert db_session.query(Post).count() == 0


def test_create_post_body_too_long(client, alice_headers) -> None:
    response = client.post("/api/v1/posts/", json={"body": "x" * 501}, headers=alice_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_post_requires_auth(client) -> None:
    response = client.post("/api/v1/posts/", json={"body": "anonymous"})
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_get_post(client, alice, make_post) -> None:
    post = make_post(alice, "Look at this")
    response = client.get(f"/api/v1/posts/{post.id}")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == post.id
    assert data["is_reposted"] is False
    assert data["critique_preview"] is None


def test_get_missing_post(client) -> None:
    response = client.get("/api/v1/posts/999999")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"]["kind"] == "not_found"


def test_timeline_shows_followed_users(client, alice, bob, carol, make_post, make_follow, alice_headers) -> None:
    make_post(bob, "from bob", created_at=at(1))
    make_post(carol, "from carol", created_at=at(2))
    make_post(alice, "from alice", created_at=at(3))
    make_follow(alice, bob)

    response = client.get("/api/v1/posts/timeline", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    bodies = [post["body"] for post in response.json()["posts"]]
    assert bodies == ["from alice", "from bob"]


def test_recommended_is_public(client, alice, bob, make_post) -> None:
    make_post(alice, "one", created_at=at(1))
    make_post(bob, "two", created_at=at(2))

    response = client.get("/api/v1/posts/recommended")
    assert response.status_code == status.HTTP_200_OK
    assert [post["body"] for post in response.json()["posts"]] == ["two", "one"]


def test_repost_toggle(client, alice, bob, make_post, bob_headers) -> None:
    post = make_post(alice, "Worth sharing")

    first = client.post(f"/api/v1/posts/{post.id}/repost", headers=bob_headers)
    assert first.status_code == status.HTTP_200_OK
    assert first.json() == {"is_reposted": True, "counter_delta": 1}

    shown = client.get(f"/api/v1/posts/{post.id}", headers=bob_headers).json()
    assert shown["reposts_count"] == 1
    assert shown["is_reposted"] is True

    second = client.post(f"/api/v1/posts/{post.id}/repost", headers=bob_headers)
    assert second.json() == {"is_reposted": False, "counter_delta": -1}


def test_repost_missing_post(client, bob_headers) -> None:
    response = client.post("/api/v1/posts/999999/repost", headers=bob_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_post(client, alice, bob, make_post, alice_headers, bob_headers) -> None:
    post = make_post(alice, "Short lived")

    forbidden = client.delete(f"/api/v1/posts/{post.id}", headers=bob_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/posts/{post.id}", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert client.get(f"/api/v1/posts/{post.id}").status_code == status.HTTP_404_NOT_FOUND


def test_delete_post_holding_reward_conflicts(client, rewarded_post, alice_headers) -> None:
    response = client.delete(f"/api/v1/posts/{rewarded_post.id}", headers=alice_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_best_critique_selection_settles(client, rewarded_post, bob, make_critique, alice_headers, payments) -> None:
    critique = make_critique(rewarded_post, bob)

    response = client.post(
        f"/api/v1/posts/{rewarded_post.id}/best-critique",
        json={"critique_id": critique.id},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["best_critique_id"] == critique.id
    assert data["reward_state"] == RewardState.SETTLED.value
    assert data["reward_settled"] is True
    assert payments.payouts[0]["destination_user_id"] == bob.id


def test_best_critique_second_choice_rejected(
    client, rewarded_post, bob, carol, make_critique, alice_headers
) -> None:
    first = make_critique(rewarded_post, bob)
    second = make_critique(rewarded_post, carol)
    url = f"/api/v1/posts/{rewarded_post.id}/best-critique"

    assert client.post(url, json={"critique_id": first.id}, headers=alice_headers).status_code == 200
    response = client.post(url, json={"critique_id": second.id}, headers=alice_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["kind"] == "no_active_reward"


def test_best_critique_self_selection(client, rewarded_post, alice, make_critique, alice_headers) -> None:
    own = make_critique(rewarded_post, alice, "My own notes")
    response = client.post(
        f"/api/v1/posts/{rewarded_post.id}/best-critique",
        json={"critique_id": own.id},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"]["kind"] == "self_selection"


def test_best_critique_by_non_author(client, rewarded_post, bob, make_critique, bob_headers) -> None:
    critique = make_critique(rewarded_post, bob)
    response = client.post(
        f"/api/v1/posts/{rewarded_post.id}/best-critique",
        json={"critique_id": critique.id},
        headers=bob_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"]["kind"] == "forbidden"


def test_failed_payout_then_settle_retry(client, rewarded_post, bob, make_critique, alice_headers, payments) -> None:
    critique = make_critique(rewarded_post, bob)
    payments.fail_payout = True

    response = client.post(
        f"/api/v1/posts/{rewarded_post.id}/best-critique",
        json={"critique_id": critique.id},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"]["kind"] == "settlement_failed"

    chosen = client.get(f"/api/v1/posts/{rewarded_post.id}").json()
    assert chosen["reward_state"] == RewardState.BEST_CRITIQUE_CHOSEN.value
    assert chosen["best_critique_id"] == critique.id

    payments.fail_payout = False
    retry = client.post(f"/api/v1/posts/{rewarded_post.id}/settle", headers=alice_headers)
    assert retry.status_code == status.HTTP_200_OK
    assert retry.json()["reward_state"] == RewardState.SETTLED.value


def test_critique_lifecycle(client, alice, bob, make_post, bob_headers, alice_headers) -> None:
    post = make_post(alice, "Feedback please")

    created = client.post(
        f"/api/v1/posts/{post.id}/critiques",
        json={"body": "The contrast is too low."},
        headers=bob_headers,
    )
    assert created.status_code == status.HTTP_201_CREATED
    critique = created.json()
    assert critique["author"]["handle"] == "bob"
    assert critique["like_count"] == 0

    listed = client.get(f"/api/v1/posts/{post.id}/critiques").json()
    assert [item["id"] for item in listed] == [critique["id"]]

    url = f"/api/v1/posts/{post.id}/critiques/{critique['id']}"
    assert client.delete(url, headers=alice_headers).status_code == status.HTTP_403_FORBIDDEN
    assert client.delete(url, headers=bob_headers).status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/v1/posts/{post.id}/critiques").json() == []


def test_critique_on_missing_post(client, bob_headers) -> None:
    response = client.post(
        "/api/v1/posts/999999/critiques",
        json={"body": "Hello?"},
        headers=bob_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_chosen_critique_cannot_be_deleted(client, rewarded_post, bob, make_critique, alice_headers) -> None:
    critique = make_critique(rewarded_post, bob)
    client.post(
        f"/api/v1/posts/{rewarded_post.id}/best-critique",
        json={"critique_id": critique.id},
        headers=alice_headers,
    )

    response = client.delete(
        f"/api/v1/posts/{rewarded_post.id}/critiques/{critique.id}",
        headers=auth_headers(bob),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
