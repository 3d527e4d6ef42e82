import pytest

from conftest import complete_swap_via_api, post_review, signup, swap_json


@pytest.mark.asyncio
async def test_root_and_health(client):
    response = await client.get("/")
    assert response.json() == {"success": True, "message": "SkillSwap API"}

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_swap_request_flow(client, members, notifications):
    _, (alice, alice_headers), (bob, bob_headers) = members

    response = await client.post(
        "/api/swaps",
        json=swap_json(bob["id"], message="Happy to help", meeting_details={"location": "Cafe"}),
        headers=alice_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    swap = body["data"]["swap"]
    assert swap["status"] == "pending"
    assert swap["is_expired"] is False
    assert swap["requester"]["name"] == "Alice"
    assert swap["recipient"]["id"] == bob["id"]
    assert swap["duration"] == {"estimated_hours": 5, "timeframe": "Flexible"}
    assert notifications.count_documents({"recipient": bob["id"]}) == 1

    response = await client.get("/api/swaps", params={"type": "received"}, headers=bob_headers)
    assert [s["id"] for s in response.json()["data"]["swaps"]] == [swap["id"]]
    assert response.json()["data"]["pagination"] == {
        "current": 1, "pages": 1, "total": 1, "limit": 10, "has_next": False, "has_prev": False,
    }

    response = await client.put(f"/api/swaps/{swap['id']}/accept", headers=alice_headers)
    assert response.status_code == 403

    response = await client.put(
        f"/api/swaps/{swap['id']}/accept",
        json={"meeting_details": {"meeting_link": "https://meet.example.com/x"}},
        headers=bob_headers,
    )
    assert response.status_code == 200
    accepted = response.json()["data"]["swap"]
    assert accepted["status"] == "accepted"
    assert accepted["accepted_at"] is not None
    assert accepted["meeting_details"] == {"location": "Cafe", "meeting_link": "https://meet.example.com/x"}

    response = await client.put(f"/api/swaps/{swap['id']}/accept", headers=bob_headers)
    assert response.status_code == 403
    assert response.json()["success"] is False

    response = await client.put(f"/api/swaps/{swap['id']}/complete", headers=bob_headers)
    assert response.status_code == 200
    assert response.json()["data"]["swap"]["completed_at"] is not None

    response = await client.get("/api/swaps/stats", headers=alice_headers)
    assert response.json()["data"]["stats"]["completed_requests"] == 1

    response = await client.get("/api/auth/me", headers=alice_headers)
    assert response.json()["data"]["user"]["total_swaps"] == 1
    assert response.json()["data"]["user"]["success_rate"] == 100


@pytest.mark.asyncio
async def test_swap_request_errors(client, members):
    (_, admin_headers), (alice, alice_headers), (bob, bob_headers) = members
    _, eve_headers = await signup(client, "Eve", "eve@example.com")

    response = await client.post("/api/swaps", json=swap_json(alice["id"]), headers=alice_headers)
    assert response.status_code == 400

    response = await client.post("/api/swaps", json=swap_json(4242), headers=alice_headers)
    assert response.status_code == 404

    response = await client.post("/api/swaps", json=swap_json(bob["id"], skill_wanted="Cooking"), headers=alice_headers)
    assert response.status_code == 400

    response = await client.post("/api/swaps", json=swap_json(bob["id"], learning_mode="Carrier pigeon"), headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "learning_mode"

    response = await client.post("/api/swaps", json=swap_json(bob["id"]), headers=alice_headers)
    swap_id = response.json()["data"]["swap"]["id"]
    response = await client.post("/api/swaps", json=swap_json(bob["id"]), headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "You already have a pending request for this skill exchange"

    response = await client.get(f"/api/swaps/{swap_id}", headers=eve_headers)
    assert response.status_code == 403
    response = await client.get(f"/api/swaps/{swap_id}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get("/api/swaps/4242", headers=alice_headers)
    assert response.status_code == 404

    response = await client.put(f"/api/swaps/{swap_id}", json={"status": "completed"}, headers=alice_headers)
    assert response.status_code == 400
    response = await client.put(f"/api/swaps/{swap_id}", json={"priority": "urgent"}, headers=bob_headers)
    assert response.status_code == 200
    assert response.json()["data"]["swap"]["priority"] == "urgent"

    response = await client.delete(f"/api/swaps/{swap_id}", headers=bob_headers)
    assert response.status_code == 403
    response = await client.put(f"/api/swaps/{swap_id}/reject", json={"reason": "Busy"}, headers=bob_headers)
    assert response.json()["data"]["swap"]["cancellation_reason"] == "Busy"
    response = await client.delete(f"/api/swaps/{swap_id}", headers=alice_headers)
    assert response.status_code == 403

    response = await client.post(
        f"/api/swaps/{swap_id}/review",
        json={"rating": {"overall": 5}, "comment": "great", "would_recommend": True},
        headers=alice_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reviews_through_the_api(client, members, notifications):
    _, alice, bob = members
    (alice_user, alice_headers), (bob_user, bob_headers) = alice, bob
    swap_id = await complete_swap_via_api(client, alice, bob)

    review = await post_review(client, swap_id, alice_headers, 5)
    assert review["reviewee_id"] == bob_user["id"]
    assert review["skill_taught"] == "JS"
    assert review["skill_learned"] == "Python"
    assert notifications.count_documents({"recipient": bob_user["id"], "title": "New review"}) == 1

    response = await client.post(
        f"/api/swaps/{swap_id}/review",
        json={"rating": {"overall": 1}, "comment": "again", "would_recommend": False},
        headers=alice_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        f"/api/swaps/{swap_id}/review",
        json={"rating": {"overall": 4}, "comment": "", "would_recommend": True},
        headers=bob_headers,
    )
    assert response.status_code == 400

    response = await client.put(
        f"/api/users/reviews/{review['id']}/respond", json={"comment": "Thank you!"}, headers=bob_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["review"]["response_comment"] == "Thank you!"

    response = await client.get(f"/api/users/{bob_user['id']}/reviews", headers=alice_headers)
    assert response.json()["data"]["pagination"]["total"] == 1

    response = await client.get(f"/api/users/{bob_user['id']}", headers=alice_headers)
    data = response.json()["data"]
    assert data["user"]["rating"] == 5.0
    assert data["user"]["reviews_count"] == 1
    assert "email" not in data["user"]
    assert data["stats"]["completed_requests"] == 1
    assert len(data["reviews"]) == 1

    response = await client.get(f"/api/users/{alice_user['id']}/reviews", params={"type": "given"}, headers=bob_headers)
    assert response.json()["data"]["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_browse_and_profiles(client, members):
    (_, admin_headers), (alice, alice_headers), (bob, bob_headers) = members
    carol, carol_headers = await signup(
        client, "Carol", "carol@example.com", skills_offered=["Guitar"], skills_wanted=["Python"]
    )

    response = await client.get("/api/users", headers=alice_headers)
    users = response.json()["data"]["users"]
    assert alice["id"] not in [user["id"] for user in users]
    assert all("email" not in user for user in users)

    response = await client.get("/api/users", params={"skill_offered": "python"}, headers=alice_headers)
    assert [user["id"] for user in response.json()["data"]["users"]] == [bob["id"]]

    response = await client.get("/api/users", params={"search": "guit"}, headers=alice_headers)
    assert [user["id"] for user in response.json()["data"]["users"]] == [carol["id"]]

    response = await client.get("/api/users", params={"sort_by": "name", "sort_order": "asc"}, headers=alice_headers)
    assert [user["name"] for user in response.json()["data"]["users"]] == ["Admin", "Bob", "Carol"]

    response = await client.get("/api/users/me/matches", headers=bob_headers)
    matches = response.json()["data"]["matches"]
    assert matches[0]["user"]["id"] == alice["id"]
    assert matches[0]["mutual"] is True
    assert matches[1]["user"]["id"] == carol["id"]
    assert matches[1]["wants_from_me"] == ["Python"]

    response = await client.put(f"/api/users/{carol['id']}", json={"is_public": False}, headers=carol_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/users/{carol['id']}", headers=alice_headers)
    assert response.status_code == 403
    response = await client.get(f"/api/users/{carol['id']}", headers=admin_headers)
    assert response.json()["data"]["user"]["email"] == "carol@example.com"
    response = await client.get("/api/users", params={"search": "guit"}, headers=alice_headers)
    assert response.json()["data"]["users"] == []

    response = await client.put(f"/api/users/{bob['id']}", json={"bio": "hacked"}, headers=alice_headers)
    assert response.status_code == 403
    response = await client.put(f"/api/users/{alice['id']}", json={"bio": "  Frontend dev  "}, headers=alice_headers)
    assert response.json()["data"]["user"]["bio"] == "Frontend dev"

    response = await client.get(f"/api/users/{bob['id']}/swaps", headers=alice_headers)
    assert response.status_code == 403
    response = await client.get("/api/users/4242", headers=alice_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_direct_and_broadcast_notifications(client, members):
    (_, admin_headers), (alice, alice_headers), (bob, bob_headers) = members
    await client.post("/api/swaps", json=swap_json(bob["id"]), headers=alice_headers)

    response = await client.post(
        "/api/admin/messages/broadcast",
        json={"title": "Maintenance", "message": "Down at noon", "type": "maintenance", "priority": "high"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    broadcast = response.json()["data"]["notification"]
    assert broadcast["recipient"] is None

    response = await client.get("/api/notifications", headers=bob_headers)
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["unread_count"] == 2

    response = await client.put(f"/api/notifications/{broadcast['id']}/read", headers=bob_headers)
    assert response.status_code == 200
    assert response.json()["data"]["notification"]["is_read"] is True

    response = await client.get("/api/notifications", params={"unread_only": True}, headers=bob_headers)
    assert [n["title"] for n in response.json()["data"]["notifications"]] == ["New swap request"]

    # one user reading a broadcast leaves it unread for everyone else
    response = await client.get("/api/notifications", headers=alice_headers)
    assert response.json()["data"]["unread_count"] == 1

    response = await client.put("/api/notifications/read-all", headers=bob_headers)
    assert response.status_code == 200
    response = await client.get("/api/notifications", headers=bob_headers)
    assert response.json()["data"]["unread_count"] == 0

    direct = next(n for n in response.json()["data"]["notifications"] if n["recipient"] == bob["id"])
    response = await client.put(f"/api/notifications/{direct['id']}/read", headers=alice_headers)
    assert response.status_code == 404
    response = await client.put("/api/notifications/not-an-id/read", headers=alice_headers)
    assert response.status_code == 404

    response = await client.get("/api/admin/notifications", params={"type": "maintenance"}, headers=admin_headers)
    assert response.json()["data"]["pagination"]["total"] == 1

    response = await client.put(
        f"/api/admin/notifications/{broadcast['id']}", json={"is_active": False}, headers=admin_headers
    )
    assert response.json()["data"]["notification"]["is_active"] is False
    response = await client.get("/api/notifications", headers=alice_headers)
    assert response.json()["data"]["pagination"]["total"] == 0

    response = await client.delete(f"/api/admin/notifications/{broadcast['id']}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.delete(f"/api/admin/notifications/{broadcast['id']}", headers=admin_headers)
    assert response.status_code == 404
