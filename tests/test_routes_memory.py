from typing import Any, Dict, List

from hearuai_memory import routes as routes_module
from hearuai_memory.errors import CompanionAPIError
from hearuai_memory.memory_manager import MemoryManager
from hearuai_memory.storage import InMemoryStorage


def test_api_memory_post_stores_turn(client, manager):
    response = client.post(
        "/api/memory",
        json={
            "message": "Work has been overwhelming",
            "response": "That sounds exhausting.",
            "sentiment": {"score": -0.6, "label": "negative"},
        },
    )

    assert response.status_code == 201
    payload = response.get_json()
    assert payload["stored"] is True
    assert set(payload["records"]) == {"shortTerm", "longTerm", "emotional", "contextual"}
    assert len(manager.long_term.get_all()) == 1


def test_api_memory_post_validates_body(client):
    assert client.post("/api/memory", data="not json", content_type="application/json").status_code == 400
    assert client.post("/api/memory", json={"message": "  "}).status_code == 400


def test_api_memory_post_respects_disabled_memory(client, manager, monkeypatch):
    monkeypatch.setattr(routes_module, "load_memory_settings", lambda: {"enabled": False})

    response = client.post("/api/memory", json={"message": "Keep this private"})

    assert response.status_code == 200
    assert response.get_json() == {"stored": False, "reason": "memory disabled"}
    assert manager.long_term.get_all() == []


def test_memory_search_recent_and_export(client, manager):
    manager.store_memory({"message": "The garden looks great", "sentiment": {"score": 0.7}})
    manager.store_memory({"message": "Rainy day inside", "sentiment": {"score": 0.0}})

    assert client.get("/api/memory/search").status_code == 400

    search = client.get("/api/memory/search?q=garden&limit=2").get_json()
    assert search["query"] == "garden"
    assert len(search["memories"]) == 2
    assert all("garden" in m["message"] for m in search["memories"])

    recent = client.get("/api/memory/recent?limit=3").get_json()
    assert len(recent["memories"]) == 3

    exported = client.get("/api/memory/export").get_json()
    assert exported["userId"] == "tester"
    assert len(exported["longTerm"]) == 2


def test_memory_context_and_clear(client, manager):
    manager.preferences.set_user_names("Jane Doe", "Jane")
    manager.store_memory({"message": "hello"})

    context = client.get("/api/memory/context").get_json()
    assert context["userProfile"]["preferredName"] == "Jane"

    response = client.delete("/api/memory")
    assert response.status_code == 200
    assert manager.long_term.get_all() == []
    assert manager.preferences.get_preferred_name() == ""


def test_memory_settings_round_trip(client):
    assert client.get("/api/memory/settings").get_json() == {"enabled": True, "proactive_engagement": True}

    response = client.post("/api/memory/settings", json={"proactive_engagement": False})

    assert response.status_code == 200
    assert response.get_json() == {"enabled": True, "proactive_engagement": False}
    assert client.get("/api/memory/settings").get_json()["proactive_engagement"] is False


def test_model_settings_endpoint(client):
    response = client.post(
        "/api/model_settings",
        json={"selection": {"companion": {"provider": "claude", "model": "claude-3-haiku-20240307"}}},
    )

    payload = response.get_json()
    assert payload["selection"]["companion"]["provider"] == "claude"
    assert [p["id"] for p in payload["options"]["providers"]] == ["openai", "gemini", "claude"]
    assert client.get("/api/model_settings").get_json()["selection"] == payload["selection"]

    bare = client.post("/api/model_settings", json={"sentiment": {"provider": "gemini", "model": "gemini-2.0-flash"}})
    assert bare.get_json()["selection"]["sentiment"]["provider"] == "gemini"
    assert bare.get_json()["selection"]["companion"]["provider"] == "claude"
    assert client.post("/api/model_settings", json={"selection": "claude"}).status_code == 400


def test_unloaded_manager_returns_503(companion):
    from hearuai_memory import create_app

    manager = MemoryManager("late", InMemoryStorage())
    app = create_app(manager=manager, companion=companion)
    # create_app loads the manager; simulate a manager that lost its state.
    manager.ready = False

    response = app.test_client().get("/api/memory/context")

    assert response.status_code == 503


def test_emotional_endpoints(client, manager):
    for _ in range(3):
        manager.store_memory(
            {"message": "The deadline pressure at work", "sentiment": {"score": -0.7, "label": "negative"}}
        )

    patterns = client.get("/api/emotional/patterns").get_json()
    assert patterns["triggers"][0]["trigger"] in {"work", "deadline", "pressure"}

    insights = client.get("/api/emotional/insights?timeframe=7days").get_json()
    assert insights["timeframe"] == "7days"
    assert "riskAssessment" in insights

    risk = client.get("/api/emotional/risk").get_json()
    assert risk["overallRisk"] in {"low", "medium", "high"}

    exported = client.get("/api/emotional/export").get_json()
    assert exported["version"] == "1.0"
    assert len(exported["emotions"]) == 3

    manager.emotional.clear()
    assert client.post("/api/emotional/import", json={"emotions": []}).status_code == 400
    response = client.post("/api/emotional/import", json=exported)
    assert response.get_json() == {"imported": True}
    assert len(manager.emotional.emotions) == 3


def test_emotional_goals(client):
    created = client.post("/api/emotional/goals", json={"title": "Sleep before midnight"})
    assert created.status_code == 201
    goal_id = created.get_json()["id"]

    assert client.patch(f"/api/emotional/goals/{goal_id}", json={"progress": "lots"}).status_code == 400
    assert client.patch("/api/emotional/goals/missing", json={"progress": 10}).status_code == 404

    updated = client.patch(f"/api/emotional/goals/{goal_id}", json={"progress": 150, "notes": "done"}).get_json()
    assert updated["progress"] == 100
    assert updated["status"] == "completed"

    goals = client.get("/api/emotional/goals").get_json()
    assert goals["active"] == []
    assert [g["id"] for g in goals["completed"]] == [goal_id]


def test_journal_endpoints(client):
    assert client.post("/api/journal", json={"content": ""}).status_code == 400

    first = client.post(
        "/api/journal",
        json={"content": "Grateful for the walk", "tags": ["gratitude"], "timestamp": "2024-05-01T08:00:00"},
    ).get_json()
    client.post(
        "/api/journal",
        json={"content": "Hard day", "type": "reflection", "tags": ["work"], "timestamp": "2024-05-02T21:00:00"},
    )

    listed = client.get("/api/journal").get_json()["entries"]
    assert [e["content"] for e in listed] == ["Hard day", "Grateful for the walk"]

    by_tag = client.get("/api/journal?tags=gratitude").get_json()["entries"]
    assert [e["id"] for e in by_tag] == [first["id"]]

    by_type = client.get("/api/journal?type=reflection&sort_order=asc").get_json()["entries"]
    assert [e["content"] for e in by_type] == ["Hard day"]

    ranged = client.get("/api/journal?start=2024-05-02T00:00:00").get_json()["entries"]
    assert [e["content"] for e in ranged] == ["Hard day"]

    search = client.get("/api/journal/search?q=walk").get_json()
    assert [e["id"] for e in search["entries"]] == [first["id"]]

    insights = client.get("/api/journal/insights").get_json()
    assert insights["insights"]["totalEntries"] == 2

    patched = client.patch(f"/api/journal/{first['id']}", json={"content": "Grateful for the long walk"})
    assert patched.get_json()["content"] == "Grateful for the long walk"
    assert "updatedAt" in patched.get_json()

    assert client.delete(f"/api/journal/{first['id']}").status_code == 200
    assert client.delete(f"/api/journal/{first['id']}").status_code == 404
    assert client.patch("/api/journal/missing", json={"content": "x"}).status_code == 404


def test_preferences_endpoints(client):
    updated = client.patch("/api/preferences", json={"sessionPreferences": {"voiceEnabled": True}}).get_json()
    assert updated["sessionPreferences"]["voiceEnabled"] is True
    assert updated["sessionPreferences"]["sessionLength"] == "medium"

    assert client.post("/api/preferences/names", json={}).status_code == 400

    names = client.post("/api/preferences/names", json={"fullName": "Jane Doe"}).get_json()
    assert names == {"fullName": "Jane Doe", "preferredName": "Jane"}
    assert client.get("/api/preferences").get_json()["personalInfo"]["preferredName"] == "Jane"


def test_preferences_patch_cannot_break_sections(client, manager):
    response = client.patch("/api/preferences", json={"personalInfo": None, "sessionPreferences": "off"})
    assert response.status_code == 200
    assert response.get_json()["personalInfo"]["genderPreference"] == "auto"

    names = client.post("/api/preferences/names", json={"fullName": "Jane Doe"})
    assert names.status_code == 200
    assert names.get_json()["preferredName"] == "Jane"

    manager.store_memory({"message": "Long ago", "sentiment": {"score": 0.4}, "timestamp": "2020-01-01T10:00:00"})
    engagement = client.get("/api/engagement")
    assert engagement.status_code == 200
    assert engagement.get_json()["message"]["message"].startswith("Hi Jane,")


def test_engagement_endpoint(client, manager, monkeypatch):
    assert client.get("/api/engagement").get_json() == {"message": None}

    manager.store_memory(
        {"message": "Long ago", "sentiment": {"score": 0.4}, "timestamp": "2020-01-01T10:00:00"}
    )
    message = client.get("/api/engagement").get_json()["message"]
    assert message["type"] == "reconnection"

    monkeypatch.setattr(routes_module, "load_memory_settings", lambda: {"proactive_engagement": False})
    assert client.get("/api/engagement").get_json() == {"message": None}


def test_engagement_falls_back_to_time_of_day(client, monkeypatch):
    calls: List[bool] = []

    def fake_time_based(manager, enabled=True):
        calls.append(enabled)
        return {"type": "evening_reflection", "message": "Hi there, how was your day?"}

    monkeypatch.setattr(routes_module, "check_time_based_engagement", fake_time_based)

    message = client.get("/api/engagement").get_json()["message"]

    assert message["type"] == "evening_reflection"
    assert calls == [True]


def test_chat_uses_memory_and_stores_turn(client, manager, companion):
    manager.preferences.set_user_names("Jane Doe", "Jane")

    response = client.post(
        "/api/chat",
        json={"message": "I feel anxious about tomorrow", "history": [{"role": "user", "content": "Hi"}]},
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "reply": "I'm here for you.",
        "sentiment": {"score": -0.5, "label": "negative"},
    }
    text, history, memory_context = companion.calls[0]
    assert text == "I feel anxious about tomorrow"
    assert history == [{"role": "user", "content": "Hi"}]
    assert memory_context["userProfile"]["preferredName"] == "Jane"

    stored = manager.long_term.get_all()
    assert stored[0]["response"] == "I'm here for you."
    assert stored[0]["sentiment"] == {"score": -0.5, "label": "negative"}


def test_chat_without_memory(client, manager, companion, monkeypatch):
    monkeypatch.setattr(routes_module, "load_memory_settings", lambda: {"enabled": False})

    response = client.post("/api/chat", json={"message": "Just talk"})

    assert response.status_code == 200
    assert companion.calls[0][2] is None
    assert manager.long_term.get_all() == []


def test_chat_maps_companion_errors(client, companion, monkeypatch):
    calls: List[Dict[str, Any]] = []

    def failing_send(text, history=None, memory_context=None):
        calls.append({"text": text})
        raise CompanionAPIError("model is down", status_code=503)

    monkeypatch.setattr(companion, "send_message", failing_send)

    response = client.post("/api/chat", json={"message": "hello?"})

    assert response.status_code == 503
    assert response.get_json() == {"error": "model is down"}
    assert calls == [{"text": "hello?"}]
    assert client.post("/api/chat", json={}).status_code == 400
