"""Flask blueprint and HTTP routes for the HearUAI memory service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from .engagement import check_proactive_engagement, check_time_based_engagement
from .errors import CompanionAPIError, MemoryNotReadyError
from .memory_manager import MemoryManager
from .settings import (
    get_llm_options,
    load_memory_settings,
    load_model_settings,
    save_memory_settings,
    save_model_settings,
)

bp = Blueprint("hearuai_memory", __name__)


def _manager() -> MemoryManager:
    return current_app.extensions["hearuai_memory"]


def _companion() -> Any:
    return current_app.extensions.get("hearuai_companion")


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _json_body() -> Optional[Dict[str, Any]]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@bp.app_errorhandler(MemoryNotReadyError)
def _memory_not_ready(exc: MemoryNotReadyError) -> Any:
    logging.warning("Memory request rejected: %s", exc)
    return jsonify({"error": str(exc)}), 503


@bp.route("/api/memory", methods=["POST"])
def store_memory() -> Any:
    """Store one chat turn in every memory layer."""

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    if not isinstance(data.get("message"), str) or not data["message"].strip():
        return jsonify({"error": "message is required."}), 400

    if not load_memory_settings().get("enabled", True):
        return jsonify({"stored": False, "reason": "memory disabled"})

    stored = _manager().store_memory(data)
    return jsonify({"stored": True, "records": stored}), 201


@bp.route("/api/memory", methods=["DELETE"])
def clear_memory() -> Any:
    _manager().clear_all_memories()
    return jsonify({"message": "All memories cleared."})


@bp.route("/api/memory/search", methods=["GET"])
def search_memory() -> Any:
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "q is required."}), 400

    memories = _manager().get_relevant_memories(query, limit=_int_arg("limit", 10))
    return jsonify({"query": query, "memories": memories})


@bp.route("/api/memory/context", methods=["GET"])
def memory_context() -> Any:
    return jsonify(_manager().get_user_context())


@bp.route("/api/memory/recent", methods=["GET"])
def recent_memories() -> Any:
    return jsonify({"memories": _manager().get_recent_memories(_int_arg("limit", 10))})


@bp.route("/api/memory/export", methods=["GET"])
def export_memory() -> Any:
    return jsonify(_manager().export_memories())


@bp.route("/api/memory/settings", methods=["GET", "POST"])
def memory_settings() -> Any:
    """Load or persist the memory toggles."""

    if request.method == "GET":
        return jsonify(load_memory_settings())

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    try:
        saved = save_memory_settings(data)
    except OSError as exc:
        logging.exception("Failed to save memory settings: %s", exc)
        return jsonify({"error": "Failed to save memory settings."}), 500
    return jsonify(saved)


@bp.route("/api/model_settings", methods=["GET", "POST"])
def model_settings() -> Any:
    """Expose and persist the companion/sentiment model selection."""

    if request.method == "GET":
        return jsonify({"selection": load_model_settings(), "options": get_llm_options()})

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    updates = data.get("selection", data)
    if not isinstance(updates, dict):
        return jsonify({"error": "selection must be an object"}), 400
    try:
        saved = save_model_settings(updates)
    except OSError as exc:
        logging.exception("Failed to save model settings: %s", exc)
        return jsonify({"error": "Failed to save model settings."}), 500
    return jsonify({"selection": saved, "options": get_llm_options()})


@bp.route("/api/emotional/patterns", methods=["GET"])
def emotional_patterns() -> Any:
    manager = _manager()
    manager.ensure_ready()
    return jsonify(manager.emotional.get_patterns())


@bp.route("/api/emotional/insights", methods=["GET"])
def emotional_insights() -> Any:
    manager = _manager()
    manager.ensure_ready()
    timeframe = request.args.get("timeframe") or "30days"
    return jsonify(manager.emotional.get_emotional_insights(timeframe))


@bp.route("/api/emotional/risk", methods=["GET"])
def emotional_risk() -> Any:
    manager = _manager()
    manager.ensure_ready()
    return jsonify(manager.emotional.calculate_risk_assessment())


@bp.route("/api/emotional/export", methods=["GET"])
def emotional_export() -> Any:
    manager = _manager()
    manager.ensure_ready()
    return jsonify(manager.emotional.export_data())


@bp.route("/api/emotional/import", methods=["POST"])
def emotional_import() -> Any:
    manager = _manager()
    manager.ensure_ready()
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    if not manager.emotional.import_data(data):
        return jsonify({"error": "Export payload must include version and exportDate."}), 400
    return jsonify({"imported": True})


@bp.route("/api/emotional/goals", methods=["GET", "POST"])
def emotional_goals() -> Any:
    manager = _manager()
    manager.ensure_ready()
    emotional = manager.emotional

    if request.method == "GET":
        return jsonify({"active": emotional.get_active_goals(), "completed": emotional.get_completed_goals()})

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    return jsonify(emotional.add_emotional_goal(data)), 201


@bp.route("/api/emotional/goals/<goal_id>", methods=["PATCH"])
def emotional_goal_progress(goal_id: str) -> Any:
    manager = _manager()
    manager.ensure_ready()
    data = _json_body()
    if data is None or not isinstance(data.get("progress"), (int, float)):
        return jsonify({"error": "progress must be a number."}), 400

    goal = manager.emotional.update_goal_progress(goal_id, data["progress"], str(data.get("notes") or ""))
    if goal is None:
        return jsonify({"error": "Goal not found."}), 404
    return jsonify(goal)


@bp.route("/api/journal", methods=["GET", "POST"])
def journal() -> Any:
    manager = _manager()
    manager.ensure_ready()
    emotional = manager.emotional

    if request.method == "POST":
        data = _json_body()
        if data is None:
            return jsonify({"error": "Invalid JSON"}), 400
        if not isinstance(data.get("content"), str) or not data["content"].strip():
            return jsonify({"error": "content is required."}), 400
        return jsonify(emotional.store_journal_entry(data)), 201

    tags = [tag for tag in (request.args.get("tags") or "").split(",") if tag]
    date_range = None
    if request.args.get("start") or request.args.get("end"):
        date_range = {"start": request.args.get("start"), "end": request.args.get("end")}

    entries = emotional.get_journal_entries(
        limit=_int_arg("limit", 20),
        entry_type=request.args.get("type"),
        date_range=date_range,
        tags=tags or None,
        sort_by=request.args.get("sort_by") or "timestamp",
        sort_order=request.args.get("sort_order") or "desc",
    )
    return jsonify({"entries": entries})


@bp.route("/api/journal/search", methods=["GET"])
def journal_search() -> Any:
    manager = _manager()
    manager.ensure_ready()
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "q is required."}), 400
    return jsonify({"query": query, "entries": manager.emotional.search_journal_entries(query)})


@bp.route("/api/journal/insights", methods=["GET"])
def journal_insights() -> Any:
    manager = _manager()
    manager.ensure_ready()
    return jsonify(
        {
            "insights": manager.emotional.get_journal_insights(),
            "patterns": manager.emotional.analyze_journal_patterns(),
        }
    )


@bp.route("/api/journal/<entry_id>", methods=["PATCH", "DELETE"])
def journal_entry(entry_id: str) -> Any:
    manager = _manager()
    manager.ensure_ready()

    if request.method == "DELETE":
        deleted = manager.emotional.delete_journal_entry(entry_id)
        if deleted is None:
            return jsonify({"error": "Journal entry not found."}), 404
        return jsonify(deleted)

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    updated = manager.emotional.update_journal_entry(entry_id, data)
    if updated is None:
        return jsonify({"error": "Journal entry not found."}), 404
    return jsonify(updated)


@bp.route("/api/preferences", methods=["GET", "PATCH"])
def preferences() -> Any:
    manager = _manager()
    manager.ensure_ready()

    if request.method == "GET":
        return jsonify(manager.preferences.get_all())

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    return jsonify(manager.update_preferences(data))


@bp.route("/api/preferences/names", methods=["POST"])
def preference_names() -> Any:
    manager = _manager()
    manager.ensure_ready()
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400

    full_name = str(data.get("fullName") or "").strip()
    preferred_name = str(data.get("preferredName") or "").strip() or full_name.split(" ")[0]
    if not full_name and not preferred_name:
        return jsonify({"error": "fullName or preferredName is required."}), 400

    manager.preferences.set_user_names(full_name, preferred_name)
    return jsonify(
        {
            "fullName": manager.preferences.get_full_name(),
            "preferredName": manager.preferences.get_preferred_name(),
        }
    )


@bp.route("/api/engagement", methods=["GET"])
def engagement() -> Any:
    """Return the proactive check-in the companion should send, if any."""

    manager = _manager()
    manager.ensure_ready()
    enabled = load_memory_settings().get("proactive_engagement", True)
    message = check_proactive_engagement(manager, enabled=enabled)
    if message is None:
        message = check_time_based_engagement(manager, enabled=enabled)
    return jsonify({"message": message})


@bp.route("/api/chat", methods=["POST"])
def chat() -> Any:
    """Answer a user message with memory context, then remember the turn."""

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON"}), 400
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "message is required."}), 400

    companion = _companion()
    if companion is None:
        return jsonify({"error": "Companion client is not configured."}), 503

    manager = _manager()
    memory_enabled = load_memory_settings().get("enabled", True)
    memory_context = manager.get_user_context() if memory_enabled else None

    try:
        reply = companion.send_message(message, data.get("history") or [], memory_context)
    except CompanionAPIError as exc:
        logging.exception("Companion chat failed: %s", exc)
        return jsonify({"error": str(exc)}), exc.status_code

    sentiment = companion.analyze_sentiment(message)
    if memory_enabled:
        manager.store_memory(
            {
                "message": message,
                "response": reply,
                "sentiment": sentiment,
                "sessionId": data.get("sessionId"),
            }
        )

    return jsonify({"reply": reply, "sentiment": sentiment})
