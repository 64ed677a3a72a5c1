"""Structured per-user settings consumed by the companion personality."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from .records import now_iso
from .storage import KeyValueStorage, PersistentLayer


DEFAULT_PREFERENCES: Dict[str, Any] = {
    "therapyGoals": [],
    "communicationStyle": "balanced",  # casual, professional, balanced
    "preferredTopics": [],
    "avoidedTopics": [],
    "triggers": [],
    "copingStrategies": [],
    "relationshipPatterns": [],
    "moviePreferences": {
        "genres": [],
        "favoriteMovies": [],
        "favoriteQuotes": [],
    },
    "personalInfo": {
        "name": "",
        "fullName": "",
        "preferredName": "",
        "age": None,
        "occupation": "",
        "interests": [],
        "gender": "",
        "genderPreference": "auto",  # auto, female, male
    },
    "sessionPreferences": {
        "sessionLength": "medium",  # short, medium, long
        "reminderFrequency": "weekly",
        "voiceEnabled": False,
        "proactiveEngagement": True,
    },
}


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive merge for dictionaries.

    A nested section is only ever merged into, never replaced: a non-dict
    value aimed at a dict section is ignored.
    """
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict):
            if isinstance(value, dict):
                _deep_merge(current, value)
            continue
        target[key] = value
    return target


class UserPreferences(PersistentLayer):
    """One settings object per user; no field validation is performed."""

    LAYER = "preferences"
    SCHEMA_VERSION = 2

    def __init__(self, user_id: str, storage: KeyValueStorage) -> None:
        super().__init__(user_id, storage)
        self.preferences: Dict[str, Any] = copy.deepcopy(DEFAULT_PREFERENCES)

    def _migrate(self, raw: Any, version: int) -> Dict[str, Any]:
        data = dict(raw) if isinstance(raw, dict) else {}
        data.pop("version", None)
        if version < 2:
            # Older saves predate the name split; carry ``name`` into both fields.
            info = data.get("personalInfo")
            if isinstance(info, dict) and info.get("name"):
                info["fullName"] = info.get("fullName") or info["name"]
                info["preferredName"] = info.get("preferredName") or info["name"]
        # Backfill nested defaults so accessors never meet a partial object.
        return _deep_merge(copy.deepcopy(DEFAULT_PREFERENCES), data)

    def _restore(self, data: Dict[str, Any]) -> None:
        self.preferences = data

    def _serialise(self) -> Dict[str, Any]:
        return copy.deepcopy(self.preferences)

    def update(self, new_preferences: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(new_preferences, dict):
            _deep_merge(self.preferences, copy.deepcopy(new_preferences))
        self.save()
        return self.get_all()

    def get(self, key: str | None = None) -> Any:
        return self.preferences.get(key) if key else self.preferences

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self.preferences)

    @property
    def _personal_info(self) -> Dict[str, Any]:
        return self.preferences.setdefault("personalInfo", {})

    def set_user_names(self, full_name: str, preferred_name: str) -> None:
        info = self._personal_info
        info["fullName"] = full_name
        info["preferredName"] = preferred_name
        info["name"] = preferred_name
        self.save()

    def get_full_name(self) -> str:
        info = self._personal_info
        return info.get("fullName") or info.get("name") or ""

    def get_preferred_name(self) -> str:
        info = self._personal_info
        return info.get("preferredName") or info.get("name") or ""

    def has_user_names(self) -> bool:
        info = self._personal_info
        return bool(info.get("preferredName") or info.get("name"))

    def add_coping_strategy(self, strategy: str) -> bool:
        strategies = self.preferences.setdefault("copingStrategies", [])
        if strategy in strategies:
            return False
        strategies.append(strategy)
        self.save()
        return True

    def remove_coping_strategy(self, strategy: str) -> bool:
        strategies = self.preferences.setdefault("copingStrategies", [])
        if strategy not in strategies:
            return False
        strategies.remove(strategy)
        self.save()
        return True

    def get_coping_strategies(self) -> List[str]:
        return list(self.preferences.get("copingStrategies", []))

    def set_gender_preference(self, gender: str, gender_preference: str = "auto") -> None:
        info = self._personal_info
        info["gender"] = gender
        info["genderPreference"] = gender_preference
        self.save()

    def get_gender_preference(self) -> Dict[str, str]:
        info = self._personal_info
        return {
            "gender": info.get("gender", ""),
            "genderPreference": info.get("genderPreference") or "auto",
        }

    def add_relationship_pattern(self, pattern: Dict[str, Any]) -> Dict[str, Any]:
        entry = {**pattern, "timestamp": now_iso()}
        self.preferences.setdefault("relationshipPatterns", []).append(entry)
        self.save()
        return entry

    def get_relationship_patterns(self) -> List[Dict[str, Any]]:
        return list(self.preferences.get("relationshipPatterns", []))

    def add_therapy_goal(self, goal: str) -> bool:
        goals = self.preferences.setdefault("therapyGoals", [])
        if goal in goals:
            return False
        goals.append(goal)
        self.save()
        return True

    def get_therapy_goals(self) -> List[str]:
        return list(self.preferences.get("therapyGoals", []))

    def clear(self) -> None:
        self.preferences = copy.deepcopy(DEFAULT_PREFERENCES)
        self._remove_blob()
