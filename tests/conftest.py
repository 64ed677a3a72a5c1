import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from hearuai_memory import create_app, settings
from hearuai_memory.memory_manager import MemoryManager
from hearuai_memory.storage import InMemoryStorage


class FakeCompanion:
    """Stands in for the LangChain-backed companion client."""

    def __init__(self, reply="I'm here for you.", sentiment=None):
        self.reply = reply
        self.sentiment = sentiment or {"score": -0.5, "label": "negative"}
        self.calls = []

    def send_message(self, text, history=None, memory_context=None):
        self.calls.append((text, history, memory_context))
        return self.reply

    def analyze_sentiment(self, text):
        return dict(self.sentiment)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "_MEMORY_SETTINGS_FILE", str(tmp_path / "memory_settings.json"))
    monkeypatch.setattr(settings, "_MODEL_SETTINGS_FILE", str(tmp_path / "model_settings.json"))


@pytest.fixture()
def storage():
    return InMemoryStorage()


@pytest.fixture()
def manager(storage):
    return MemoryManager("tester", storage).load()


@pytest.fixture()
def companion():
    return FakeCompanion()


@pytest.fixture()
def app(manager, companion):
    flask_app = create_app(manager=manager, companion=companion)
    flask_app.config.update({"TESTING": True})
    yield flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
