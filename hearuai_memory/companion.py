"""LangChain adapter for the companion chat model and sentiment scoring."""

from __future__ import annotations

import json
import logging
import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from .config import COMPANION_TIMEOUT
from .errors import CompanionAPIError
from .records import Sentiment
from .settings import resolve_llm_config

COMPANION_IDENTITY = (
    "You are HearUAI, an AI therapist and close friend. You combine the clinical care of a "
    "licensed therapist with the warmth of a loyal companion, and you support the user's "
    "mental, emotional and behavioural well-being with sensitivity and structure."
)

COMPANION_SCOPE = (
    "Never provide code, formulas, homework answers or technical procedures. For any "
    "technical request, reply that it is not your expertise and ask how the user is feeling "
    "about the situation instead."
)

SENTIMENT_PROMPT = (
    "Rate the emotional sentiment of the user's message. Reply with JSON only, in the form "
    '{"score": <number between -1 and 1>, "label": "positive" | "negative" | "neutral"}.'
)

NEUTRAL_SENTIMENT: Sentiment = {"score": 0.0, "label": "neutral"}

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_llm_lock = threading.Lock()
_llm_cache: Dict[str, Tuple[Tuple[str, ...], Any]] = {}


def _extract_text(content: Any) -> str:
    """Normalise LangChain response content to plain text."""

    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces: List[str] = []
        for item in content:
            if isinstance(item, str):
                pieces.append(item)
            elif isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
                pieces.append(item["text"])
        return "".join(pieces)
    if isinstance(content, dict) and isinstance(content.get("content"), str):
        return content["content"]
    return ""


def get_companion_llm(role: str = "companion", temperature: float = 0.7) -> Any:
    """Build, or reuse, the chat model selected for ``role``.

    Returns ``None`` when the provider is not configured.
    """

    with _llm_lock:
        try:
            config = resolve_llm_config(role)
        except Exception as exc:  # noqa: BLE001
            logging.warning("Failed to resolve %s LLM config: %s", role, exc)
            _llm_cache.pop(role, None)
            return None

        signature = (
            str(config.get("provider") or ""),
            str(config.get("model") or ""),
            str(config.get("base_url") or ""),
            str(config.get("api_key_fingerprint") or ""),
        )
        cached = _llm_cache.get(role)
        if cached is not None and cached[0] == signature:
            return cached[1]

        provider = config.get("provider", "openai")
        api_key = config.get("api_key")
        model_name = config.get("model")
        base_url = config.get("base_url") or None

        try:
            if provider == "gemini":
                client = ChatGoogleGenerativeAI(
                    model=model_name,
                    temperature=temperature,
                    google_api_key=api_key,
                    timeout=COMPANION_TIMEOUT,
                )
            elif provider == "claude":
                client = ChatAnthropic(
                    model=model_name,
                    temperature=temperature,
                    api_key=api_key,
                    base_url=base_url,
                    timeout=COMPANION_TIMEOUT,
                )
            else:
                client = ChatOpenAI(
                    model=model_name,
                    temperature=temperature,
                    api_key=api_key,
                    base_url=base_url,
                    timeout=COMPANION_TIMEOUT,
                )
        except Exception as exc:  # noqa: BLE001
            logging.warning("Failed to initialise %s LLM: %s", role, exc)
            _llm_cache.pop(role, None)
            return None

        _llm_cache[role] = (signature, client)
        return client


def _join(values: Any, fallback: str) -> str:
    if isinstance(values, list) and values:
        return ", ".join(str(v) for v in values)
    return fallback


def build_system_prompt(memory_context: Optional[Dict[str, Any]] = None) -> str:
    """Companion persona plus a MEMORY CONTEXT block built from the user context."""

    sections = [COMPANION_IDENTITY]

    if memory_context:
        lines = ["=== MEMORY CONTEXT ==="]

        profile = memory_context.get("userProfile")
        if profile:
            lines.extend(
                [
                    "USER PROFILE:",
                    f"- Name preference: {profile.get('preferredName') or 'Not specified'}",
                    f"- Therapy goals: {_join(profile.get('therapyGoals'), 'Not specified')}",
                    f"- Triggers: {_join(profile.get('triggers'), 'None identified')}",
                    f"- Coping strategies: {_join(profile.get('copingStrategies'), 'None identified')}",
                    f"- Interests: {_join(profile.get('interests'), 'Not specified')}",
                    "",
                ]
            )

        recent = memory_context.get("recentMemories") or []
        if recent:
            lines.append("RECENT CONVERSATION CONTEXT:")
            for index, memory in enumerate(recent[:3], start=1):
                text = memory.get("summary") or str(memory.get("message") or memory.get("content") or "")[:100]
                lines.append(f"{index}. {str(memory.get('timestamp') or '')[:10]}: {text}...")
            lines.append("")

        patterns = memory_context.get("emotionalPatterns")
        if patterns:
            trends = patterns.get("emotionalTrends") or {}
            mood = patterns.get("moodSummary") or {}
            lines.extend(
                [
                    "EMOTIONAL PATTERNS:",
                    f"- Recent mood trend: {trends.get('trend') or patterns.get('recentTrend') or 'Neutral'}",
                    f"- Common emotions: {_join(patterns.get('commonEmotions'), 'Not identified')}",
                    f"- 7-day mood: {(mood.get('last7Days') or {}).get('trend') or 'insufficient_data'}",
                    "",
                ]
            )

        lines.append("=== END MEMORY CONTEXT ===")
        sections.append("\n".join(lines))

    sections.append(COMPANION_SCOPE)
    return "\n\n".join(sections)


def _history_messages(history: Optional[List[Dict[str, Any]]]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in history or []:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        if item.get("role") == "assistant":
            messages.append(AIMessage(content=content))
        elif item.get("role") == "user":
            messages.append(HumanMessage(content=content))
    return messages


def _clamp_score(value: Any) -> float:
    score = float(value)
    return max(-1.0, min(1.0, score))


def _label_for(score: float) -> str:
    if score > 0.1:
        return "positive"
    if score < -0.1:
        return "negative"
    return "neutral"


class CompanionClient:
    """Chat completion and sentiment scoring over a LangChain chat model.

    ``llm`` is any object with an ``invoke(messages)`` method; when omitted the
    model is resolved from ``model_settings.json`` on first use.
    """

    def __init__(self, llm: Any = None, sentiment_llm: Any = None) -> None:
        self._llm = llm
        self._sentiment_llm = sentiment_llm

    def _chat_model(self) -> Any:
        return self._llm or get_companion_llm("companion")

    def _sentiment_model(self) -> Any:
        return self._sentiment_llm or self._llm or get_companion_llm("sentiment", temperature=0.0)

    def send_message(
        self,
        text: str,
        history: Optional[List[Dict[str, Any]]] = None,
        memory_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        client = self._chat_model()
        if client is None:
            raise CompanionAPIError("Companion model is not configured.", status_code=503)

        messages: List[BaseMessage] = [SystemMessage(content=build_system_prompt(memory_context))]
        messages.extend(_history_messages(history))
        messages.append(HumanMessage(content=text))

        try:
            response = client.invoke(messages)
        except Exception as exc:  # noqa: BLE001
            logging.exception("Companion chat request failed: %s", exc)
            raise CompanionAPIError(f"Companion chat request failed: {exc}") from exc

        reply = _extract_text(getattr(response, "content", response)).strip()
        if not reply:
            raise CompanionAPIError("Companion model returned an empty reply.")
        return reply

    def analyze_sentiment(self, text: str) -> Sentiment:
        if not isinstance(text, str) or not text.strip():
            return dict(NEUTRAL_SENTIMENT)  # type: ignore[return-value]

        client = self._sentiment_model()
        if client is None:
            return dict(NEUTRAL_SENTIMENT)  # type: ignore[return-value]

        try:
            response = client.invoke([SystemMessage(content=SENTIMENT_PROMPT), HumanMessage(content=text)])
            raw = _extract_text(getattr(response, "content", response))
            match = _JSON_OBJECT.search(raw)
            payload = json.loads(match.group(0) if match else raw)
            score = _clamp_score(payload["score"])
        except Exception as exc:  # noqa: BLE001
            logging.warning("Sentiment analysis failed, falling back to neutral: %s", exc)
            return dict(NEUTRAL_SENTIMENT)  # type: ignore[return-value]

        label = payload.get("label")
        if label not in ("positive", "negative", "neutral"):
            label = _label_for(score)
        return {"score": score, "label": label}
