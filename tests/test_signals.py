from hearuai_memory import signals


def test_extract_context_topics_and_emotions():
    context = signals.extract_context("I'm so stressed about my boss at the office")

    assert context["topics"] == ["work"]
    assert context["emotions"] == ["anxious"]
    assert context["wordCount"] == 9
    assert context["themes"] == []


def test_extract_context_non_string():
    assert signals.extract_context(None) == {
        "topics": [],
        "emotions": [],
        "themes": [],
        "messageLength": 0,
        "wordCount": 0,
    }


def test_extract_entities():
    entities = signals.extract_entities("I met Jane Doe at the park yesterday, back home on 3/14/2024")

    assert {"type": "person", "value": "Jane Doe"} in entities
    assert {"type": "date", "value": "yesterday"} in entities
    assert {"type": "date", "value": "3/14/2024"} in entities
    assert {"type": "location", "value": "park"} in entities
    assert {"type": "location", "value": "home"} in entities


def test_emotional_state():
    state = signals.analyze_emotional_state(
        "I feel hopeful but scared and anxious, the panic is intense",
        {"score": -0.4, "label": "negative"},
    )

    assert state["primary"] == "negative"
    assert state["valence"] == "negative"
    assert state["intensity"] == 0.4
    assert state["arousal"] == "high"
    assert "hope" in state["secondary"]
    assert "fear" in state["secondary"]


def test_emotional_complexity():
    assert signals.calculate_emotional_complexity("happy") == "simple"
    assert signals.calculate_emotional_complexity("happy and sad") == "mixed"
    assert signals.calculate_emotional_complexity("happy, sad, proud") == "complex"


def test_detect_emotional_triggers_only_when_negative():
    message = "My boss keeps piling on pressure. I feel so useless today."

    assert signals.detect_emotional_triggers(message, {"score": -0.1}) == []

    triggers = signals.detect_emotional_triggers(message, {"score": -0.7})
    types = [t["type"] for t in triggers]
    assert types == ["stress", "work", "failure"]
    work = triggers[1]
    assert work["severity"] == 0.7
    assert work["context"]["peopleInvolved"] == ["work_authority"]
    assert work["context"]["timeReference"] == "present"


def test_trigger_context_sentence():
    context = signals.extract_trigger_context("Fine morning. The deadline is killing me!", "deadline")

    assert context["sentence"] == "The deadline is killing me"
    assert context["intensity"] == "medium"


def test_coping_strategies():
    strategies = signals.identify_coping_strategies("I went for a walk and did some deep breathing")

    assert "exercise" in strategies
    assert "breathing" in strategies


def test_relationship_patterns():
    patterns = signals.detect_relationship_patterns("My partner and I had a fight. We need to talk.")

    types = [p["type"] for p in patterns]
    assert "conflict_resolution" in types
    assert "romantic_relationship" in types
    romantic = next(p for p in patterns if p["type"] == "romantic_relationship")
    assert "timestamp" in romantic
    assert romantic["context"]["messageLength"] == len("My partner and I had a fight. We need to talk.")

