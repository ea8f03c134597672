import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from column_governance import classifier
from column_governance.classifier import (
    ClassificationParseError,
    ColumnClassifier,
    build_classified_records,
    build_prompt,
    classify_column,
    classify_columns,
    extract_json_object,
)
from column_governance.results import ErrorKind

CARD_NUMBER = {
    "description": "Payment card number",
    "ndmoClassification": "Secret",
    "reason_ndmo": "Cardholder data",
    "pii": False,
    "phi": False,
    "pfi": True,
    "psi": False,
    "pci": True,
}

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


class FakeCompletions:
    """Answers every ``create`` with ``reply(prompt)``."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return self.reply(kwargs["messages"][0]["content"])


class FakeClient:
    def __init__(self, reply):
        self.completions = FakeCompletions(reply)
        self.chat = SimpleNamespace(completions=self.completions)


def completion(content):
    message = SimpleNamespace(role="assistant", content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_classifier(reply, **kwargs):
    client = FakeClient(reply)
    kwargs.setdefault("api_key", "sk-test")
    return ColumnClassifier(client=client, **kwargs), client.completions


def status_error(status_code, body):
    request = httpx.Request("POST", COMPLETIONS_URL)
    response = httpx.Response(status_code, request=request, text=body)
    return openai.APIStatusError(body, response=response, body=None)


def test_prompt_names_the_column_and_levels():
    prompt = build_prompt("card_number")
    assert "`card_number`" in prompt
    assert "Top Secret, Secret, Restricted, Public" in prompt
    assert '"reason_ndmo"' in prompt


def test_classify_card_number():
    model, completions = make_classifier(lambda prompt: completion(json.dumps(CARD_NUMBER)), model="gpt-test")

    result = classify_column("card_number", model)

    assert result.success
    output = result.data["classification"]
    assert output.pci is True
    assert output.ndmo_classification == "Secret"
    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["messages"][0]["role"] == "user"
    assert "`card_number`" in call["messages"][0]["content"]
    assert call["response_format"] == {"type": "json_object"}



def test_classification_envelope_uses_wire_keys():
    model, _ = make_classifier(lambda prompt: completion(json.dumps(CARD_NUMBER)))
    payload = classify_column("card_number", model).to_dict()
    assert payload["data"]["classification"]["ndmoClassification"] == "Secret"
    assert payload["data"]["classification"]["reasonNdmo"] == "Cardholder data"


def test_fenced_json_is_accepted():
    fenced = "```json\n" + json.dumps(CARD_NUMBER) + "\n```"
    model, _ = make_classifier(lambda prompt: completion(fenced))
    assert classify_column("card_number", model).success


@pytest.mark.parametrize(
    "content, expected",
    [
        ('{"a": 1}', {"a": 1}),
        ('```\n{"a": 1}\n```', {"a": 1}),
        ('Here you go: {"a": {"b": 2}} hope it helps', {"a": {"b": 2}}),
    ],
)
def test_extract_json_object(content, expected):
    assert extract_json_object(content) == expected


@pytest.mark.parametrize("content", ["not json", "[1, 2]", "{broken"])
def test_extract_json_object_rejects(content):
    with pytest.raises(ClassificationParseError):
        extract_json_object(content)


def test_malformed_json_is_a_parse_failure():
    model, _ = make_classifier(lambda prompt: completion("definitely { not json"))
    result = classify_column("email", model)
    assert result.kind is ErrorKind.PARSE
    assert result.data is None
    assert result.message.startswith("Failed to classify column:")


def test_http_error_status():
    def fail(prompt):
        raise status_error(500, "upstream exploded")

    model, _ = make_classifier(fail)
    result = classify_column("email", model)
    assert result.kind is ErrorKind.HTTP_STATUS
    assert "HTTP 500" in result.message


def test_http_error_keeps_status_code():
    def fail(prompt):
        raise status_error(429, "rate limited")

    model, _ = make_classifier(fail)
    with pytest.raises(classifier.ClassifierHTTPError) as excinfo:
        model.classify("email")
    assert excinfo.value.status_code == 429


def test_transport_error():
    def refuse(prompt):
        raise openai.APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))

    model, _ = make_classifier(refuse)
    assert classify_column("email", model).kind is ErrorKind.TRANSPORT


def test_timeout_is_a_transport_error():
    def slow(prompt):
        raise openai.APITimeoutError(request=httpx.Request("POST", COMPLETIONS_URL))

    model, _ = make_classifier(slow)
    assert classify_column("email", model).kind is ErrorKind.TRANSPORT


@pytest.mark.parametrize("content", ["", "   ", None])
def test_empty_content(content):
    model, _ = make_classifier(lambda prompt: completion(content))
    result = classify_column("email", model)
    assert result.kind is ErrorKind.EMPTY_RESPONSE
    assert "empty response" in result.message


def test_missing_choices_is_empty():
    model, _ = make_classifier(lambda prompt: SimpleNamespace(choices=[]))
    assert classify_column("email", model).kind is ErrorKind.EMPTY_RESPONSE


def test_unknown_level_is_invalid_output():
    bad = dict(CARD_NUMBER, ndmoClassification="Confidential")
    model, _ = make_classifier(lambda prompt: completion(json.dumps(bad)))
    result = classify_column("card_number", model)
    assert result.kind is ErrorKind.INVALID_OUTPUT
    assert "ndmoClassification" in result.error


def test_missing_field_is_invalid_output():
    bad = {k: v for k, v in CARD_NUMBER.items() if k != "pci"}
    model, _ = make_classifier(lambda prompt: completion(json.dumps(bad)))
    assert classify_column("card_number", model).kind is ErrorKind.INVALID_OUTPUT


def test_missing_api_key_is_configuration_error():
    model = ColumnClassifier()
    assert model.client is None
    result = classify_column("email", model)
    assert result.kind is ErrorKind.CONFIGURATION
    assert "OPENAI_API_KEY" in result.message


def test_malformed_timeout_setting(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_TIMEOUT_SECONDS", "soon")
    result = classify_column("email")
    assert result.kind is ErrorKind.CONFIGURATION


def test_settings_come_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-env")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://llm.internal/v1/")
    monkeypatch.setenv("OPENAI_TIMEOUT_SECONDS", "12.5")

    model = ColumnClassifier()

    assert model.model == "gpt-env"
    assert model.base_url == "https://llm.internal/v1"
    assert model.timeout == 12.5
    assert isinstance(model.client, openai.OpenAI)
    assert model.client.api_key == "sk-env"
    assert str(model.client.base_url).rstrip("/") == "https://llm.internal/v1"
    assert model.client.timeout == 12.5
    assert model.client.max_retries == 0


@pytest.mark.parametrize("name", ["", "   ", None, 42])
def test_blank_name_is_rejected(name):
    client = FakeClient(lambda prompt: pytest.fail("no request expected"))
    result = classify_column(name, ColumnClassifier(api_key="sk-test", client=client))
    assert result.kind is ErrorKind.VALIDATION
    assert client.completions.calls == []


def test_classify_columns_keeps_order_and_isolates_failures():
    def reply(prompt):
        if "`broken`" in prompt:
            return completion("oops")
        return completion(json.dumps(CARD_NUMBER))

    model, _ = make_classifier(reply)
    names = ["card_number", "broken", "expiry_date", "  ", "cvv"]

    outcomes = classify_columns(names, model, max_workers=3)

    assert [name for name, _ in outcomes] == ["card_number", "broken", "expiry_date", "cvv"]
    assert [result.success for _, result in outcomes] == [True, False, True, True]
    records = build_classified_records(outcomes)
    assert [r.column_name for r in records] == ["card_number", "expiry_date", "cvv"]
    assert len({r.id for r in records}) == 3
    assert all(r.pci for r in records)


def test_classify_columns_shares_one_client():
    model, completions = make_classifier(lambda prompt: completion(json.dumps(CARD_NUMBER)))

    outcomes = classify_columns(["a", "b", "c", "d"], model, max_workers=4)

    assert all(result.success for _, result in outcomes)
    assert len(completions.calls) == 4


def test_classify_columns_empty_input():
    assert classify_columns([]) == []


def test_worker_count_from_environment(monkeypatch):
    seen = {}

    class RecordingPool(classifier.ThreadPoolExecutor):
        def __init__(self, max_workers):
            seen["workers"] = max_workers
            super().__init__(max_workers=max_workers)

    monkeypatch.setattr(classifier, "ThreadPoolExecutor", RecordingPool)
    monkeypatch.setenv("CLASSIFY_MAX_WORKERS", "2")
    model, _ = make_classifier(lambda prompt: completion(json.dumps(CARD_NUMBER)))

    classify_columns(["a", "b", "c"], model)

    assert seen["workers"] == 2
