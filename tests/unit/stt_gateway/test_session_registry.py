from __future__ import annotations

import pytest

from stt_gateway.app.engine.registry import SessionRegistry
from stt_gateway.app.engine.types import SessionState

from _gateway_fakes import FakeSession, run


def test_add_and_lookup_preserve_registration_order() -> None:
    registry = SessionRegistry()
    first = FakeSession("deepgram")
    second = FakeSession("assemblyai")

    registry.add("deepgram", first)
    registry.add("assemblyai", second)

    assert len(registry) == 2
    assert "deepgram" in registry
    assert registry.get("assemblyai") is second
    assert registry.get("openai") is None
    assert registry.providers() == ["deepgram", "assemblyai"]
    assert list(registry) == [("deepgram", first), ("assemblyai", second)]


def test_add_rejects_second_session_for_same_provider() -> None:
    registry = SessionRegistry()
    registry.add("openai", FakeSession("openai"))

    with pytest.raises(ValueError):
        registry.add("openai", FakeSession("openai"))


def test_remove_all_closes_every_session_even_when_one_fails() -> None:
    registry = SessionRegistry()
    healthy = FakeSession("assemblyai")
    broken = FakeSession("deepgram", close_error=RuntimeError("socket already gone"))
    other = FakeSession("openai")
    for session in (healthy, broken, other):
        registry.add(session.provider, session)

    run(registry.remove_all())

    assert [healthy.close_calls, broken.close_calls, other.close_calls] == [1, 1, 1]
    assert healthy.state is SessionState.CLOSED
    assert other.state is SessionState.CLOSED
    assert len(registry) == 0


def test_remove_all_on_empty_registry_is_noop() -> None:
    registry = SessionRegistry()

    run(registry.remove_all())

    assert registry.providers() == []
