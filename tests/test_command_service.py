"""Tests for the end-to-end command service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lucalendar.core.errors import LLMProviderError
from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionResult,
    ActionType,
    CanonicalAction,
)
from lucalendar.services.command import CommandService
from lucalendar.services.interpreter import CommandInterpreter


def _executor(*results: ActionResult):
    executor = MagicMock()
    executor.execute = AsyncMock(side_effect=list(results))
    return executor


@pytest.fixture
def offline_interpreter():
    """Interpreter whose LLM is never reachable."""
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=LLMProviderError("no key"))
    return CommandInterpreter(llm=llm, timeout_seconds=1)


class TestProcess:
    @pytest.mark.asyncio
    async def test_single_command(self, offline_interpreter):
        executor = _executor(ActionResult(success=True, message="✅ Evento creato con successo"))
        service = CommandService(offline_interpreter, executor)

        response = await service.process("Crea una riunione con Mario domani alle 15", session_id="s1")

        assert response.result.success is True
        assert response.interpretation.action == ActionType.CREATE_EVENT
        assert response.interpretation.source == "local"

        action, session_id, skip = executor.execute.call_args.args
        assert action.parameters.title == "Riunione con Mario"
        assert session_id == "s1"
        assert skip is False

    @pytest.mark.asyncio
    async def test_default_session(self, offline_interpreter):
        executor = _executor(ActionResult(success=True, message="ok"))
        service = CommandService(offline_interpreter, executor)

        await service.process("mostra gli eventi")

        assert executor.execute.call_args.args[1] == "default"

    @pytest.mark.asyncio
    async def test_skip_duplicate_check_forwarded(self, offline_interpreter):
        executor = _executor(ActionResult(success=True, message="ok"))
        service = CommandService(offline_interpreter, executor)

        await service.process("Crea evento domani 15", skip_duplicate_check=True)

        assert executor.execute.call_args.args[2] is True

    @pytest.mark.asyncio
    async def test_multiple_actions_run_in_order(self, offline_interpreter):
        executor = _executor(
            ActionResult(success=True, message="✅ Evento creato con successo"),
            ActionResult(success=False, message="❌ Evento non trovato", error="event_not_found"),
        )
        service = CommandService(offline_interpreter, executor)

        response = await service.process("Crea palestra domani alle 18 e poi elimina il dentista")

        assert response.interpretation is None
        result = response.result
        assert result.success is False
        assert result.message == "✅ Evento creato con successo\n❌ Evento non trovato"
        assert len(result.results) == 2

        actions = [call.args[0].action for call in executor.execute.call_args_list]
        assert actions == [ActionType.CREATE_EVENT, ActionType.DELETE_EVENT]

    @pytest.mark.asyncio
    async def test_process_command_returns_result(self):
        interpreter = MagicMock()
        interpreter.interpret = AsyncMock(
            return_value=CanonicalAction(
                action=ActionType.VIEW_EVENTS,
                parameters=ActionParameters(max_results=10),
                source="llm",
            )
        )
        executor = _executor(ActionResult(success=True, message="📅 Trovati 2 eventi"))
        service = CommandService(interpreter, executor)

        result = await service.process_command("mostra gli eventi")

        assert isinstance(result, ActionResult)
        assert result.message == "📅 Trovati 2 eventi"
