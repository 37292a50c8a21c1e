"""
Command service: the processCommand entry point.

raw text -> interpreter (preprocessor / LLM / local parser) -> executor.
Multi-action commands ("crea ... e poi mostra ...") run each sub-command
through the same pipeline, in order, and aggregate the results.
"""

import logging
from typing import Optional

from lucalendar.core.preprocessor import preprocess
from lucalendar.schemas.calendar import ActionResult, ProcessCommandResponse
from lucalendar.services.calendar.context_store import DEFAULT_SESSION
from lucalendar.services.calendar.executor_service import CalendarExecutorService
from lucalendar.services.interpreter import CommandInterpreter

logger = logging.getLogger(__name__)


class CommandService:
    """Runs one user command end to end"""

    def __init__(self, interpreter: CommandInterpreter, executor: CalendarExecutorService):
        self.interpreter = interpreter
        self.executor = executor

    async def process(
        self,
        command: str,
        session_id: Optional[str] = None,
        skip_duplicate_check: bool = False,
    ) -> ProcessCommandResponse:
        """Interpret and execute; returns the result with the interpretation used."""
        session_id = session_id or DEFAULT_SESSION
        preprocessed = preprocess(command)
        metadata = preprocessed.metadata

        if metadata.has_multiple_actions and len(metadata.sub_commands) > 1:
            result = await self._process_many(metadata.sub_commands, session_id, skip_duplicate_check)
            return ProcessCommandResponse(result=result, interpretation=None)

        action = await self.interpreter.interpret(command, preprocessed)
        logger.info(f"Command interpreted via {action.source}: {action.action.value}")

        result = await self.executor.execute(action, session_id, skip_duplicate_check)
        return ProcessCommandResponse(result=result, interpretation=action)

    async def process_command(
        self,
        command: str,
        session_id: Optional[str] = None,
        skip_duplicate_check: bool = False,
    ) -> ActionResult:
        response = await self.process(command, session_id, skip_duplicate_check)
        return response.result

    async def _process_many(
        self,
        sub_commands: list[str],
        session_id: str,
        skip_duplicate_check: bool,
    ) -> ActionResult:
        logger.info(f"Multi-action command with {len(sub_commands)} parts")

        results: list[ActionResult] = []
        for sub_command in sub_commands:
            action = await self.interpreter.interpret(sub_command)
            results.append(await self.executor.execute(action, session_id, skip_duplicate_check))

        return ActionResult(
            success=all(r.success for r in results),
            message="\n".join(r.message for r in results),
            results=results,
        )
