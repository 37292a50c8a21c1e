"""
Calendar API endpoints.

Provides REST API for:
- Processing a natural-language command end to end
- Parsing a command into its canonical action (no side effects)
"""

import logging

from fastapi import APIRouter, HTTPException, status

from lucalendar.core.errors import AuthExpiredError
from lucalendar.core.preprocessor import preprocess
from lucalendar.deps import CommandServiceDep, Interpreter, SessionId
from lucalendar.schemas.calendar import (
    ParseCommandRequest,
    ParseCommandResponse,
    ProcessCommandRequest,
    ProcessCommandResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar"])


@router.post(
    "/process-command",
    response_model=ProcessCommandResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def process_command(
    request: ProcessCommandRequest,
    service: CommandServiceDep,
    session_id: SessionId,
):
    """
    Interpret an Italian calendar command and execute it.

    **Example:**
    ```json
    {
        "command": "Crea una riunione con Mario domani alle 15"
    }
    ```

    Returns the execution result and the interpretation that produced it.
    A likely duplicate comes back as `success: false, potentialDuplicate: true`;
    resend with `skip_duplicate_check: true` to create it anyway.
    """
    try:
        return await service.process(
            command=request.command,
            session_id=session_id,
            skip_duplicate_check=request.skip_duplicate_check,
        )

    except AuthExpiredError as e:
        logger.warning(f"Calendar authorization expired: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Autorizzazione del calendario scaduta. Effettua di nuovo l'accesso.",
        )
    except Exception as e:
        logger.error(f"Error in /calendar/process-command: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Errore durante l'elaborazione del comando: {str(e)}",
        )


@router.post(
    "/parse",
    response_model=ParseCommandResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def parse_command(
    request: ParseCommandRequest,
    interpreter: Interpreter,
):
    """
    Interpret a command without touching the calendar.

    Returns the canonical action and the preprocessing metadata.
    """
    try:
        preprocessed = preprocess(request.command)
        interpretation = await interpreter.interpret(request.command, preprocessed)
        return ParseCommandResponse(interpretation=interpretation, metadata=preprocessed.metadata)

    except Exception as e:
        logger.error(f"Error in /calendar/parse: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Errore durante l'analisi: {str(e)}",
        )
