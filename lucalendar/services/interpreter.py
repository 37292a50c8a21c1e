"""
Command interpreter.

Turns raw user text into a CanonicalAction:
preprocessor (direct answer for special commands) -> LLM -> normalizer,
falling back to the local parser whenever the LLM path fails.
"""

import asyncio
import logging
from typing import Optional

from lucalendar.config import get_settings
from lucalendar.core.errors import LLMProviderError, ParseError
from lucalendar.core.local_parser import parse_locally
from lucalendar.core.normalizer import normalize
from lucalendar.core.preprocessor import enrich_command, preprocess
from lucalendar.schemas.calendar import CanonicalAction, PreprocessResult
from lucalendar.services.llm import LLMCompletionClient

logger = logging.getLogger(__name__)
settings = get_settings()

SYSTEM_PROMPT = """Sei un assistente che aiuta a gestire il calendario Google.
Interpreta il comando dell'utente per determinare quale operazione eseguire:
1. Crea evento
2. Modifica evento
3. Visualizza eventi
4. Elimina evento

Rispondi SOLO con un oggetto JSON con i campi "action" e "parameters", senza testo aggiuntivo.

Il campo "action" deve essere uno tra:
- "CREATE_EVENT" (per creare un nuovo evento)
- "UPDATE_EVENT" (per modificare un evento esistente)
- "VIEW_EVENTS" (per visualizzare eventi esistenti)
- "DELETE_EVENT" (per eliminare uno o più eventi)

Il campo "parameters" contiene solo i campi pertinenti:
- "title": il nome dell'evento
- "newTitle": il nuovo nome, se l'utente rinomina un evento
- "date": la data (oggi, domani, dopodomani, prossimo lunedì, tra 3 giorni, 2026-10-20, questa settimana)
- "startTime": ora di inizio in formato HH:MM
- "endTime": ora di fine in formato HH:MM
- "description": descrizione dell'evento
- "attendees": elenco dei partecipanti
- "attendeesAction": "ADD" se i partecipanti vanno aggiunti a quelli esistenti, "REPLACE" altrimenti
- "eventId": identificativo dell'evento, se noto
- "query": termine di ricerca per trovare eventi esistenti
- "maxResults": numero massimo di eventi da mostrare
- "deleteAll": true per eliminare tutti gli eventi di un periodo
- "timeModification": per spostamenti relativi {"type": "SHIFT", "direction": "FORWARD" o "BACKWARD", "amount": numero, "unit": "HOUR" o "MINUTE"}, per orari esatti {"type": "EXACT", "time": "HH:MM"}

Esempi:
Comando: "Crea una riunione con Mario domani alle 15"
Risposta:
{"action": "CREATE_EVENT", "parameters": {"title": "Riunione con Mario", "date": "domani", "startTime": "15:00", "endTime": "16:00", "attendees": ["Mario"]}}

Comando: "Mostrami gli appuntamenti di questa settimana"
Risposta:
{"action": "VIEW_EVENTS", "parameters": {"date": "questa settimana", "maxResults": 10}}

Comando: "Elimina tutti gli eventi di domani"
Risposta:
{"action": "DELETE_EVENT", "parameters": {"date": "domani", "deleteAll": true}}

Comando: "Posticipa la riunione con Mario di due ore"
Risposta:
{"action": "UPDATE_EVENT", "parameters": {"title": "Riunione con Mario", "timeModification": {"type": "SHIFT", "direction": "FORWARD", "amount": 2, "unit": "HOUR"}}}

Comando: "Anticipa il dentista di 30 minuti"
Risposta:
{"action": "UPDATE_EVENT", "parameters": {"title": "Dentista", "timeModification": {"type": "SHIFT", "direction": "BACKWARD", "amount": 30, "unit": "MINUTE"}}}

Comando: "Aggiungi Luigi alla riunione con Mario"
Risposta:
{"action": "UPDATE_EVENT", "parameters": {"title": "Riunione con Mario", "attendees": ["Luigi"], "attendeesAction": "ADD"}}
"""


class CommandInterpreter:
    """Interprets a single command into a CanonicalAction. Never raises for bad LLM output."""

    def __init__(
        self,
        llm: Optional[LLMCompletionClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.llm = llm or LLMCompletionClient()
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

    async def interpret(
        self,
        command: str,
        preprocessed: Optional[PreprocessResult] = None,
    ) -> CanonicalAction:
        """
        Interpret a command.

        Args:
            command: Raw user text
            preprocessed: Result of preprocess(command), if the caller already has it

        Returns:
            CanonicalAction tagged with its source (preprocessor | llm | local)
        """
        preprocessed = preprocessed or preprocess(command)

        direct = preprocessed.metadata.direct_response
        if direct is not None:
            logger.info(f"Command answered by preprocessor: {direct.action.value}")
            return direct

        enriched = enrich_command(preprocessed)

        try:
            raw = await asyncio.wait_for(
                self.llm.complete(
                    SYSTEM_PROMPT,
                    enriched,
                    temperature=settings.llm_temperature,
                    max_tokens=settings.llm_max_tokens,
                    top_p=settings.llm_top_p,
                ),
                timeout=self.timeout_seconds,
            )
            action = normalize(raw, command)
        except asyncio.TimeoutError:
            logger.warning(f"LLM call timed out after {self.timeout_seconds}s, using local parser")
            return parse_locally(command)
        except LLMProviderError as e:
            logger.warning(f"LLM unavailable ({e}), using local parser")
            return parse_locally(command)
        except ParseError as e:
            logger.warning(f"LLM response unusable ({e}), using local parser")
            return parse_locally(command)

        logger.info(f"Command interpreted by LLM: {action.action.value}")
        return action
