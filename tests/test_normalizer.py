"""Tests for LLM response normalization."""

import json

import pytest

from lucalendar.core.errors import ParseError
from lucalendar.core.normalizer import (
    extract_json,
    normalize,
    normalize_action_label,
    normalize_payload,
)
from lucalendar.schemas.calendar import (
    ActionType,
    AttendeesAction,
    ShiftDirection,
    ShiftUnit,
)


CLEAN = '{"action": "CREATE_EVENT", "parameters": {"title": "Riunione con Mario", "date": "domani", "startTime": "15:00"}}'


# ─── JSON extraction ─────────────────────────────────────────────────────────

class TestExtractJson:
    def test_clean(self):
        assert extract_json(CLEAN)["action"] == "CREATE_EVENT"

    def test_code_fence(self):
        assert extract_json(f"```json\n{CLEAN}\n```") == json.loads(CLEAN)

    def test_surrounding_prose(self):
        raw = f"Ecco il comando interpretato:\n{CLEAN}\nFammi sapere se serve altro!"
        assert extract_json(raw) == json.loads(CLEAN)

    def test_broken_time_literal(self):
        raw = '{"action": "CREATE_EVENT", "parameters": {"startTime": "15":00"}}'
        assert extract_json(raw)["parameters"]["startTime"] == "15:00"

    def test_trailing_comma(self):
        raw = '{"action": "VIEW_EVENTS", "parameters": {"maxResults": 5,},}'
        assert extract_json(raw)["parameters"]["maxResults"] == 5

    def test_no_object(self):
        with pytest.raises(ParseError):
            extract_json("Non ho capito il comando")

    def test_unterminated(self):
        with pytest.raises(ParseError):
            extract_json('{"action": "CREATE_EVENT"')

    def test_empty(self):
        with pytest.raises(ParseError):
            extract_json("   ")

    def test_garbage_between_braces(self):
        with pytest.raises(ParseError):
            extract_json("{non è json}")


# ─── Action labels ───────────────────────────────────────────────────────────

class TestActionLabels:
    @pytest.mark.parametrize(
        "label,expected",
        [
            ("CREATE_EVENT", ActionType.CREATE_EVENT),
            ("CREA EVENTO", ActionType.CREATE_EVENT),
            ("crea-evento", ActionType.CREATE_EVENT),
            ("Modifica evento", ActionType.UPDATE_EVENT),
            ("VISUALIZZA EVENTI", ActionType.VIEW_EVENTS),
            ("ELIMINA EVENTO", ActionType.DELETE_EVENT),
            ("remove_event", ActionType.DELETE_EVENT),
            ("list events", ActionType.VIEW_EVENTS),
        ],
    )
    def test_known_labels(self, label, expected):
        assert normalize_action_label(label) == expected

    def test_stem_match(self):
        assert normalize_action_label("SPOSTAMENTO_EVENTO") == ActionType.UPDATE_EVENT

    def test_unknown_defaults_to_view(self):
        assert normalize_action_label("FAI_QUALCOSA") == ActionType.VIEW_EVENTS
        assert normalize_action_label(None) == ActionType.VIEW_EVENTS


# ─── Decoding ────────────────────────────────────────────────────────────────

class TestNormalize:
    def test_fenced_equals_clean(self):
        fenced = normalize(f"```json\n{CLEAN}\n```", "")
        clean = normalize(CLEAN, "")
        assert fenced == clean
        assert fenced.action == ActionType.CREATE_EVENT
        assert fenced.source == "llm"

    def test_key_language_independent(self):
        italian = normalize_payload({"action": "CREATE_EVENT", "parameters": {"titolo": "X"}})
        english = normalize_payload({"action": "CREATE_EVENT", "parameters": {"title": "X"}})
        assert italian == english

    def test_field_order_independent(self):
        a = normalize_payload({"parameters": {"date": "oggi", "title": "X"}, "action": "CREATE_EVENT"})
        b = normalize_payload({"action": "CREATE_EVENT", "parameters": {"title": "X", "date": "oggi"}})
        assert a == b

    def test_english_wins(self):
        action = normalize_payload(
            {"action": "CREATE_EVENT", "parameters": {"title": "English", "titolo": "Italiano"}}
        )
        assert action.parameters.title == "English"

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "VIEW_EVENTS", "parameters": {"date": "domani", "maxResults": 10}},
            {
                "action": "UPDATE_EVENT",
                "parameters": {
                    "title": "Riunione",
                    "timeModification": {"type": "SHIFT", "direction": "FORWARD", "amount": 1, "unit": "HOUR"},
                },
            },
            {"action": "DELETE_EVENT", "parameters": {"eventId": "abc123"}},
        ],
    )
    def test_canonical_is_idempotent(self, payload):
        assert normalize_payload(payload).to_payload() == payload

    def test_flat_italian_schema(self):
        raw = json.dumps(
            {
                "azione": "crea_evento",
                "riepilogo": "Dentista",
                "data": "domani",
                "ora_inizio": "15",
                "ora_fine": "16.30",
                "partecipanti": "Mario",
            }
        )
        action = normalize(raw, "")
        assert action.action == ActionType.CREATE_EVENT
        assert action.parameters.title == "Dentista"
        assert action.parameters.date == "domani"
        assert action.parameters.start_time == "15:00"
        assert action.parameters.end_time == "16:30"
        assert action.parameters.attendees == ["Mario"]

    def test_flat_unknown_label_defaults_to_view(self):
        action = normalize_payload({"azione": "boh", "data": "oggi"})
        assert action.action == ActionType.VIEW_EVENTS
        assert action.parameters.date == "oggi"

    def test_scavenged_label(self):
        action = normalize_payload({"intent": "delete_event", "params": {"titolo": "Palestra"}})
        assert action.action == ActionType.DELETE_EVENT
        assert action.parameters.title == "Palestra"

    def test_top_level_fields_kept(self):
        action = normalize_payload({"action": "CREATE_EVENT", "title": "Palestra", "parameters": {}})
        assert action.parameters.title == "Palestra"

    def test_missing_action(self):
        with pytest.raises(ParseError):
            normalize('{"title": "Palestra"}', "")

    def test_attendees_always_list(self):
        action = normalize_payload({"action": "CREATE_EVENT", "parameters": {"attendees": "Luigi"}})
        assert action.parameters.attendees == ["Luigi"]

    def test_new_title_and_legacy_shift_pass_through(self):
        action = normalize_payload(
            {
                "action": "UPDATE_EVENT",
                "parameters": {"title": "Palestra", "nuovo_titolo": "Piscina", "hoursToShift": -2},
            }
        )
        assert action.parameters.new_title == "Piscina"
        assert action.parameters.hours_to_shift == -2
        assert action.parameters.time_modification is None

    def test_invalid_time_modification_dropped(self):
        action = normalize_payload(
            {
                "action": "UPDATE_EVENT",
                "parameters": {
                    "title": "Palestra",
                    "timeModification": {"type": "SHIFT", "direction": "FORWARD", "amount": 0, "unit": "HOUR"},
                },
            }
        )
        assert action.parameters.title == "Palestra"
        assert action.parameters.time_modification is None

    def test_invalid_max_results_dropped(self):
        action = normalize_payload({"action": "VIEW_EVENTS", "parameters": {"maxResults": "tanti", "query": "x"}})
        assert action.parameters.query == "x"
        assert action.parameters.max_results == 10

    def test_italian_enum_values(self):
        action = normalize_payload(
            {
                "action": "UPDATE_EVENT",
                "parameters": {"timeModification": {"type": "shift", "direction": "indietro", "amount": 15, "unit": "minuti"}},
            }
        )
        modification = action.parameters.time_modification
        assert modification.direction == ShiftDirection.BACKWARD
        assert modification.unit == ShiftUnit.MINUTE

    def test_exact_time_modification_without_type(self):
        action = normalize_payload(
            {"action": "UPDATE_EVENT", "parameters": {"timeModification": {"time": "9:15"}}}
        )
        assert action.parameters.time_modification.time == "09:15"


# ─── Enrichment from the original command ────────────────────────────────────

class TestEnrichment:
    def test_shift_inferred_from_command(self):
        raw = '{"action": "UPDATE_EVENT", "parameters": {"title": "Riunione con Mario"}}'
        action = normalize(raw, "Posticipa la riunione con Mario di due ore")

        modification = action.parameters.time_modification
        assert modification.model_dump(mode="json", exclude_none=True) == {
            "type": "SHIFT",
            "direction": "FORWARD",
            "amount": 2,
            "unit": "HOUR",
        }

    def test_explicit_start_time_not_overwritten(self):
        raw = '{"action": "UPDATE_EVENT", "parameters": {"title": "Riunione", "startTime": "17:00"}}'
        action = normalize(raw, "posticipa la riunione alle 17")
        assert action.parameters.start_time == "17:00"
        assert action.parameters.time_modification is None

    def test_explicit_modification_not_overwritten(self):
        raw = json.dumps(
            {
                "action": "UPDATE_EVENT",
                "parameters": {"timeModification": {"type": "SHIFT", "direction": "BACKWARD", "amount": 10, "unit": "MINUTE"}},
            }
        )
        action = normalize(raw, "posticipa di due ore")
        assert action.parameters.time_modification.direction == ShiftDirection.BACKWARD
        assert action.parameters.time_modification.amount == 10

    def test_delete_everything(self):
        action = normalize('{"action": "DELETE_EVENT", "parameters": {}}', "elimina tutti gli appuntamenti")
        assert action.parameters.delete_all is True
        assert action.parameters.date == "oggi"

    def test_delete_with_title_untouched(self):
        action = normalize('{"action": "DELETE_EVENT", "parameters": {"title": "Tutto pronto"}}', "elimina tutto pronto")
        assert action.parameters.delete_all is None

    def test_view_default_max_results(self):
        assert normalize('{"action": "VIEW_EVENTS"}', "").parameters.max_results == 10
        assert normalize('{"action": "VIEW_EVENTS", "parameters": {"maxResults": 3}}', "").parameters.max_results == 3

    def test_attendee_addition_inferred(self):
        raw = '{"action": "UPDATE_EVENT", "parameters": {"title": "Riunione con Mario", "attendees": ["Luigi"]}}'
        action = normalize(raw, "Aggiungi Luigi alla riunione con Mario")
        assert action.parameters.attendees_action == AttendeesAction.ADD
