"""Tests for the rule-based fallback interpreter."""

from unittest.mock import patch

import pytest

from lucalendar.core.local_parser import classify, extract_times, parse_locally
from lucalendar.schemas.calendar import (
    ActionType,
    AttendeesAction,
    ShiftDirection,
    ShiftUnit,
)


# ─── Classification ──────────────────────────────────────────────────────────

class TestClassify:
    @pytest.mark.parametrize(
        "command,expected",
        [
            ("crea un evento", ActionType.CREATE_EVENT),
            ("fissa un appuntamento", ActionType.CREATE_EVENT),
            ("sposta la riunione", ActionType.UPDATE_EVENT),
            ("anticipa il dentista", ActionType.UPDATE_EVENT),
            ("cancella la palestra", ActionType.DELETE_EVENT),
            ("quali eventi ho", ActionType.VIEW_EVENTS),
            ("che impegni ho", ActionType.VIEW_EVENTS),
        ],
    )
    def test_keywords(self, command, expected):
        assert classify(command) == expected


# ─── Create ──────────────────────────────────────────────────────────────────

class TestCreate:
    def test_meeting_with_person(self):
        action = parse_locally("Crea una riunione con Mario domani alle 15")

        assert action.action == ActionType.CREATE_EVENT
        assert action.source == "local"
        params = action.parameters
        assert params.title == "Riunione con Mario"
        assert params.attendees == ["Mario"]
        assert params.date == "domani"
        assert params.start_time == "15:00"
        assert params.end_time == "16:00"

    def test_several_attendees(self):
        params = parse_locally("Organizza un incontro con Anna e Paolo domani alle 23").parameters
        assert params.title == "Incontro con Anna e Paolo"
        assert params.attendees == ["Anna", "Paolo"]
        assert params.start_time == "23:00"
        assert params.end_time == "00:00"

    def test_trailing_hour(self):
        params = parse_locally("Crea evento domani 15").parameters
        assert params.title == "Nuovo evento"
        assert params.date == "domani"
        assert params.start_time == "15:00"
        assert params.end_time == "16:00"

    def test_named_event(self):
        params = parse_locally("Crea un evento chiamato Dentista venerdì alle 9:30").parameters
        assert params.title == "Dentista"
        assert params.date == "venerdì"
        assert params.start_time == "09:30"
        assert params.end_time == "10:30"

    def test_next_weekday(self):
        params = parse_locally("Crea un evento chiamato Palestra lunedì prossimo alle 18").parameters
        assert params.title == "Palestra"
        assert params.date == "lunedì prossimo"

    def test_time_range(self):
        params = parse_locally("Crea palestra domani dalle 18 alle 19:30").parameters
        assert params.start_time == "18:00"
        assert params.end_time == "19:30"

    def test_in_days(self):
        params = parse_locally("Crea un evento chiamato Cena tra 3 giorni alle 20").parameters
        assert params.date == "tra 3 giorni"
        assert params.start_time == "20:00"

    def test_no_time(self):
        params = parse_locally("Crea un evento chiamato Ferie").parameters
        assert params.title == "Ferie"
        assert params.start_time is None
        assert params.end_time is None


# ─── Update ──────────────────────────────────────────────────────────────────

class TestUpdate:
    def test_shift(self):
        action = parse_locally("Posticipa la riunione con Mario di due ore")

        assert action.action == ActionType.UPDATE_EVENT
        params = action.parameters
        assert params.title == "Riunione con Mario"
        assert params.start_time is None
        modification = params.time_modification
        assert modification.direction == ShiftDirection.FORWARD
        assert modification.amount == 2
        assert modification.unit == ShiftUnit.HOUR

    def test_anticipa_minutes(self):
        modification = parse_locally("Anticipa l'appuntamento Dentista di 30 minuti").parameters.time_modification
        assert modification.direction == ShiftDirection.BACKWARD
        assert (modification.amount, modification.unit) == (30, ShiftUnit.MINUTE)

    def test_move_to_time(self):
        params = parse_locally("Sposta la riunione a domani alle 10").parameters
        assert params.title == "Riunione"
        assert params.date == "domani"
        assert params.start_time == "10:00"
        assert params.time_modification is None

    def test_add_attendee(self):
        action = parse_locally("Aggiungi Luigi alla riunione con Mario")

        assert action.action == ActionType.UPDATE_EVENT
        params = action.parameters
        assert params.title == "Riunione con Mario"
        assert params.attendees == ["Luigi"]
        assert params.attendees_action == AttendeesAction.ADD


# ─── Delete ──────────────────────────────────────────────────────────────────

class TestDelete:
    def test_delete_all_for_tomorrow(self):
        action = parse_locally("Elimina tutti gli eventi per domani")
        assert action.action == ActionType.DELETE_EVENT
        assert action.parameters.delete_all is True
        assert action.parameters.date == "domani"

    def test_delete_everything(self):
        params = parse_locally("cancella tutto").parameters
        assert params.delete_all is True
        assert params.date is None

    def test_delete_by_title(self):
        action = parse_locally("Elimina la riunione con Mario")
        assert action.action == ActionType.DELETE_EVENT
        assert action.parameters.title == "Riunione con Mario"
        assert action.parameters.delete_all is None
        assert action.parameters.start_time is None

    def test_delete_bare_noun_keeps_noun_as_title(self):
        params = parse_locally("Elimina la riunione").parameters
        assert params.title == "Riunione"

    def test_delete_without_noun_leaves_title_to_context(self):
        params = parse_locally("Elimina").parameters
        assert params.title is None


# ─── View ────────────────────────────────────────────────────────────────────

class TestView:
    def test_tomorrow(self):
        action = parse_locally("Mostra gli eventi di domani")
        assert action.action == ActionType.VIEW_EVENTS
        assert action.parameters.date == "domani"
        assert action.parameters.max_results == 10
        assert action.parameters.query is None

    def test_this_week(self):
        assert parse_locally("quali eventi ho questa settimana").parameters.date == "questa settimana"

    def test_unrecognised_defaults_to_view(self):
        action = parse_locally("boh")
        assert action.action == ActionType.VIEW_EVENTS
        assert action.parameters.max_results == 10


# ─── Robustness ──────────────────────────────────────────────────────────────

class TestRobustness:
    def test_internal_error_returns_view(self):
        with patch("lucalendar.core.local_parser.classify", side_effect=RuntimeError("boom")):
            action = parse_locally("crea qualcosa")

        assert action.action == ActionType.VIEW_EVENTS
        assert action.parameters.max_results == 5
        assert action.source == "local"

    def test_hour_count_is_not_a_time(self):
        assert extract_times("sposta alle 2 ore dopo") == (None, None)

    def test_out_of_range_hour_ignored(self):
        assert extract_times("crea evento alle 27") == (None, None)
