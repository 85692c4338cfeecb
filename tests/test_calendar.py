from datetime import date, time
from unittest.mock import Mock, patch

import pytest

from allevapp.errors import ValidationError, ConfigurationError
from allevapp.services.calendar import parse_attendees, event_window, build_event, create_calendar_event
from allevapp.services.microsoft_graph import GraphClient


def test_parse_attendees_splits_and_keeps_email_like_entries():
    assert parse_attendees("a@x.it, nome ,b@y.it,,a@x.it") == ["a@x.it", "b@y.it"]
    assert parse_attendees(["c@z.it", "senza-chiocciola"]) == ["c@z.it"]
    assert parse_attendees(None) == []


def test_all_day_event_spans_the_whole_day():
    assert event_window(date(2026, 5, 4), is_all_day=True) == ("2026-05-04T00:00:00", "2026-05-04T23:59:59")
    assert event_window(date(2026, 5, 4), end_date=date(2026, 5, 6), is_all_day=True)[1] == "2026-05-06T23:59:59"


def test_missing_end_defaults_to_one_hour():
    assert event_window(date(2026, 5, 4), time(9, 30)) == ("2026-05-04T09:30:00", "2026-05-04T10:30:00")


def test_end_time_without_end_date_uses_start_date():
    assert event_window(date(2026, 5, 4), time(9, 0), end_time=time(11, 0))[1] == "2026-05-04T11:00:00"


def test_timed_event_requires_start_time():
    with pytest.raises(ValidationError):
        event_window(date(2026, 5, 4))


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        event_window(date(2026, 5, 4), time(10, 0), date(2026, 5, 4), time(9, 0))


def test_build_event_payload():
    event = build_event(
        subject="Manutenzione mungitrice",
        description="Controllo annuale",
        start="2026-05-04T09:00:00",
        end="2026-05-04T10:00:00",
        location="Cascina Nord",
        attendees=["mario.rossi@allevapp.it"],
        reminder_minutes=30
    )
    assert event["start"] == {"dateTime": "2026-05-04T09:00:00", "timeZone": "Europe/Rome"}
    assert event["attendees"][0]["emailAddress"] == {"address": "mario.rossi@allevapp.it", "name": "mario.rossi"}
    assert event["reminderMinutesBeforeStart"] == 30
    assert event["location"] == {"displayName": "Cascina Nord"}
    assert event["isAllDay"] is False


def test_create_calendar_event_posts_to_graph():
    client = Mock(spec=GraphClient)
    client.create_event.return_value = {"event_id": "AAMk1", "web_link": "https://outlook/AAMk1"}

    result = create_calendar_event(
        subject="Scadenza certificato",
        description="",
        start_date=date(2026, 6, 1),
        is_all_day=True,
        attendees="a@x.it",
        client=client
    )

    assert result == {"success": True, "event_id": "AAMk1", "web_link": "https://outlook/AAMk1"}
    sent = client.create_event.call_args[0][0]
    assert sent["isAllDay"] is True
    assert sent["end"]["dateTime"] == "2026-06-01T23:59:59"


def test_unconfigured_graph_raises_configuration_error():
    client = GraphClient()
    client.tenant_id = None
    with pytest.raises(ConfigurationError):
        client.get_access_token()


def test_graph_token_request():
    client = GraphClient()
    client.tenant_id, client.client_id, client.client_secret, client.sender_email = "t", "c", "s", "farm@allevapp.it"

    response = Mock(ok=True)
    response.json.return_value = {"access_token": "tok"}
    with patch("allevapp.services.microsoft_graph.requests.post", return_value=response) as post:
        assert client.get_access_token() == "tok"
    assert post.call_args[1]["data"]["grant_type"] == "client_credentials"


def test_calendar_event_endpoint_without_configuration(client, manager_headers):
    response = client.post(
        "/api/notifications/calendar-event",
        json={"subject": "Visita", "start_date": "2026-05-04", "is_all_day": True},
        headers=manager_headers
    )
    assert response.status_code == 503
    assert response.json()["error"] == "not_configured"
