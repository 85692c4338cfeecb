from datetime import date, timedelta
from unittest.mock import Mock, patch

import pytest

from allevapp.errors import ValidationError
from allevapp.models import Report, Equipment, Facility
from allevapp.services.daily_summary import collect_summary, send_daily_summary
from allevapp.services.email import EmailService
from allevapp.services.microsoft_graph import GraphClient

TODAY = date(2026, 3, 10)


@pytest.fixture
def busy_farm(db, farm):
    db.add_all([
        Report(title="Abbeveratoio rotto", farm_id=farm.id, urgency="critical", status="open"),
        Report(title="Cancello", farm_id=farm.id, urgency="high", status="resolved"),
        Report(title="Lampadina", farm_id=farm.id, urgency="low", status="open"),
        Equipment(name="Mungitrice", farm_id=farm.id, next_maintenance_due=TODAY - timedelta(days=2)),
        Equipment(name="Trattore", farm_id=farm.id, next_maintenance_due=TODAY + timedelta(days=7)),
        Equipment(name="Carro", farm_id=farm.id, next_maintenance_due=TODAY + timedelta(days=8)),
        Facility(name="Ventilazione", type="ventilation", farm_id=farm.id, next_maintenance_due=TODAY),
    ])
    db.commit()
    return farm


def test_collect_summary(db, busy_farm):
    summary = collect_summary(db, TODAY)

    assert [r["title"] for r in summary["urgent_reports"]] == ["Abbeveratoio rotto"]
    assert [m["name"] for m in summary["overdue_maintenance"]] == ["Mungitrice"]
    assert [(m["type"], m["name"]) for m in summary["due_soon_maintenance"]] == [
        ("facility", "Ventilazione"),
        ("equipment", "Trattore"),
    ]


def test_nothing_to_report_sends_nothing(db, manager):
    service = Mock(spec=EmailService)
    result = send_daily_summary(db, email_service=service, today=TODAY)

    assert result["sent"] is False
    service.send_daily_summary.assert_not_called()


def test_summary_without_recipients_is_an_error(db, busy_farm, technician):
    with pytest.raises(ValidationError):
        send_daily_summary(db, email_service=Mock(spec=EmailService), today=TODAY)


def test_summary_goes_to_admins_and_managers(db, busy_farm, admin, manager, technician):
    service = Mock(spec=EmailService)
    service.send_daily_summary.side_effect = lambda to, name, summary: to == admin.email

    result = send_daily_summary(db, email_service=service, today=TODAY)

    assert result["sent"] is True
    assert result["recipients"] == 2
    assert result["successful_sends"] == 1
    assert result["failed_sends"] == 1
    assert result["summary"] == {"urgent_reports": 1, "overdue_maintenance": 1, "due_soon_maintenance": 2}
    assert {r["recipient"] for r in result["results"]} == {admin.email, manager.email}


def test_email_prefers_graph_when_configured():
    graph = Mock(spec=GraphClient)
    graph.configured = True

    assert EmailService(graph_client=graph).send("a@x.it", "Oggetto", "<p>ciao</p>")
    graph.send_mail.assert_called_once_with(["a@x.it"], "Oggetto", "<p>ciao</p>")


def test_email_falls_back_to_smtp():
    graph = Mock(spec=GraphClient)
    graph.configured = False
    service = EmailService(graph_client=graph)
    service.username, service.password = "user", "pw"

    with patch("allevapp.services.email.smtplib.SMTP") as smtp:
        assert service.send("a@x.it", "Oggetto", "<p>ciao</p>")

    server = smtp.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("user", "pw")
    assert server.sendmail.call_args[0][1] == "a@x.it"


def test_email_without_smtp_credentials_fails_quietly():
    graph = Mock(spec=GraphClient)
    graph.configured = False
    service = EmailService(graph_client=graph)
    service.username = None

    assert service.send("a@x.it", "Oggetto", "<p>ciao</p>") is False
