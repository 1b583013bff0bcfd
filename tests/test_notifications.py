"""Notification outbox, sending and the outbox scheduler"""
import asyncio

import pytest

from ticketflow.domain.enums import NotificationStatus, NotificationTemplateKey
from ticketflow.domain.models import Credit
from ticketflow.repositories.notification_repo import NotificationRepository
from ticketflow.scheduler.outbox_scheduler import OutboxScheduler
from ticketflow.services.notification_service import NotificationEvent, NotificationService
from ticketflow.templates import get_email_template


@pytest.fixture
def repo(mongo_db):
    return NotificationRepository()


@pytest.fixture
def service(repo, directory):
    return NotificationService(repo=repo, directory_service=directory)


def enqueue(service, ticket_id="TID-1"):
    return service.enqueue_notification(
        template_key=NotificationTemplateKey.TICKET_FORWARDED,
        recipients=["b@example.com"],
        payload={"ticket_id": ticket_id, "ticket_number": "TKT-2026-000001", "explanation": "<b>done</b>"},
        ticket_id=ticket_id
    )


def test_notify_resolves_recipient_emails(service, repo, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    event = NotificationEvent(
        template_key=NotificationTemplateKey.TICKET_REASSIGNED,
        recipient_ids=["C", "D", "unknown"],
        notify_requester=True,
        extra={"explanation": "coverage"}
    )

    notification = service.notify(event, ticket, Credit(user_id="A", name="Alice Adams"))

    assert sorted(notification.recipients) == ["c@example.com", "d@example.com", "rita@example.com"]
    assert notification.payload["ticket_number"] == ticket.ticket_number
    assert notification.payload["actor_name"] == "Alice Adams"
    assert notification.payload["explanation"] == "coverage"


def test_notify_without_recipients_is_skipped(service, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    event = NotificationEvent(template_key=NotificationTemplateKey.TICKET_FORWARDED, recipient_ids=["nobody"])

    assert service.notify(event, ticket, Credit(user_id="A", name="Alice Adams")) is None


def test_send_with_mail_disabled_marks_sent(service, repo):
    notification = enqueue(service)

    assert asyncio.run(service.send_notification(notification)) is True

    stored = repo.get_notification(notification.notification_id)
    assert stored.status == NotificationStatus.SENT
    assert stored.sent_at is not None


def test_mark_failed_backs_off_then_gives_up(service, repo, test_settings, monkeypatch):
    monkeypatch.setattr(test_settings, "notification_max_retries", 2)
    notification = enqueue(service)

    first = repo.mark_failed(notification.notification_id, "smtp down")
    assert first.status == NotificationStatus.PENDING
    assert first.retry_count == 1
    assert first.next_retry_at is not None

    second = repo.mark_failed(notification.notification_id, "smtp down")
    assert second.status == NotificationStatus.FAILED
    assert second.retry_count == 2
    assert second.last_error == "smtp down"


def test_lock_is_exclusive(service, repo):
    notification = enqueue(service)

    assert repo.acquire_lock(notification.notification_id, "worker-1") is True
    assert repo.acquire_lock(notification.notification_id, "worker-2") is False
    assert repo.release_lock(notification.notification_id, "worker-1") is True
    assert repo.acquire_lock(notification.notification_id, "worker-2") is True


def test_process_outbox_sends_pending(service, repo):
    enqueue(service, "TID-1")
    enqueue(service, "TID-2")
    scheduler = OutboxScheduler(notification_repo=repo, notification_service=service)

    counts = asyncio.run(scheduler.process_outbox())

    assert counts == {"sent": 2, "failed": 0, "skipped": 0}
    assert repo.count_by_status() == {NotificationStatus.SENT.value: 2}


def test_process_outbox_records_send_failure(service, repo, monkeypatch):
    notification = enqueue(service)

    def broken_template(**kwargs):
        raise RuntimeError("template exploded")

    monkeypatch.setattr("ticketflow.services.notification_service.get_email_template", broken_template)
    scheduler = OutboxScheduler(notification_repo=repo, notification_service=service)

    counts = asyncio.run(scheduler.process_outbox())

    assert counts["failed"] == 1
    stored = repo.get_notification(notification.notification_id)
    assert stored.retry_count == 1
    assert stored.last_error == "template exploded"


def test_templates_escape_user_text():
    rendered = get_email_template(
        NotificationTemplateKey.TICKET_FORWARDED.value,
        {"ticket_id": "TID-1", "ticket_number": "TKT-2026-000001", "explanation": "<script>x</script>"},
        app_url="http://tickets.local"
    )

    assert rendered["subject"] == "Ticket forwarded: TKT-2026-000001"
    assert "<script>" not in rendered["body"]
    assert "http://tickets.local/tickets/TID-1" in rendered["body"]


def test_unknown_template_falls_back():
    rendered = get_email_template("SOMETHING_ELSE", {"ticket_number": "TKT-2026-000001"})

    assert rendered["subject"] == "[Notification] TKT-2026-000001"
