"""Tests for the contact reader and the SMS log write path."""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import make_contact
from core.exceptions import NotFoundError, ValidationError
from core.models import SmsLog
from core.utils import ensure_aware
from domain.contacts import ContactService
from domain.tracking import contact_cooldown


def test_list_in_suburb_is_scoped_and_case_insensitive(db_session, user_id, contacts):
    found = ContactService(db_session, user_id).list_in_suburb(" eastSIDE")
    assert [c.first_name for c in found] == ["Alice", "Bob", "Dan", "Eve"]


def test_suburb_contact_counts(db_session, user_id, contacts):
    make_contact(db_session, address_suburb=None)
    counts = ContactService(db_session, user_id).suburb_contact_counts()
    assert counts == {"eastside": 4, "westside": 1}


def test_get_contact_of_other_user(db_session, user_id, contacts):
    with pytest.raises(NotFoundError):
        ContactService(db_session, user_id).get_contact(contacts["other_user"].id)


class TestLogSms:
    def test_logs_and_starts_cooldown(self, db_session, user_id, sample_sale, contacts, now):
        service = ContactService(db_session, user_id)
        alice = contacts["a"]
        assert contact_cooldown(alice, 7, now).is_on_cooldown is False

        log = service.log_sms_sent(alice.id, "Hi Alice", sale_id=sample_sale.id, sent_at=now)

        assert log.phone_number == alice.phone
        assert log.related_sale_id == sample_sale.id
        assert ensure_aware(alice.last_sms_at) == now
        status = contact_cooldown(alice, 7, now + timedelta(days=1))
        assert status.is_on_cooldown is True
        assert status.days_remaining == 6

    def test_without_sale(self, db_session, user_id, contacts, now):
        ContactService(db_session, user_id).log_sms_sent(contacts["b"].id, "Hello", sent_at=now)
        logs = db_session.scalars(select(SmsLog).where(SmsLog.contact_id == contacts["b"].id)).all()
        assert len(logs) == 1
        assert logs[0].related_sale_id is None

    def test_contact_without_phone(self, db_session, user_id):
        contact = make_contact(db_session, phone=None)
        with pytest.raises(ValidationError):
            ContactService(db_session, user_id).log_sms_sent(contact.id, "Hello")

    def test_empty_body(self, db_session, user_id, contacts):
        with pytest.raises(ValidationError):
            ContactService(db_session, user_id).log_sms_sent(contacts["a"].id, "   ")

    def test_unknown_sale(self, db_session, user_id, contacts):
        with pytest.raises(NotFoundError):
            ContactService(db_session, user_id).log_sms_sent(contacts["a"].id, "Hello", sale_id=424242)

    def test_set_last_contacted(self, db_session, user_id, contacts, now):
        contact = ContactService(db_session, user_id).set_last_contacted(contacts["b"].id, now)
        assert ensure_aware(contact.last_sms_at) == now
