import logging

from coachdash.logs import REDACTED, RedactingFilter, redact


def _record(msg, args):
    return logging.LogRecord("coachdash.test", logging.INFO, __file__, 1, msg, args, None)


def test_redact_masks_contact_details():
    text = redact("parent alex@example.com called from 555-123-4567 about 123-45-6789")

    assert "alex@example.com" not in text
    assert "555-123-4567" not in text
    assert "123-45-6789" not in text
    assert text.count(REDACTED) == 3


def test_filter_redacts_message_and_arguments():
    record = _record("Invite sent to %s for %s", ("parent@example.com", 3))

    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == f"Invite sent to {REDACTED} for 3"


def test_filter_redacts_mapping_arguments():
    record = _record("Invite sent to %(email)s", ({"email": "parent@example.com"},))

    RedactingFilter().filter(record)

    assert record.getMessage() == f"Invite sent to {REDACTED}"


def test_filter_leaves_plain_messages_alone():
    record = _record("Bulk import finished", ())

    RedactingFilter().filter(record)

    assert record.getMessage() == "Bulk import finished"
