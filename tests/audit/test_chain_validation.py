"""
Audit hash chain tests.

Every audit event hashes its payload and links to the previous event's
hash.  Tampering with any stored payload or link is detected by
validate_chain().
"""

from decimal import Decimal

import pytest
from sqlalchemy import select, update

from ledger_kernel.exceptions import AuditChainBrokenError
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.utils.hashing import canonicalize_json, hash_audit_event, hash_payload
from tests.conftest import COMPANY, TENANT


def _events(session) -> list[AuditEvent]:
    return list(session.execute(select(AuditEvent).order_by(AuditEvent.seq)).scalars().all())


class TestChainLinkage:

    def test_genesis_has_no_previous_hash(self, session, chart):
        events = _events(session)

        assert events[0].seq == 1
        assert events[0].is_genesis
        assert all(not e.is_genesis for e in events[1:])

    def test_each_event_links_to_its_predecessor(self, session, engine, chart, sale_request):
        engine.post(sale_request("INV-H1"))

        events = _events(session)
        for previous, current in zip(events, events[1:]):
            assert current.prev_hash == previous.hash
            assert current.seq == previous.seq + 1

    def test_valid_chain_passes(self, engine, reversal, auditor, chart, sale_request, actor_id):
        engine.post(sale_request("INV-H2"))
        reversal.void(TENANT, COMPANY, "invoice", "INV-H2", "Test", actor_id)

        assert auditor.validate_chain() is True

    def test_empty_chain_is_valid(self, auditor):
        assert auditor.validate_chain() is True
        assert auditor.count_events() == 0

    def test_event_records_clock_time(self, session, clock, auditor, chart):
        assert _events(session)[0].occurred_at.replace(tzinfo=None) == clock.now().replace(tzinfo=None)


class TestTamperDetection:
    """Bulk UPDATE statements bypass the ORM guards, the way raw SQL would."""

    def test_payload_tampering_detected(self, session, engine, auditor, chart, sale_request):
        engine.post(sale_request("INV-T1"))
        target = _events(session)[-1]

        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == target.id)
            .values(payload={"source_ref": "INV-FORGED"})
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain()

        assert exc_info.value.audit_event_id == str(target.id)
        assert exc_info.value.code == "audit_chain_broken"

    def test_broken_link_detected(self, session, auditor, chart):
        second = _events(session)[1]

        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == second.id)
            .values(prev_hash="0" * 64)
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor.validate_chain()

    def test_tampering_logged_as_critical(self, session, auditor, chart, captured_logs):
        first = _events(session)[0]
        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == first.id)
            .values(hash="f" * 64)
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor.validate_chain()

        broken = [r for r in captured_logs() if r["message"] == "audit_chain_broken"]
        assert broken[0]["level"] == "CRITICAL"
        assert broken[0]["check"] == "hash"


class TestTrace:

    def test_trace_for_unknown_entity_is_empty(self, auditor):
        from uuid import uuid4

        trace = auditor.get_trace("JournalEntry", uuid4())

        assert trace.entries == ()
        assert trace.last_action is None

    def test_custom_event_recorded(self, session, auditor, actor_id):
        from uuid import uuid4

        entity_id = uuid4()
        auditor.record(
            TENANT, COMPANY, "Invoice", entity_id, AuditAction.DOCUMENT_VOIDED, actor_id,
            payload={"amount": Decimal("12.50")},
        )

        trace = auditor.get_trace("Invoice", entity_id)
        assert trace.last_action == AuditAction.DOCUMENT_VOIDED
        assert trace.entries[0].payload == {"amount": "12.5"}


class TestHashing:

    def test_canonical_json_is_key_order_independent(self):
        assert canonicalize_json({"b": 1, "a": 2}) == canonicalize_json({"a": 2, "b": 1})

    def test_payload_hash_changes_with_content(self):
        assert hash_payload({"amount": "1.00"}) != hash_payload({"amount": "1.01"})

    def test_event_hash_depends_on_previous(self):
        kwargs = dict(
            entity_type="JournalEntry",
            entity_id="abc",
            action="journal_posted",
            payload_hash=hash_payload({}),
        )
        assert hash_audit_event(prev_hash=None, **kwargs) != hash_audit_event(prev_hash="x", **kwargs)
