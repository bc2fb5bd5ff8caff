"""
Posting engine tests.

Covers the happy path of PostingEngine.post() plus the validation rules
applied before anything is written:
- legs are rounded per line, then the entry must balance exactly
- zero legs write no line; an all-zero document is rejected
- re-posting the same document is refused and changes nothing
- entry, lines, sub-ledger row and audit event share one correlation id
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.domain.posting import (
    PostingLeg,
    PostingRequest,
    SubledgerInstruction,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    UnbalancedEntryError,
    ValidationError,
    ZeroValueDocumentError,
)
from ledger_kernel.models.audit_event import AuditAction
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.models.subledger import SubledgerTransactionStatus
from tests.conftest import AR, CASH, COMPANY, REVENUE, TAX_PAYABLE, TENANT


class TestBalancedPosting:
    """A valid document becomes one POSTED, balanced entry."""

    def test_simple_sale_posts_balanced_entry(self, engine, journal, chart, sale_request):
        result = engine.post(sale_request("INV-1", Decimal("200.00"), Decimal("20.00")))

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.status == JournalEntryStatus.POSTED
        assert entry.is_balanced
        assert entry.debit_for(AR) == Decimal("220.00")
        assert entry.credit_for(REVENUE) == Decimal("200.00")
        assert entry.credit_for(TAX_PAYABLE) == Decimal("20.00")
        assert result.total_debits == Decimal("220.00")
        assert result.line_count == 3

    def test_entry_carries_source_and_scope(self, engine, journal, chart, sale_request):
        result = engine.post(sale_request("INV-2"))

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.tenant_id == TENANT
        assert entry.company_id == COMPANY
        assert entry.source_type == "invoice"
        assert entry.source_ref == "INV-2"
        assert entry.currency == "USD"
        assert entry.posted_at is not None
        assert entry.reversal_of_id is None

    def test_posting_is_committed(self, engine, session, journal, chart, sale_request):
        result = engine.post(sale_request("INV-3"))
        session.rollback()

        assert journal.get_entry(result.journal_entry_id) is not None

    def test_explicit_account_id_leg(self, engine, journal, chart, actor_id):
        cash = chart[AccountPurpose.CASH]
        result = engine.post(
            PostingRequest(
                tenant_id=TENANT,
                company_id=COMPANY,
                entry_date=date(2024, 3, 15),
                source_type="cash_sale",
                source_ref="CS-1",
                actor_id=actor_id,
                legs=(
                    PostingLeg.debit(cash.id, Decimal("50.00")),
                    PostingLeg.credit(AccountPurpose.REVENUE, Decimal("50.00")),
                ),
            )
        )

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.debit_for(CASH) == Decimal("50.00")

    def test_unknown_explicit_account_rejected(self, engine, chart, actor_id):
        with pytest.raises(AccountNotFoundError):
            engine.post(
                PostingRequest(
                    tenant_id=TENANT,
                    company_id=COMPANY,
                    entry_date=date(2024, 3, 15),
                    source_type="cash_sale",
                    source_ref="CS-2",
                    actor_id=actor_id,
                    legs=(
                        PostingLeg.debit(uuid4(), Decimal("50.00")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("50.00")),
                    ),
                )
            )

    def test_trial_balance_stays_balanced(self, engine, ledger, chart, sale_request):
        engine.post(sale_request("INV-4", Decimal("100.00"), Decimal("10.00")))
        engine.post(sale_request("INV-5", Decimal("33.33"), Decimal("3.33")))

        trial = ledger.trial_balance(TENANT, COMPANY)
        assert trial.is_balanced
        assert trial.row_for(AR).debit_total == Decimal("146.66")


class TestRounding:
    """Each leg is rounded to the currency's minor unit before the balance check."""

    def test_half_up_rounding_per_leg(self, engine, journal, chart, actor_id):
        result = engine.post(
            PostingRequest(
                tenant_id=TENANT,
                company_id=COMPANY,
                entry_date=date(2024, 3, 15),
                source_type="invoice",
                source_ref="INV-R1",
                actor_id=actor_id,
                legs=(
                    PostingLeg.debit(AccountPurpose.AR, Decimal("100.005")),
                    PostingLeg.credit(AccountPurpose.REVENUE, Decimal("100.005")),
                ),
            )
        )

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.debit_for(AR) == Decimal("100.01")
        assert entry.credit_for(REVENUE) == Decimal("100.01")

    def test_rounding_cannot_hide_an_imbalance(self, engine, journal, chart, actor_id):
        """33.33 + 33.33 + 33.33 is not 100.00."""
        with pytest.raises(UnbalancedEntryError) as exc_info:
            engine.post(
                PostingRequest(
                    tenant_id=TENANT,
                    company_id=COMPANY,
                    entry_date=date(2024, 3, 15),
                    source_type="invoice",
                    source_ref="INV-R2",
                    actor_id=actor_id,
                    legs=(
                        PostingLeg.debit(AccountPurpose.AR, Decimal("100.00")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("33.333")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("33.333")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("33.333")),
                    ),
                )
            )

        assert exc_info.value.code == "unbalanced_entry"
        assert journal.count_entries(TENANT, COMPANY) == 0

    def test_zero_decimal_currency(self, engine, journal, chart, actor_id):
        result = engine.post(
            PostingRequest(
                tenant_id=TENANT,
                company_id=COMPANY,
                entry_date=date(2024, 3, 15),
                source_type="invoice",
                source_ref="INV-JPY",
                actor_id=actor_id,
                currency="jpy",
                legs=(
                    PostingLeg.debit(AccountPurpose.AR, Decimal("1234.5")),
                    PostingLeg.credit(AccountPurpose.REVENUE, Decimal("1234.5")),
                ),
            )
        )

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.currency == "JPY"
        assert entry.debit_for(AR) == Decimal("1235")

    def test_malformed_currency_rejected(self, engine, chart, actor_id):
        with pytest.raises(ValidationError) as exc_info:
            engine.post(
                PostingRequest(
                    tenant_id=TENANT,
                    company_id=COMPANY,
                    entry_date=date(2024, 3, 15),
                    source_type="invoice",
                    source_ref="INV-BAD",
                    actor_id=actor_id,
                    currency="US",
                    legs=(
                        PostingLeg.debit(AccountPurpose.AR, Decimal("1")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("1")),
                    ),
                )
            )
        assert exc_info.value.field == "currency"


class TestUnbalanced:

    def test_unbalanced_request_rejected(self, engine, journal, chart, actor_id):
        with pytest.raises(UnbalancedEntryError) as exc_info:
            engine.post(
                PostingRequest(
                    tenant_id=TENANT,
                    company_id=COMPANY,
                    entry_date=date(2024, 3, 15),
                    source_type="invoice",
                    source_ref="INV-U1",
                    actor_id=actor_id,
                    legs=(
                        PostingLeg.debit(AccountPurpose.AR, Decimal("100.00")),
                        PostingLeg.credit(AccountPurpose.REVENUE, Decimal("90.00")),
                    ),
                )
            )

        assert exc_info.value.debits == "100.00"
        assert exc_info.value.credits == "90.00"
        assert journal.count_entries(TENANT, COMPANY) == 0


class TestZeroLegs:
    """Zero legs are skipped; a document of only zeros is an error."""

    def test_zero_leg_writes_no_line(self, engine, journal, chart, sale_request):
        result = engine.post(sale_request("INV-Z1", Decimal("100.00"), Decimal("0")))

        entry = journal.get_entry(result.journal_entry_id)
        assert len(entry.lines) == 2
        assert entry.credit_for(TAX_PAYABLE) == Decimal("0")

    def test_zero_leg_needs_no_account(self, session, engine, journal, account_service, actor_id, sale_request):
        account_service.provision_purpose(TENANT, COMPANY, AccountPurpose.AR, actor_id)
        account_service.provision_purpose(TENANT, COMPANY, AccountPurpose.REVENUE, actor_id)
        session.commit()

        result = engine.post(sale_request("INV-Z2", Decimal("100.00"), Decimal("0")))

        assert journal.get_entry(result.journal_entry_id).is_balanced

    def test_all_zero_document_rejected(self, engine, journal, chart, sale_request):
        with pytest.raises(ZeroValueDocumentError):
            engine.post(sale_request("INV-Z3", Decimal("0"), Decimal("0")))

        assert journal.count_entries(TENANT, COMPANY) == 0

    def test_amounts_rounding_to_zero_are_zero(self, engine, chart, sale_request):
        with pytest.raises(ZeroValueDocumentError):
            engine.post(sale_request("INV-Z4", Decimal("0.004"), Decimal("0")))


class TestIdempotency:
    """Posting the same source document twice is refused."""

    def test_second_post_raises_already_posted(self, engine, journal, chart, sale_request):
        first = engine.post(sale_request("INV-D1"))

        with pytest.raises(AlreadyPostedError) as exc_info:
            engine.post(sale_request("INV-D1"))

        assert exc_info.value.journal_entry_id == str(first.journal_entry_id)
        assert journal.count_entries(TENANT, COMPANY) == 1

    def test_same_ref_different_source_type_is_distinct(self, engine, journal, chart, sale_request):
        engine.post(sale_request("DOC-1", source_type="invoice"))
        engine.post(sale_request("DOC-1", source_type="credit_note"))

        assert journal.count_entries(TENANT, COMPANY) == 2

    def test_same_ref_different_company_is_distinct(
        self, session, engine, journal, chart, account_service, actor_id, sale_request
    ):
        account_service.provision_default_chart(TENANT, "company-2", actor_id)
        session.commit()

        engine.post(sale_request("INV-D2"))
        engine.post(sale_request("INV-D2", company_id="company-2"))

        assert journal.count_entries(TENANT, COMPANY) == 1
        assert journal.count_entries(TENANT, "company-2") == 1


class TestCorrelation:
    """One correlation id links every record a posting writes."""

    def test_subledger_transaction_shares_correlation(
        self, engine, journal, subledger, chart, sale_request
    ):
        result = engine.post(
            sale_request(
                "INV-C1",
                Decimal("100.00"),
                subledger=SubledgerInstruction(
                    transaction_type="invoice",
                    amount=Decimal("100.00"),
                    party_ref="CUST-1",
                ),
            )
        )

        entry = journal.get_entry(result.journal_entry_id)
        txn = subledger.transaction_for_entry(result.journal_entry_id)
        assert txn.id == result.subledger_transaction_id
        assert txn.correlation_id == result.correlation_id == entry.correlation_id
        assert txn.status == SubledgerTransactionStatus.POSTED
        assert txn.party_ref == "CUST-1"
        assert txn.amount == Decimal("100.00")

    def test_posting_appends_audit_event(self, engine, auditor, chart, sale_request):
        result = engine.post(sale_request("INV-C2"))

        trace = auditor.get_trace("JournalEntry", result.journal_entry_id)
        assert trace.actions == (AuditAction.JOURNAL_POSTED,)
        assert trace.entries[0].payload["correlation_id"] == str(result.correlation_id)
        assert trace.entries[0].payload["source_ref"] == "INV-C2"

    def test_posting_logs_carry_correlation_id(self, engine, chart, sale_request, captured_logs):
        result = engine.post(sale_request("INV-C3"))

        records = [r for r in captured_logs() if r["message"] in ("posting_started", "posting_completed")]
        assert [r["message"] for r in records] == ["posting_started", "posting_completed"]
        assert all(r["correlation_id"] == str(result.correlation_id) for r in records)
        assert records[1]["entry_id"] == str(result.journal_entry_id)
