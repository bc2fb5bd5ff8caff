"""
Account purpose resolution tests.

Account codes are company-specific; legs name purposes.  A purpose with no
usable mapping must stop the posting before anything is written, and the
error must list every missing purpose at once.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from ledger_kernel.domain.accounts import AccountPurpose, AccountType
from ledger_kernel.domain.posting import LineSide, PostingLeg
from ledger_kernel.exceptions import ConfigurationError, MissingAccountsError, ValidationError
from ledger_kernel.models.audit_event import AuditAction
from ledger_kernel.services.account_service import AccountResolver
from ledger_kernel.services.posting_engine import PostingEngine
from tests.conftest import AR, COMPANY, TENANT


class TestMissingAccounts:

    def test_all_missing_purposes_reported_together(self, engine, journal, sale_request):
        with pytest.raises(MissingAccountsError) as exc_info:
            engine.post(sale_request("INV-M1", Decimal("100.00"), Decimal("10.00")))

        assert exc_info.value.code == "missing_accounts"
        assert exc_info.value.purposes == ["AR", "REVENUE", "TAX_PAYABLE"]
        assert exc_info.value.company_id == COMPANY
        assert journal.count_entries(TENANT, COMPANY) == 0

    def test_partial_chart_reports_only_the_gap(
        self, session, engine, account_service, actor_id, sale_request
    ):
        account_service.provision_purpose(TENANT, COMPANY, AccountPurpose.AR, actor_id)
        session.commit()

        with pytest.raises(MissingAccountsError) as exc_info:
            engine.post(sale_request("INV-M2", Decimal("100.00"), Decimal("10.00")))

        assert exc_info.value.purposes == ["REVENUE", "TAX_PAYABLE"]

    def test_deactivated_account_stops_resolving(
        self, session, engine, account_service, chart, actor_id, sale_request
    ):
        account_service.deactivate_account(TENANT, COMPANY, chart[AccountPurpose.AR].id, actor_id)
        session.commit()

        with pytest.raises(MissingAccountsError) as exc_info:
            engine.post(sale_request("INV-M3"))

        assert exc_info.value.purposes == ["AR"]

    def test_other_company_chart_is_not_used(
        self, session, engine, account_service, actor_id, sale_request
    ):
        account_service.provision_default_chart(TENANT, "company-2", actor_id)
        session.commit()

        with pytest.raises(MissingAccountsError):
            engine.post(sale_request("INV-M4"))

    def test_missing_accounts_logged(self, engine, sale_request, captured_logs):
        with pytest.raises(MissingAccountsError):
            engine.post(sale_request("INV-M5"))

        failures = [r for r in captured_logs() if r["message"] == "account_resolution_failed"]
        assert failures[0]["missing_purposes"] == ["AR", "REVENUE"]
        rejected = [r for r in captured_logs() if r["message"] == "posting_rejected"]
        assert rejected[0]["error_code"] == "missing_accounts"


class TestUnknownPurpose:

    def test_unknown_purpose_string_rejected(self):
        with pytest.raises(ValidationError):
            PostingLeg(side=LineSide.DEBIT, amount=Decimal("1"), purpose="PETTY_CASH")

    def test_purpose_string_is_coerced(self):
        leg = PostingLeg(side="credit", amount=Decimal("1"), purpose="REVENUE")

        assert leg.purpose is AccountPurpose.REVENUE
        assert leg.side is LineSide.CREDIT


class TestAutoProvisioning:

    def test_missing_purposes_created_from_default_chart(
        self, session, settings, clock, journal, account_service, sale_request
    ):
        provisioning = PostingEngine(
            session,
            settings=replace(settings, auto_provision_accounts=True),
            clock=clock,
        )

        result = provisioning.post(sale_request("INV-P1"))

        assert set(result.provisioned_purposes) == {"AR", "REVENUE"}
        assert account_service.get_by_code(TENANT, COMPANY, AR) is not None
        assert journal.get_entry(result.journal_entry_id).debit_for(AR) == Decimal("100.00")

    def test_provisioning_without_template_still_missing(
        self, session, settings, clock, sale_request
    ):
        provisioning = PostingEngine(
            session,
            settings=replace(settings, auto_provision_accounts=True, default_chart={}),
            clock=clock,
        )

        with pytest.raises(MissingAccountsError) as exc_info:
            provisioning.post(sale_request("INV-P2"))

        assert exc_info.value.purposes == ["AR", "REVENUE"]

    def test_default_chart_is_idempotent(self, session, account_service, chart, actor_id):
        again = account_service.provision_default_chart(TENANT, COMPANY, actor_id)

        assert {p: a.id for p, a in again.items()} == {p: a.id for p, a in chart.items()}


class TestChartMaintenance:

    def test_remapping_moves_future_postings(
        self, session, engine, journal, account_service, chart, actor_id, sale_request
    ):
        account_service.create_account(
            TENANT, COMPANY, "1101", "Trade Receivables", AccountType.ASSET,
            actor_id, purpose=AccountPurpose.AR,
        )
        session.commit()

        result = engine.post(sale_request("INV-R1"))

        entry = journal.get_entry(result.journal_entry_id)
        assert entry.debit_for("1101") == Decimal("100.00")
        assert entry.debit_for(AR) == Decimal("0")

    def test_duplicate_code_rejected(self, account_service, chart, actor_id):
        with pytest.raises(ValidationError):
            account_service.create_account(
                TENANT, COMPANY, AR, "Another AR", AccountType.ASSET, actor_id
            )

    def test_provisioning_inactive_default_account_fails(
        self, session, account_service, chart, actor_id
    ):
        account_service.deactivate_account(TENANT, COMPANY, chart[AccountPurpose.AR].id, actor_id)

        with pytest.raises(ConfigurationError):
            account_service.provision_purpose(TENANT, COMPANY, AccountPurpose.AR, actor_id)

    def test_chart_changes_are_audited(self, auditor, chart):
        trace = auditor.get_trace("Account", chart[AccountPurpose.AR].id)

        assert trace.actions == (AuditAction.ACCOUNT_CREATED, AuditAction.ACCOUNT_MAPPED)


class _DictResolver:
    """In-memory resolver standing in for the account mapping table."""

    def __init__(self, accounts):
        self._accounts = accounts
        self.calls = []

    def resolve_account(self, tenant_id, company_id, purpose):
        self.calls.append(purpose)
        return self._accounts.get(purpose)


class TestInjectedResolver:

    def test_engine_uses_injected_resolver(self, session, settings, clock, chart, sale_request):
        resolver = _DictResolver(
            {
                AccountPurpose.AR: chart[AccountPurpose.AR],
                AccountPurpose.REVENUE: chart[AccountPurpose.REVENUE],
            }
        )
        assert isinstance(resolver, AccountResolver)

        PostingEngine(session, resolver=resolver, settings=settings, clock=clock).post(
            sale_request("INV-I1")
        )

        assert resolver.calls == [AccountPurpose.AR, AccountPurpose.REVENUE]

    def test_resolver_returning_nothing_fails_loudly(self, session, settings, clock, chart, sale_request):
        engine = PostingEngine(
            session, resolver=_DictResolver({}), settings=settings, clock=clock
        )

        with pytest.raises(MissingAccountsError):
            engine.post(sale_request("INV-I2"))
