"""
AccountService -- chart of accounts maintenance and purpose resolution.

Responsibility:
    Resolves an AccountPurpose to the concrete Account mapped for a
    (tenant, company), and maintains the chart: create accounts, map
    purposes, deactivate accounts, provision the configured default chart.

Architecture position:
    Kernel > Services.  PostingEngine depends only on the AccountResolver
    protocol; SqlAccountResolver (this module) is the store-backed
    implementation.

Invariants enforced:
    - Resolution is a unique lookup through AccountMapping, never a search
      and never a fallback to some other account.
    - A mapping to an inactive or out-of-scope account counts as missing.
    - Accounts are deactivated, never deleted.

Failure modes:
    - MissingAccountsError listing every unresolvable purpose at once.
    - AccountNotFoundError for an explicit id outside the scope.
    - ConfigurationError when auto-provisioning has no template for a
      purpose.
"""

from typing import Iterable, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountPurpose, AccountType
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConfigurationError,
    MissingAccountsError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountMapping
from ledger_kernel.models.audit_event import AuditAction
from ledger_kernel.services.auditor_service import AuditorService

logger = get_logger("services.accounts")


@runtime_checkable
class AccountResolver(Protocol):
    """Narrow read interface the posting engine depends on."""

    def resolve_account(
        self,
        tenant_id: str,
        company_id: str,
        purpose: AccountPurpose,
    ) -> Account | None:
        ...


class SqlAccountResolver:
    """AccountResolver backed by the account_mappings table."""

    def __init__(self, session: Session):
        self._session = session

    def resolve_account(
        self,
        tenant_id: str,
        company_id: str,
        purpose: AccountPurpose,
    ) -> Account | None:
        mapping = self._session.execute(
            select(AccountMapping).where(
                AccountMapping.tenant_id == tenant_id,
                AccountMapping.company_id == company_id,
                AccountMapping.purpose == AccountPurpose(purpose),
            )
        ).scalar_one_or_none()
        if mapping is None:
            return None
        return mapping.account


def is_usable(account: Account | None, tenant_id: str, company_id: str) -> bool:
    """Active and inside the (tenant, company) scope."""
    return (
        account is not None
        and account.is_active
        and account.tenant_id == tenant_id
        and account.company_id == company_id
    )


def resolve_purposes(
    resolver: AccountResolver,
    tenant_id: str,
    company_id: str,
    purposes: Iterable[AccountPurpose],
) -> tuple[dict[AccountPurpose, Account], list[AccountPurpose]]:
    """
    Resolve each purpose once.

    Returns:
        (resolved, missing) -- missing holds every purpose without a usable
        account, in first-seen order.
    """
    resolved: dict[AccountPurpose, Account] = {}
    missing: list[AccountPurpose] = []
    for purpose in purposes:
        if purpose in resolved or purpose in missing:
            continue
        account = resolver.resolve_account(tenant_id, company_id, purpose)
        if is_usable(account, tenant_id, company_id):
            resolved[purpose] = account
        else:
            missing.append(purpose)
    return resolved, missing


class AccountService:
    """
    Chart of accounts maintenance.

    Non-goals:
        - Does NOT commit.  Callers (or session_scope) own the transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: PostingSettings | None = None,
        auditor: AuditorService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or PostingSettings()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._resolver = SqlAccountResolver(session)

    @property
    def resolver(self) -> SqlAccountResolver:
        return self._resolver

    def get_account(self, tenant_id: str, company_id: str, account_id: UUID) -> Account:
        """
        Load an account by id inside the scope.

        Raises:
            AccountNotFoundError: unknown id, other scope, or inactive.
        """
        account = self._session.get(Account, account_id)
        if not is_usable(account, tenant_id, company_id):
            raise AccountNotFoundError(str(account_id))
        return account

    def get_by_code(self, tenant_id: str, company_id: str, code: str) -> Account | None:
        return self._session.execute(
            select(Account).where(
                Account.tenant_id == tenant_id,
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()

    def create_account(
        self,
        tenant_id: str,
        company_id: str,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: UUID,
        purpose: AccountPurpose | None = None,
    ) -> Account:
        """Create an account; with ``purpose`` it is also mapped."""
        if not code or not name:
            raise ValidationError("account", "code and name are required")
        if self.get_by_code(tenant_id, company_id, code) is not None:
            raise ValidationError("code", f"account code {code!r} already exists")

        account = Account(
            tenant_id=tenant_id,
            company_id=company_id,
            code=code,
            name=name,
            account_type=AccountType(account_type),
            purpose=AccountPurpose(purpose) if purpose is not None else None,
            is_active=True,
            created_by_id=actor_id,
        )
        self._session.add(account)
        self._session.flush()

        self._auditor.record(
            tenant_id=tenant_id,
            company_id=company_id,
            entity_type="Account",
            entity_id=account.id,
            action=AuditAction.ACCOUNT_CREATED,
            actor_id=actor_id,
            payload={"code": code, "account_type": AccountType(account_type).value},
        )
        logger.info(
            "account_created",
            extra={"account_code": code, "account_type": AccountType(account_type).value},
        )

        if purpose is not None:
            self.map_purpose(tenant_id, company_id, purpose, account.id, actor_id)
        return account

    def map_purpose(
        self,
        tenant_id: str,
        company_id: str,
        purpose: AccountPurpose,
        account_id: UUID,
        actor_id: UUID,
    ) -> AccountMapping:
        """Point ``purpose`` at ``account_id``, replacing any previous mapping."""
        purpose = AccountPurpose(purpose)
        account = self.get_account(tenant_id, company_id, account_id)

        mapping = self._session.execute(
            select(AccountMapping).where(
                AccountMapping.tenant_id == tenant_id,
                AccountMapping.company_id == company_id,
                AccountMapping.purpose == purpose,
            )
        ).scalar_one_or_none()

        if mapping is None:
            mapping = AccountMapping(
                tenant_id=tenant_id,
                company_id=company_id,
                purpose=purpose,
                account_id=account.id,
                created_by_id=actor_id,
            )
            self._session.add(mapping)
        else:
            mapping.account_id = account.id
            mapping.updated_by_id = actor_id
        self._session.flush()
        self._session.refresh(mapping)

        self._auditor.record(
            tenant_id=tenant_id,
            company_id=company_id,
            entity_type="Account",
            entity_id=account.id,
            action=AuditAction.ACCOUNT_MAPPED,
            actor_id=actor_id,
            payload={"purpose": purpose.value},
        )
        logger.info(
            "account_purpose_mapped",
            extra={"purpose": purpose.value, "account_code": account.code},
        )
        return mapping

    def deactivate_account(
        self,
        tenant_id: str,
        company_id: str,
        account_id: UUID,
        actor_id: UUID,
    ) -> Account:
        """
        Deactivate an account.  Mappings that point at it stop resolving,
        so postings needing that purpose fail with missing_accounts until
        the purpose is remapped.
        """
        account = self._session.get(Account, account_id)
        if account is None or account.tenant_id != tenant_id or account.company_id != company_id:
            raise AccountNotFoundError(str(account_id))
        if not account.is_active:
            return account

        account.is_active = False
        account.updated_by_id = actor_id
        self._session.flush()

        self._auditor.record(
            tenant_id=tenant_id,
            company_id=company_id,
            entity_type="Account",
            entity_id=account.id,
            action=AuditAction.ACCOUNT_DEACTIVATED,
            actor_id=actor_id,
            payload={"code": account.code},
        )
        logger.info("account_deactivated", extra={"account_code": account.code})
        return account

    def provision_purpose(
        self,
        tenant_id: str,
        company_id: str,
        purpose: AccountPurpose,
        actor_id: UUID,
    ) -> Account:
        """
        Create (or reuse by code) the default-chart account for ``purpose``
        and map it.

        Raises:
            ConfigurationError: No template for the purpose.
        """
        spec = self._settings.chart_spec(AccountPurpose(purpose))
        if spec is None:
            raise ConfigurationError(
                f"No default chart template for purpose {AccountPurpose(purpose).value}"
            )

        account = self.get_by_code(tenant_id, company_id, spec.code)
        if account is None:
            account = self.create_account(
                tenant_id=tenant_id,
                company_id=company_id,
                code=spec.code,
                name=spec.name,
                account_type=spec.account_type,
                actor_id=actor_id,
                purpose=purpose,
            )
        else:
            if not account.is_active:
                raise ConfigurationError(
                    f"Default account {spec.code} for {AccountPurpose(purpose).value} is inactive"
                )
            self.map_purpose(tenant_id, company_id, purpose, account.id, actor_id)

        logger.info(
            "account_auto_provisioned",
            extra={"purpose": AccountPurpose(purpose).value, "account_code": spec.code},
        )
        return account

    def provision_default_chart(
        self,
        tenant_id: str,
        company_id: str,
        actor_id: UUID,
    ) -> dict[AccountPurpose, Account]:
        """Make every purpose in the configured default chart resolvable."""
        result: dict[AccountPurpose, Account] = {}
        for purpose in self._settings.default_chart:
            account = self._resolver.resolve_account(tenant_id, company_id, purpose)
            if not is_usable(account, tenant_id, company_id):
                account = self.provision_purpose(tenant_id, company_id, purpose, actor_id)
            result[purpose] = account
        return result

    def require_accounts(
        self,
        tenant_id: str,
        company_id: str,
        purposes: Iterable[AccountPurpose],
        actor_id: UUID,
        resolver: AccountResolver | None = None,
        auto_provision: bool | None = None,
    ) -> tuple[dict[AccountPurpose, Account], tuple[AccountPurpose, ...]]:
        """
        Resolve every purpose or fail listing all missing ones.

        With auto-provisioning on, missing purposes that have a template
        are created; those without one still count as missing.

        Returns:
            (accounts, provisioned purposes)
        """
        resolver = resolver or self._resolver
        if auto_provision is None:
            auto_provision = self._settings.auto_provision_accounts

        resolved, missing = resolve_purposes(resolver, tenant_id, company_id, purposes)
        provisioned: list[AccountPurpose] = []

        if missing and auto_provision:
            still_missing = []
            for purpose in missing:
                if self._settings.chart_spec(purpose) is None:
                    still_missing.append(purpose)
                    continue
                resolved[purpose] = self.provision_purpose(
                    tenant_id, company_id, purpose, actor_id
                )
                provisioned.append(purpose)
            missing = still_missing

        if missing:
            logger.warning(
                "account_resolution_failed",
                extra={"missing_purposes": [p.value for p in missing]},
            )
            raise MissingAccountsError(tenant_id, company_id, [p.value for p in missing])

        return resolved, tuple(provisioned)
