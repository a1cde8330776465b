"""
Chart of accounts - per-tenant account registry, seeding and lazy resolution.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from stockledger.core.config import DEFAULT_ACCOUNTS
from stockledger.domain.entities import Account
from stockledger.domain.exceptions import InsufficientData, UnknownAccount
from stockledger.domain.services import IUnitOfWork
from stockledger.domain.value_objects import AccountCode, AccountSpec, AccountType

logger = logging.getLogger(__name__)


class ChartOfAccounts:

    def __init__(self, catalog: Iterable[AccountSpec] = DEFAULT_ACCOUNTS):
        self.catalog = tuple(catalog)

    def seed(self, uow: IUnitOfWork, tenant_id: str) -> list[Account]:
        """
        Create the default catalog for a tenant.
        Safe to re-run: existing codes are left untouched, missing ones are added.
        """
        if not tenant_id:
            raise InsufficientData("tenant_id")
        seeded = [
            uow.accounts.add_if_absent(
                Account(tenant_id=tenant_id, code=spec.code, name=spec.name, account_type=spec.account_type)
            )
            for spec in self.catalog
        ]
        logger.info("Seeded %d default accounts for tenant %s", len(seeded), tenant_id)
        return seeded

    def resolve(
        self,
        uow: IUnitOfWork,
        tenant_id: str,
        code: AccountCode,
        name: str | None = None,
        account_type: AccountType | None = None
    ) -> Account:
        """
        Fetch an account, creating it from the fallback name/type on first use.
        Concurrent first uses converge on one row through the (tenant, code) unique key.
        """
        account = uow.accounts.get_by_code(tenant_id, code)
        if account is not None:
            return account
        if name is None or account_type is None:
            raise UnknownAccount(code)
        logger.info("Creating account %s (%s) for tenant %s", code, name, tenant_id)
        return uow.accounts.add_if_absent(
            Account(tenant_id=tenant_id, code=code, name=name, account_type=account_type)
        )

    def resolve_spec(self, uow: IUnitOfWork, tenant_id: str, spec: AccountSpec) -> Account:
        return self.resolve(uow, tenant_id, spec.code, spec.name, spec.account_type)

    def lookup_many(
        self,
        uow: IUnitOfWork,
        tenant_id: str,
        codes: Iterable[AccountCode]
    ) -> dict[AccountCode, UUID]:
        wanted = list(dict.fromkeys(codes))
        found = {a.code: a.id for a in uow.accounts.find_by_codes(tenant_id, wanted)}
        for code in wanted:
            if code not in found:
                raise UnknownAccount(code)
        return found

    def list_accounts(self, uow: IUnitOfWork, tenant_id: str) -> list[Account]:
        return sorted(uow.accounts.list_by_tenant(tenant_id), key=lambda a: a.code)
