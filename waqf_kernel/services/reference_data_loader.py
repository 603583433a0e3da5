"""
ReferenceDataLoader -- seeds reference data from configuration.

Loads the chart of accounts into ``accounts`` (insert new codes, update
names and activity of existing ones, never change an account's type) and
creates the audit sequence counter.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from waqf_kernel.exceptions import InvalidAccountError
from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.account import NORMAL_BALANCE_BY_TYPE, Account, AccountType
from waqf_kernel.services.base import BaseService
from waqf_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reference_data")


class ReferenceDataLoader(BaseService):
    """Flush-only loader; the caller commits."""

    def __init__(self, session: Session):
        super().__init__(session)

    def load_accounts(self, accounts: Iterable, actor_id: UUID) -> int:
        """
        Upsert accounts from objects exposing code, name, account_type and
        is_active (``waqf_config.schema.AccountDef``).

        Returns:
            Number of accounts inserted.

        Raises:
            InvalidAccountError: an existing code is redefined with another type.
        """
        existing = {
            a.code: a for a in self.session.execute(select(Account)).scalars()
        }
        inserted = 0
        for spec in accounts:
            account_type = AccountType(spec.account_type)
            current = existing.get(spec.code)
            if current is None:
                self.session.add(
                    Account(
                        code=spec.code,
                        name=spec.name,
                        account_type=account_type.value,
                        normal_balance=NORMAL_BALANCE_BY_TYPE[account_type].value,
                        is_active=spec.is_active,
                        created_by_id=actor_id,
                    )
                )
                inserted += 1
                continue
            if current.account_type_enum != account_type:
                raise InvalidAccountError(
                    spec.code,
                    f"type change {current.account_type_enum.value} -> "
                    f"{account_type.value} is not allowed",
                )
            current.name = spec.name
            current.is_active = spec.is_active
            current.updated_by_id = actor_id

        SequenceService(self.session).ensure(SequenceService.AUDIT_EVENT)
        self.session.flush()
        logger.info(
            "reference_data_loaded",
            extra={"accounts_inserted": inserted, "accounts_total": len(existing) + inserted},
        )
        return inserted
