"""Chart of accounts."""

from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waqf_kernel.db.base import TrackedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Account.code is unique.  Journal lines reference accounts by code;
        the closing reconciler classifies lines as revenue or expense through
        account_type.

    Guarantees:
        - normal_balance is consistent with account_type (set by the loader).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
    )

    # e.g. "5.2.1"
    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def account_type_enum(self) -> AccountType:
        return AccountType(self.account_type)
