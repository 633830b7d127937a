"""Persistence for accounts and the active session.

The store is a key-value blob store: each account is saved as the JSON
document of ``UserAccount`` keyed by its id. Callers read the whole state with
``load()``, change it, and hand it back with ``save()``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import AccountRecord, ActiveSession
from schemas import UserAccount

logger = logging.getLogger(__name__)


@dataclass
class StoreState:
    accounts: list[UserAccount] = field(default_factory=list)
    active_account_id: Optional[str] = None

    def find(self, account_id: str) -> Optional[UserAccount]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        wanted = email.strip().lower()
        for account in self.accounts:
            if account.email.lower() == wanted:
                return account
        return None

    def replace(self, updated: UserAccount) -> None:
        for idx, account in enumerate(self.accounts):
            if account.id == updated.id:
                self.accounts[idx] = updated
                return
        self.accounts.append(updated)


class AccountStore(ABC):
    @abstractmethod
    def load(self) -> StoreState:
        ...

    @abstractmethod
    def save(self, state: StoreState) -> None:
        ...


class MemoryAccountStore(AccountStore):
    def __init__(self, state: Optional[StoreState] = None) -> None:
        self._state = self._copy(state or StoreState())

    @staticmethod
    def _copy(state: StoreState) -> StoreState:
        return StoreState(
            accounts=[a.model_copy(deep=True) for a in state.accounts],
            active_account_id=state.active_account_id,
        )

    def load(self) -> StoreState:
        return self._copy(self._state)

    def save(self, state: StoreState) -> None:
        saved = self._copy(state)
        known = {account.id for account in saved.accounts}
        for account in self._state.accounts:
            if account.id not in known:
                saved.accounts.append(account)
        self._state = saved


class SQLAlchemyAccountStore(AccountStore):
    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> StoreState:
        records = self.session.scalars(
            select(AccountRecord).order_by(AccountRecord.created_at, AccountRecord.id)
        ).all()
        accounts = [UserAccount.model_validate_json(r.payload) for r in records]
        active = self.session.get(ActiveSession, 1)
        return StoreState(
            accounts=accounts,
            active_account_id=active.account_id if active else None,
        )

    def save(self, state: StoreState) -> None:
        """Upsert the accounts in ``state``. Accounts are never deleted, so rows
        missing from ``state`` are left as they are."""
        existing = {
            record.id: record
            for record in self.session.scalars(select(AccountRecord)).all()
        }

        written = 0
        for account in state.accounts:
            payload = account.model_dump_json()
            email = account.email.lower()
            record = existing.get(account.id)
            if record is None:
                record = AccountRecord(id=account.id, email=email, payload=payload)
                self.session.add(record)
                existing[account.id] = record
                written += 1
            elif record.payload != payload or record.email != email:
                record.email = email
                record.payload = payload
                written += 1
        self.session.flush()

        active_id = state.active_account_id
        if active_id is not None and active_id not in existing:
            active_id = None
        active = self.session.get(ActiveSession, 1)
        if active is None:
            active = ActiveSession(id=1, account_id=active_id)
            self.session.add(active)
        else:
            active.account_id = active_id
        self.session.commit()
        logger.debug(f"store_save: accounts_written={written}")
