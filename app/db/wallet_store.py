"""Relational storage for linked wallets and imported credentials.

Two tables, each with a uniqueness constraint that defines its upsert:

- ``external_profiles`` unique on (user_id, wallet_url); re-syncs update
  auto_sync, last_synced_at and status in place.
- ``credentials`` unique on (user_id, credential_uuid); inserts are
  insert-or-ignore, so the first stored row wins.

Every write runs in its own transaction. Conflict handling is left to the
database (``INSERT ... ON CONFLICT``), so concurrent syncs need no locking.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    false,
    func,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.services.crawl.base import UUID_PATTERN, CredentialRecord
from app.services.errors import PersistenceError, ValidationError

DEFAULT_PLATFORM = "accredible"


class ProfileStatus(str, enum.Enum):
    ACTIVE = "active"


class CredentialStatus(str, enum.Enum):
    ACTIVE = "active"


metadata = MetaData()

external_profiles = Table(
    "external_profiles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String, nullable=False),
    Column("wallet_url", String, nullable=False),
    Column("platform", String, nullable=False, server_default=DEFAULT_PLATFORM),
    Column("auto_sync", Boolean, nullable=False, server_default=false()),
    Column("last_synced_at", DateTime(timezone=True), nullable=True),
    Column("status", String, nullable=False, server_default=ProfileStatus.ACTIVE.value),
    UniqueConstraint("user_id", "wallet_url", name="uq_external_profiles_user_wallet"),
)

credentials = Table(
    "credentials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String, nullable=False),
    Column("credential_uuid", String(36), nullable=False),
    Column("issuer_domain", String, nullable=True),
    Column("credential_url", String, nullable=False),
    Column("status", String, nullable=False, server_default=CredentialStatus.ACTIVE.value),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("user_id", "credential_uuid", name="uq_credentials_user_uuid"),
)


def _insert_for(engine: Engine):
    name = engine.dialect.name
    if name == "sqlite":
        return sqlite.insert
    if name == "postgresql":
        return postgresql.insert
    raise PersistenceError(f"Unsupported database dialect for upserts: {name}")


class SqlWalletStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._insert = _insert_for(engine)

    def init_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create tables: {exc}") from exc

    def upsert_profile(
        self,
        user_id: str,
        wallet_url: str,
        *,
        auto_sync: bool,
        synced_at: datetime,
        platform: str = DEFAULT_PLATFORM,
    ) -> Dict[str, Any]:
        """Insert or refresh the (user_id, wallet_url) profile and return the stored row."""
        stmt = self._insert(external_profiles).values(
            user_id=user_id,
            wallet_url=wallet_url,
            platform=platform,
            auto_sync=bool(auto_sync),
            last_synced_at=synced_at,
            status=ProfileStatus.ACTIVE.value,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "wallet_url"],
            set_={
                "auto_sync": stmt.excluded.auto_sync,
                "last_synced_at": stmt.excluded.last_synced_at,
                "status": ProfileStatus.ACTIVE.value,
            },
        )
        query = select(external_profiles).where(
            external_profiles.c.user_id == user_id,
            external_profiles.c.wallet_url == wallet_url,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
                row = conn.execute(query).one()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save profile for user {user_id}: {exc}") from exc
        return _profile_to_dict(row)

    def insert_credential(self, user_id: str, record: CredentialRecord, *, created_at: datetime) -> int:
        """Insert-or-ignore one credential. Returns 1 if a row was written, 0 on conflict."""
        uuid = (record.credential_uuid or "").lower()
        if not UUID_PATTERN.fullmatch(uuid):
            raise ValidationError(f"Not a canonical credential UUID: {record.credential_uuid!r}")
        stmt = (
            self._insert(credentials)
            .values(
                user_id=user_id,
                credential_uuid=uuid,
                issuer_domain=record.issuer_domain,
                credential_url=record.credential_url,
                status=CredentialStatus.ACTIVE.value,
                created_at=created_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "credential_uuid"])
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save credential {uuid} for user {user_id}: {exc}") from exc
        return 1 if result.rowcount and result.rowcount > 0 else 0

    def list_credentials(self, user_id: str) -> List[Dict[str, Any]]:
        query = select(credentials).where(credentials.c.user_id == user_id).order_by(credentials.c.id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read credentials for user {user_id}: {exc}") from exc
        return [dict(r._mapping) for r in rows]

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Most recently synced profile for the user, or None."""
        query = (
            select(external_profiles)
            .where(external_profiles.c.user_id == user_id)
            .order_by(external_profiles.c.last_synced_at.desc(), external_profiles.c.id.desc())
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read profile for user {user_id}: {exc}") from exc
        return _profile_to_dict(row) if row is not None else None

    def set_auto_sync(self, user_id: str, enable: bool) -> int:
        stmt = update(external_profiles).where(external_profiles.c.user_id == user_id).values(auto_sync=bool(enable))
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to update auto-sync for user {user_id}: {exc}") from exc
        return int(result.rowcount or 0)


def _profile_to_dict(row) -> Dict[str, Any]:
    d = dict(row._mapping)
    d["auto_sync"] = bool(d.get("auto_sync"))
    return d
