"""Persistent account records backed by Postgres."""

from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID

import asyncpg
import structlog

from account_service.database import acquire
from account_service.errors import DuplicateError
from account_service.models.account import AccountRecord, normalize_identifier
from account_service.services.password_hasher import PasswordHasher

logger = structlog.get_logger(__name__)

ACCOUNT_COLUMNS = """
    id, username, email, full_name, avatar, cover_image,
    password_hash AS password, refresh_token, watch_history,
    created_at, updated_at
"""

# Columns replaceable through update_fields; password goes through save()
UPDATABLE_FIELDS = ("full_name", "email", "avatar", "cover_image", "refresh_token")


class AccountRepository(Protocol):
    """Operations the session manager needs from account storage."""

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[AccountRecord]:
        ...

    async def find_by_username(self, username: str) -> Optional[AccountRecord]:
        ...

    async def find_by_id(self, account_id: UUID) -> Optional[AccountRecord]:
        ...

    async def create(self, fields: dict) -> AccountRecord:
        ...

    async def update_fields(self, account_id: UUID, partial: dict) -> Optional[AccountRecord]:
        ...

    async def save(self, record: AccountRecord) -> Optional[AccountRecord]:
        ...


def prepare_update(partial: dict) -> dict:
    """Validate and normalize a partial update.

    Raises:
        ValueError: If a key is not an updatable field
    """
    unknown = set(partial) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

    values = dict(partial)
    if values.get("email") is not None:
        values["email"] = normalize_identifier(values["email"])
    if values.get("full_name") is not None:
        values["full_name"] = values["full_name"].strip()
    return values


def _duplicate_field(error: asyncpg.UniqueViolationError) -> str:
    constraint = getattr(error, "constraint_name", None) or ""
    if "email" in constraint:
        return "email"
    if "username" in constraint:
        return "username"
    return "username or email"


class AccountStore:
    """Account CRUD over the ``accounts`` table.

    Passwords are hashed here, right before a write, and only when the
    record's password was assigned since it was loaded.
    """

    def __init__(self, pool: asyncpg.Pool, hasher: PasswordHasher):
        self._pool = pool
        self._hasher = hasher

    async def _fetch_one(self, query: str, *params) -> Optional[AccountRecord]:
        async with acquire(self._pool) as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            return None
        return AccountRecord(**dict(row))

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[AccountRecord]:
        """Find an account matching either identifier (case-insensitive).

        Args:
            username: Handle to match, or None
            email: Email to match, or None

        Returns:
            AccountRecord or None if nothing matches
        """
        clauses = []
        params = []

        if username and username.strip():
            params.append(normalize_identifier(username))
            clauses.append(f"LOWER(username) = ${len(params)}")

        if email and email.strip():
            params.append(normalize_identifier(email))
            clauses.append(f"LOWER(email) = ${len(params)}")

        if not clauses:
            return None

        return await self._fetch_one(
            f"""
            SELECT {ACCOUNT_COLUMNS}
            FROM accounts
            WHERE {' OR '.join(clauses)}
            ORDER BY created_at ASC
            LIMIT 1
            """,
            *params,
        )

    async def find_by_username(self, username: str) -> Optional[AccountRecord]:
        """Find an account by handle (case-insensitive)."""
        return await self._fetch_one(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE LOWER(username) = $1",
            normalize_identifier(username),
        )

    async def find_by_id(self, account_id: UUID) -> Optional[AccountRecord]:
        """Find an account by id."""
        return await self._fetch_one(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = $1",
            account_id,
        )

    async def create(self, fields: dict) -> AccountRecord:
        """Insert a new account, hashing its password.

        Args:
            fields: username, email, full_name, password, avatar and optional
                cover_image

        Returns:
            The persisted AccountRecord (password holds the digest)

        Raises:
            DuplicateError: If the username or email is already taken
        """
        record = AccountRecord.new(**fields)
        record.hash_password_if_modified(self._hasher)

        async with acquire(self._pool) as conn:
            try:
                await conn.execute(
                    """
                    INSERT INTO accounts (
                        id, username, email, full_name, avatar, cover_image,
                        password_hash, refresh_token, watch_history, created_at, updated_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, NULL, $8, $9, $10)
                    """,
                    record.id,
                    record.username,
                    record.email,
                    record.full_name,
                    record.avatar,
                    record.cover_image,
                    record.password,
                    record.watch_history,
                    record.created_at,
                    record.updated_at,
                )
            except asyncpg.UniqueViolationError as e:
                field = _duplicate_field(e)
                logger.warning("account_duplicate", field=field)
                raise DuplicateError(f"Account with this {field} already exists") from e

        logger.info(
            "account_created",
            account_id=str(record.id),
            username=record.username,
        )
        return record

    async def update_fields(self, account_id: UUID, partial: dict) -> Optional[AccountRecord]:
        """Replace the given columns on an account.

        Args:
            account_id: Account to update
            partial: Mapping of updatable field name to new value

        Returns:
            Updated AccountRecord, or None if the account does not exist

        Raises:
            ValueError: If ``partial`` names a field that cannot be updated
            DuplicateError: If a new email collides with another account
        """
        values = prepare_update(partial)

        if not values:
            return await self.find_by_id(account_id)

        set_clauses = []
        params = []
        for name, value in values.items():
            params.append(value)
            set_clauses.append(f"{name} = ${len(params)}")

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")

        params.append(account_id)
        query = f"""
            UPDATE accounts
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)}
            RETURNING {ACCOUNT_COLUMNS}
        """

        async with acquire(self._pool) as conn:
            try:
                row = await conn.fetchrow(query, *params)
            except asyncpg.UniqueViolationError as e:
                field = _duplicate_field(e)
                logger.warning("account_duplicate", account_id=str(account_id), field=field)
                raise DuplicateError(f"Account with this {field} already exists") from e

        if row is None:
            return None

        logger.info(
            "account_updated",
            account_id=str(account_id),
            fields_updated=sorted(values),
        )
        return AccountRecord(**dict(row))

    async def save(self, record: AccountRecord) -> Optional[AccountRecord]:
        """Persist the mutable fields of a loaded record.

        Returns:
            The saved record, or None if the account no longer exists
        """
        rehashed = record.hash_password_if_modified(self._hasher)
        record.updated_at = datetime.now(timezone.utc)

        async with acquire(self._pool) as conn:
            try:
                result = await conn.execute(
                    """
                    UPDATE accounts
                    SET email = $1, full_name = $2, avatar = $3, cover_image = $4,
                        password_hash = $5, refresh_token = $6, watch_history = $7,
                        updated_at = $8
                    WHERE id = $9
                    """,
                    record.email,
                    record.full_name,
                    record.avatar,
                    record.cover_image,
                    record.password,
                    record.refresh_token,
                    record.watch_history,
                    record.updated_at,
                    record.id,
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateError(f"Account with this {_duplicate_field(e)} already exists") from e

        if result == "UPDATE 0":
            logger.warning("account_save_not_found", account_id=str(record.id))
            return None

        logger.info("account_saved", account_id=str(record.id), rehashed=rehashed)
        return record
