"""Repository for twitch_accounts, users, user_identities and user_bots.

A Twitch account is a single entity regardless of role: users, bot
delegations and OAuth credentials all reference ``twitch_accounts``.
"""

from __future__ import annotations

import logging

import asyncpg

from credstore.errors import DuplicateIdentity, UnknownAccount, UnknownUser
from credstore.models.account import BotDelegation, Identity, User

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, twitch_id AS account_id, created_at"

# users.id is a SERIAL (int4) column starting at 1.
_MAX_USER_ID = 2**31 - 1


def is_valid_text(value: str) -> bool:
    """PostgreSQL TEXT cannot hold NUL characters."""
    return isinstance(value, str) and bool(value) and "\x00" not in value


def check_account_id(account_id: str) -> None:
    if not is_valid_text(account_id):
        raise ValueError(f"Invalid account id: {account_id!r}")


def is_valid_user_id(user_id: int) -> bool:
    return (
        isinstance(user_id, int)
        and not isinstance(user_id, bool)
        and 1 <= user_id <= _MAX_USER_ID
    )


async def upsert_account_on(conn: asyncpg.Connection, account_id: str) -> None:
    """Insert the account row if missing, on the caller's connection."""
    check_account_id(account_id)
    await conn.execute(
        "INSERT INTO twitch_accounts (id) VALUES ($1) ON CONFLICT (id) DO NOTHING",
        account_id,
    )


async def account_exists_on(conn: asyncpg.Connection, account_id: str) -> bool:
    if not is_valid_text(account_id):
        return False
    return bool(
        await conn.fetchval(
            "SELECT EXISTS (SELECT 1 FROM twitch_accounts WHERE id = $1)",
            account_id,
        )
    )


async def user_exists_on(conn: asyncpg.Connection, user_id: int) -> bool:
    if not is_valid_user_id(user_id):
        return False
    return bool(
        await conn.fetchval("SELECT EXISTS (SELECT 1 FROM users WHERE id = $1)", user_id)
    )


class AccountRepository:
    """Pure SQL operations for the account linkage graph."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Account Operations ====================

    async def upsert_account(self, account_id: str) -> None:
        """Register a Twitch account. No-op if it already exists."""
        async with self.pool.acquire() as conn:
            await upsert_account_on(conn, account_id)

    async def account_exists(self, account_id: str) -> bool:
        async with self.pool.acquire() as conn:
            return await account_exists_on(conn, account_id)

    # ==================== User Operations ====================

    async def link_user(self, account_id: str) -> User:
        """Return the user logging in with ``account_id``, creating it on first login.

        One Twitch account maps to at most one user; the UNIQUE constraint on
        users.twitch_id settles concurrent first logins.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await upsert_account_on(conn, account_id)
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (twitch_id) VALUES ($1)
                    ON CONFLICT (twitch_id) DO NOTHING
                    RETURNING {_USER_COLUMNS}
                    """,
                    account_id,
                )
                if row:
                    user = User(**dict(row))
                    logger.info(f"Created user {user.id} for twitch:{account_id}")
                    return user

                row = await conn.fetchrow(
                    f"SELECT {_USER_COLUMNS} FROM users WHERE twitch_id = $1",
                    account_id,
                )
                return User(**dict(row))

    async def find_user_by_account(self, account_id: str) -> User | None:
        if not is_valid_text(account_id):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE twitch_id = $1",
                account_id,
            )
            if not row:
                return None
            return User(**dict(row))

    async def get_user(self, user_id: int) -> User | None:
        if not is_valid_user_id(user_id):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
            if not row:
                return None
            return User(**dict(row))

    # ==================== Federated Identity Operations ====================

    async def link_identity(self, user_id: int, provider: str, subject: str) -> Identity:
        """Attach an OpenID-style ``(provider, subject)`` identity to a user.

        Linking the same identity to the same user again is a no-op.
        Raises DuplicateIdentity if it already belongs to another user.
        """
        if not is_valid_text(provider) or not is_valid_text(subject):
            raise ValueError("provider and subject must be non-empty text")

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if not await user_exists_on(conn, user_id):
                    raise UnknownUser(user_id)

                row = await conn.fetchrow(
                    """
                    INSERT INTO user_identities (provider, subject, user_id)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (provider, subject) DO NOTHING
                    RETURNING user_id, provider, subject, created_at
                    """,
                    provider,
                    subject,
                    user_id,
                )
                if row:
                    logger.info(f"Linked {provider} identity to user {user_id}")
                    return Identity(**dict(row))

                row = await conn.fetchrow(
                    "SELECT user_id, provider, subject, created_at FROM user_identities "
                    "WHERE provider = $1 AND subject = $2",
                    provider,
                    subject,
                )
                if row["user_id"] != user_id:
                    raise DuplicateIdentity(
                        f"{provider} identity is already linked to another user"
                    )
                return Identity(**dict(row))

    async def find_user_by_identity(self, provider: str, subject: str) -> User | None:
        if not is_valid_text(provider) or not is_valid_text(subject):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT u.id, u.twitch_id AS account_id, u.created_at
                FROM user_identities i JOIN users u ON u.id = i.user_id
                WHERE i.provider = $1 AND i.subject = $2
                """,
                provider,
                subject,
            )
            if not row:
                return None
            return User(**dict(row))

    async def list_identities(self, user_id: int) -> list[Identity]:
        if not is_valid_user_id(user_id):
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT user_id, provider, subject, created_at FROM user_identities "
                "WHERE user_id = $1 ORDER BY provider, subject",
                user_id,
            )
            return [Identity(**dict(r)) for r in rows]

    # ==================== Bot Delegation Operations ====================

    async def set_bot_delegation(self, user_id: int, bot_account_id: str) -> BotDelegation:
        """Nominate ``bot_account_id`` as the user's bot, replacing any prior one.

        The bot account must already be registered with ``upsert_account``.
        """
        if not is_valid_user_id(user_id):
            raise UnknownUser(user_id)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if not await account_exists_on(conn, bot_account_id):
                    raise UnknownAccount(bot_account_id)
                try:
                    row = await conn.fetchrow(
                        """
                        INSERT INTO user_bots (user_id, bot_account)
                        VALUES ($1, $2)
                        ON CONFLICT (user_id) DO UPDATE SET
                            bot_account = EXCLUDED.bot_account,
                            updated_at  = NOW()
                        RETURNING user_id, bot_account AS bot_account_id, updated_at
                        """,
                        user_id,
                        bot_account_id,
                    )
                except asyncpg.ForeignKeyViolationError as e:
                    if e.constraint_name == "user_bots_user_id_fkey":
                        raise UnknownUser(user_id) from e
                    raise UnknownAccount(bot_account_id) from e

        logger.info(f"User {user_id} delegated bot account {bot_account_id}")
        return BotDelegation(**dict(row))

    async def get_bot_delegation(self, user_id: int) -> BotDelegation | None:
        if not is_valid_user_id(user_id):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT user_id, bot_account AS bot_account_id, updated_at "
                "FROM user_bots WHERE user_id = $1",
                user_id,
            )
            if not row:
                return None
            return BotDelegation(**dict(row))

    async def revoke_bot_delegation(self, user_id: int) -> bool:
        """Remove the user's bot delegation. Returns True if one existed."""
        if not is_valid_user_id(user_id):
            return False
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM user_bots WHERE user_id = $1", user_id)
        if result == "DELETE 1":
            logger.info(f"User {user_id} revoked bot delegation")
            return True
        return False
