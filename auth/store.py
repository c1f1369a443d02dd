"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route and dependency
code never touches SQL directly.

Uniqueness:
  UNIQUE(email) is a database constraint, not an application check. Two
  concurrent registrations for the same address can both pass the route's
  find_by_email() pre-check; the second INSERT then fails with IntegrityError
  and create() turns it into ConflictError. The pre-check only exists so the
  common case gets a clear message without a failed write.

  UNIQUE(oauth_provider, oauth_subject) is enforced in code (link_oauth)
  because SQLite treats two NULLs as distinct in UNIQUE constraints.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User, full_name
from core.config import get_settings
from core.errors import ConflictError, NotFoundError, StorageError

logger = logging.getLogger("accounts.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for OAuth-provisioned users
    Column("name", String(511), nullable=False),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("date_of_birth", String(10)),  # ISO 8601 date
    Column("phone_no", String(32)),
    Column("roles", JSON, nullable=False),
    Column("email_notifications", Integer, nullable=False, server_default="1"),
    Column("oauth_provider", String(30)),
    Column("oauth_subject", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_by_id() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = frozenset(
    {
        "email",
        "hashed_password",
        "first_name",
        "last_name",
        "date_of_birth",
        "phone_no",
        "roles",
        "email_notifications",
    }
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///accounts.db")
        user = store.create(User(email="a@b.com", first_name="A", last_name="B",
                                 hashed_password=hash_password("secret")))
        store.find_by_email("a@b.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive via normalization). Returns None if not found."""
        return self._fetch_one(_users.c.email == normalize_email(email))

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._fetch_one(_users.c.id == user_id)

    def find_by_oauth(self, provider: str, subject: str) -> User | None:
        """Look up a user by (oauth_provider, oauth_subject) pair."""
        return self._fetch_one((_users.c.oauth_provider == provider) & (_users.c.oauth_subject == subject))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return the stored record.

        Raises ConflictError if the email is already taken, including when a
        concurrent request inserted it after the caller's pre-check.
        """
        now = _now_iso()
        values = {
            "email": normalize_email(user.email),
            "hashed_password": user.hashed_password,
            "name": full_name(user.first_name, user.last_name),
            "first_name": user.first_name,
            "last_name": user.last_name,
            "date_of_birth": user.date_of_birth,
            "phone_no": user.phone_no,
            "roles": list(user.roles),
            "email_notifications": 1 if user.email_notifications else 0,
            "oauth_provider": user.oauth_provider,
            "oauth_subject": user.oauth_subject,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.insert().values(**values))
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            logger.exception("User insert failed")
            raise StorageError() from exc

        created = self.find_by_id(user_id)
        if created is None:
            raise StorageError("User not found after write")
        logger.info("Created user id=%s", user_id)
        return created

    def update_by_id(self, user_id: int, **patch) -> User:
        """Apply a partial update and return the post-update record.

        Accepted fields: see _MUTABLE_FIELDS. Touching first_name or last_name
        recomputes the derived name. Raises NotFoundError if user_id does not
        exist and ConflictError if a patched email is already taken.
        """
        unknown = set(patch) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")

        current = self.find_by_id(user_id)
        if current is None:
            raise NotFoundError()

        values = dict(patch)
        if "email" in values:
            values["email"] = normalize_email(values["email"])
        if "email_notifications" in values:
            values["email_notifications"] = 1 if values["email_notifications"] else 0
        if "roles" in values:
            values["roles"] = list(values["roles"])
        if "first_name" in values or "last_name" in values:
            values["name"] = full_name(
                values.get("first_name", current.first_name),
                values.get("last_name", current.last_name),
            )
        values["updated_at"] = _now_iso()

        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
        except IntegrityError as exc:
            raise ConflictError("Email is already in use") from exc
        except SQLAlchemyError as exc:
            logger.exception("User update failed for id=%s", user_id)
            raise StorageError() from exc

        if result.rowcount == 0:
            raise NotFoundError()
        updated = self.find_by_id(user_id)
        if updated is None:
            raise NotFoundError()
        return updated

    def link_oauth(self, user_id: int, provider: str, subject: str) -> User:
        """Associate an OAuth identity with an existing user record.

        Refuses to link an identity that already belongs to another account.
        """
        owner = self.find_by_oauth(provider, subject)
        if owner is not None and owner.id != user_id:
            raise ConflictError("OAuth identity is linked to another account")
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.id == user_id)
                    .values(oauth_provider=provider, oauth_subject=subject, updated_at=_now_iso())
                )
        except SQLAlchemyError as exc:
            logger.exception("OAuth link failed for id=%s", user_id)
            raise StorageError() from exc
        if result.rowcount == 0:
            raise NotFoundError()
        return self.find_by_id(user_id)

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch_one(self, clause) -> User | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(clause)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise StorageError() from exc
        return _row_to_user(row) if row is not None else None


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        first_name=row.first_name,
        last_name=row.last_name,
        date_of_birth=row.date_of_birth,
        phone_no=row.phone_no,
        roles=list(row.roles or []),
        email_notifications=bool(row.email_notifications),
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
