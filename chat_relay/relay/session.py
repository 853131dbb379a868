"""Session store — ABC, in-memory and DynamoDB implementations.

Maps a connection id to the downstream session id with a TTL. Absence
(including an expired record) is a normal ``None``; backend failures are
raised as :class:`PersistenceError`.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from chat_relay.relay.errors import PersistenceError
from chat_relay.relay.models import Session

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 7 * 24 * 60 * 60


class SessionStore(ABC):
    """Async session persistence interface.

    ``put`` is an upsert keyed by ``connection_id`` that must refresh
    ``expires_at`` on every write.
    """

    def __init__(self, ttl_s: int = DEFAULT_TTL_S, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl_s
        self._clock = clock

    @property
    def ttl_s(self) -> int:
        return self._ttl

    def _stamp(self, session: Session) -> Session:
        session.expires_at = self._clock() + self._ttl
        return session

    @abstractmethod
    async def get(self, connection_id: str) -> Session | None: ...

    @abstractmethod
    async def put(self, session: Session) -> None: ...


class InMemorySessionStore(SessionStore):
    """Dict-backed store — suitable for single-process dev/test."""

    def __init__(self, ttl_s: int = DEFAULT_TTL_S, clock: Callable[[], float] = time.time) -> None:
        super().__init__(ttl_s, clock)
        self._store: dict[str, Session] = {}

    async def get(self, connection_id: str) -> Session | None:
        session = self._store.get(connection_id)
        if session is None:
            return None
        if not session.is_live(self._clock()):
            self._store.pop(connection_id, None)
            return None
        return session.model_copy()

    async def put(self, session: Session) -> None:
        stored = self._stamp(session.model_copy())
        self._store[stored.connection_id] = stored
        session.expires_at = stored.expires_at


class DynamoDBSessionStore(SessionStore):
    """DynamoDB table keyed by ``connectionid`` with a numeric ``ttl`` attribute.

    DynamoDB deletes expired items lazily, so ``get`` filters on ``ttl``
    itself.
    """

    KEY_ATTR = "connectionid"
    SESSION_ATTR = "bedrock_sessionid"
    TTL_ATTR = "ttl"

    def __init__(
        self,
        table_name: str = "bedrock_sessions",
        ttl_s: int = DEFAULT_TTL_S,
        client: Any = None,
        region: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(ttl_s, clock)
        if client is None:
            # Late import so the rest of the package works without boto3 installed
            import boto3

            client = boto3.client("dynamodb", region_name=region)
        self._client = client
        self._table = table_name

    async def get(self, connection_id: str) -> Session | None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = await asyncio.to_thread(
                self._client.get_item,
                TableName=self._table,
                Key={self.KEY_ATTR: {"S": connection_id}},
                ConsistentRead=True,
            )
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"session read failed: {exc}") from exc

        item = response.get("Item")
        if not item:
            return None
        try:
            session = Session(
                connection_id=item[self.KEY_ATTR]["S"],
                downstream_session_id=item[self.SESSION_ATTR]["S"],
                expires_at=float(item[self.TTL_ATTR]["N"]),
            )
        except (KeyError, ValueError) as exc:
            raise PersistenceError(f"session item malformed: {exc}") from exc
        if not session.is_live(self._clock()):
            return None
        return session

    async def put(self, session: Session) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        self._stamp(session)
        item = {
            self.KEY_ATTR: {"S": session.connection_id},
            self.SESSION_ATTR: {"S": session.downstream_session_id},
            self.TTL_ATTR: {"N": str(math.ceil(session.expires_at))},
        }
        try:
            await asyncio.to_thread(self._client.put_item, TableName=self._table, Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"session write failed: {exc}") from exc
        logger.debug("session stored connection=%s ttl=%s", session.connection_id, item[self.TTL_ATTR]["N"])
