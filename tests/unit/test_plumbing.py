"""Unit tests for the database and Redis helpers in fd_common."""

from types import TracebackType

import pytest

from src.fd_common.database import independent_transaction
from src.fd_common.redis_client import redis_key


class _Tx:
    def __init__(self, session: "_Session") -> None:
        self._session = session

    async def __aenter__(self) -> None:
        self._session.events.append("begin")

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._session.events.append("rollback" if exc_type else "commit")


class _Session:
    def __init__(self) -> None:
        self.events: list[str] = []

    async def __aenter__(self) -> "_Session":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.events.append("close")

    def begin(self) -> _Tx:
        return _Tx(self)


class TestIndependentTransaction:
    async def test_commits_and_closes(self) -> None:
        session = _Session()
        async with independent_transaction(lambda: session) as db:  # type: ignore[arg-type]
            assert db is session
        assert session.events == ["begin", "commit", "close"]

    async def test_rolls_back_on_error(self) -> None:
        session = _Session()
        with pytest.raises(RuntimeError):
            async with independent_transaction(lambda: session):  # type: ignore[arg-type]
                raise RuntimeError("insert failed")
        assert session.events == ["begin", "rollback", "close"]


class TestRedisKey:
    def test_prefixed_and_joined(self) -> None:
        assert redis_key("delivery_code_attempts", 42) == "foodies:delivery_code_attempts:42"

    def test_prefix_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import settings

        monkeypatch.setattr(settings, "REDIS_KEY_PREFIX", "staging")
        assert redis_key("x") == "staging:x"
