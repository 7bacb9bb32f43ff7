"""Tests for QuorumClient against an in-memory connection."""

from __future__ import annotations

import logging

import pytest

from tests.fakes import RecordingConnection
from waitquorum import connection, error, quorum


@pytest.fixture
def client(recording_connection: RecordingConnection) -> quorum.QuorumClient:
    return quorum.QuorumClient(connection.ActionableConnection(recording_connection))


class TestWaitQuorum:
    """Tests for QuorumClient.wait_quorum."""

    async def test_sends_bare_command(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.append(2)

        await client.wait_quorum()

        assert recording_connection.written == [[b"WAITQUORUM"]]

    @pytest.mark.parametrize("reply", [3, 0, -1, 2**63 - 1, -(2**63)])
    async def test_returns_reply_unchanged(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
        reply: int,
    ) -> None:
        recording_connection.replies.append(reply)

        assert await client.wait_quorum() == reply

    @pytest.mark.parametrize("reply", [b"OK", None, [1], True, 1.0])
    async def test_non_integer_reply(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
        reply: object,
    ) -> None:
        recording_connection.replies.append(reply)

        with pytest.raises(error.ProtocolError):
            await client.wait_quorum()

    async def test_server_error_reply_propagates(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.append(error.ResponseError("ERR", "quorum lost"))

        with pytest.raises(error.ResponseError, match="quorum lost"):
            await client.wait_quorum()

    async def test_transport_error_is_not_retried(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.extend([error.ConnectionError("reset by peer"), 3])

        with pytest.raises(error.ConnectionError):
            await client.wait_quorum()

        assert recording_connection.written == [[b"WAITQUORUM"]]
        assert not recording_connection.is_alive()

    async def test_closed_connection(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.alive = False

        with pytest.raises(error.ConnectionError):
            await client.wait_quorum()

        assert recording_connection.written == []

    async def test_sequential_calls_are_ordered(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.extend([1, 2])

        assert await client.wait_quorum() == 1
        assert await client.wait_quorum() == 2
        assert recording_connection.events == [
            "write WAITQUORUM",
            "read",
            "write WAITQUORUM",
            "read",
        ]

    async def test_result_logged_at_debug(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        recording_connection.replies.append(-1)

        with caplog.at_level(logging.DEBUG, logger="waitquorum.quorum"):
            assert await client.wait_quorum() == -1

        records = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "waitquorum.quorum"]
        assert records == [(logging.DEBUG, "WAITQUORUM replied -1")]

    async def test_errors_are_raised_not_logged(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        recording_connection.replies.append(b"OK")

        with caplog.at_level(logging.DEBUG, logger="waitquorum.quorum"), pytest.raises(error.ProtocolError):
            await client.wait_quorum()

        assert [r for r in caplog.records if r.name == "waitquorum.quorum"] == []


class TestBatchedModes:
    """WAITQUORUM must be rejected inside pipelines and transactions."""

    async def test_rejected_in_pipeline(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.append(3)

        async with client.pipeline():
            with pytest.raises(error.UsageError, match="WAITQUORUM is not supported in pipeline mode"):
                await client.wait_quorum()

        assert recording_connection.written == []
        assert recording_connection.events == []

    async def test_rejected_in_transaction(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        # MULTI, then DISCARD on exit.
        recording_connection.replies.extend([b"OK", b"OK"])

        async with client.transaction():
            with pytest.raises(error.UsageError, match="transaction mode"):
                await client.wait_quorum()

        assert [args[0] for args in recording_connection.written] == [b"MULTI", b"DISCARD"]

    async def test_usage_error_is_a_state_error(
        self,
        client: quorum.QuorumClient,
    ) -> None:
        async with client.pipeline():
            with pytest.raises(error.StateError):
                await client.wait_quorum()

    async def test_allowed_again_after_batch(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        recording_connection.replies.append(5)

        async with client.pipeline():
            pass

        assert await client.wait_quorum() == 5


class TestLifecycle:
    """Tests for QuorumClient construction and closing."""

    async def test_context_manager_closes(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        async with client:
            pass

        assert not recording_connection.is_alive()

    async def test_close_is_idempotent(
        self,
        client: quorum.QuorumClient,
        recording_connection: RecordingConnection,
    ) -> None:
        await client.close()
        await client.close()

        assert not recording_connection.is_alive()

    async def test_accepts_any_actionable_connection(self) -> None:
        con = await connection.ActionableConnection.from_host_port(
            "node-1",
            6379,
            connection_class=RecordingConnection,
        )
        con.connection.replies.append(7)  # type: ignore[attr-defined]

        assert await quorum.QuorumClient(con).wait_quorum() == 7
