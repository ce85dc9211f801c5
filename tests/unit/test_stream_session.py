"""
Unit tests for StreamSession lifecycle and signal ordering.
"""
import asyncio
import json

import httpx
import pytest

from sse_debugger.models.events import EventKind, SessionState
from sse_debugger.services.stream_session import StreamSession
from sse_debugger.utils.exceptions import ConnectError, StreamError


async def _drain(session):
    return [event async for event in session.events()]


class TestStreamSessionStart:
    """Tests for start and the outgoing request."""

    @pytest.mark.unit
    def test_posts_descriptor(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that the request is a POST carrying url, headers and JSON body."""
        requests = []
        handler = streaming_handler(chunk_script(["data: hi\n\n"]), requests)

        async def scenario():
            async with mock_client(handler) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                await _drain(session)
                return session

        session = asyncio.run(scenario())

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://example.com/sse"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"message": "ping", "stream": True}
        assert session.status_code == 200
        assert session.content_type == "text/event-stream"

    @pytest.mark.unit
    def test_transport_failure_raises_connect_error(self, descriptor, mock_client):
        """Test that a failure before streaming is reported by start()."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            async with mock_client(handler) as client:
                session = StreamSession(descriptor, client)
                with pytest.raises(ConnectError, match="connection refused"):
                    await session.start()
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        assert session.state is SessionState.FAILED
        assert events == []

    @pytest.mark.unit
    def test_non_2xx_raises_connect_error(self, descriptor, mock_client):
        """Test that an error status fails the start with status and body preview."""
        def handler(request):
            return httpx.Response(503, text="upstream down")

        async def scenario():
            async with mock_client(handler) as client:
                session = StreamSession(descriptor, client)
                with pytest.raises(ConnectError) as exc_info:
                    await session.start()
                return session, exc_info.value

        session, error = asyncio.run(scenario())

        assert "HTTP 503" in error.message
        assert "upstream down" in error.message
        assert session.state is SessionState.FAILED
        assert session.error == error.message

    @pytest.mark.unit
    def test_start_twice_is_rejected(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that a session cannot be started twice."""
        async def scenario():
            async with mock_client(streaming_handler(chunk_script(["a"]))) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                with pytest.raises(RuntimeError):
                    await session.start()
                await _drain(session)

        asyncio.run(scenario())


class TestStreamSessionSignals:
    """Tests for chunk ordering and terminal signals."""

    @pytest.mark.unit
    def test_chunks_in_order_then_end(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that chunks arrive in order followed by exactly one END."""
        script = chunk_script(["c1", "c2", "c3"])

        async def scenario():
            async with mock_client(streaming_handler(script)) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                assert session.state is SessionState.STREAMING
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        assert [e.kind for e in events] == [EventKind.CHUNK] * 3 + [EventKind.END]
        assert [e.data for e in events[:3]] == ["c1", "c2", "c3"]
        assert session.state is SessionState.ENDED
        assert not session.is_active

    @pytest.mark.unit
    def test_mid_stream_failure_emits_error(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that a transport failure after streaming emits one ERROR."""
        script = chunk_script(["c1"], error=httpx.ReadError("connection reset"))

        async def scenario():
            async with mock_client(streaming_handler(script)) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        assert [e.kind for e in events] == [EventKind.CHUNK, EventKind.ERROR]
        assert events[-1].data == "ReadError: connection reset"
        assert isinstance(events[-1].error, StreamError)
        assert events[-1].error.message == session.error == events[-1].data
        assert session.state is SessionState.FAILED

    @pytest.mark.unit
    def test_events_can_only_be_consumed_once(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that the event sequence is not restartable."""
        async def scenario():
            async with mock_client(streaming_handler(chunk_script(["a"]))) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                await _drain(session)
                with pytest.raises(RuntimeError):
                    await _drain(session)

        asyncio.run(scenario())


class TestStreamSessionCancel:
    """Tests for cancel."""

    @pytest.mark.unit
    def test_cancel_while_streaming(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that cancel closes the stream and ends with one CANCELLED."""
        script = chunk_script(["c1", "c2"], hang=True)

        async def scenario():
            async with mock_client(streaming_handler(script)) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                seen = []
                async for event in session.events():
                    seen.append(event)
                    if len(seen) == 2:
                        await session.cancel()
                return session, seen

        session, events = asyncio.run(scenario())

        assert [e.kind for e in events] == [EventKind.CHUNK, EventKind.CHUNK, EventKind.CANCELLED]
        assert session.state is SessionState.CANCELLED
        assert script.closed

    @pytest.mark.unit
    def test_cancel_is_idempotent(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that a second cancel produces no further transition or signal."""
        script = chunk_script(["c1"], hang=True)

        async def scenario():
            async with mock_client(streaming_handler(script)) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                await session.cancel()
                await session.cancel()
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        kinds = [e.kind for e in events]
        assert kinds.count(EventKind.CANCELLED) == 1
        assert kinds[-1] is EventKind.CANCELLED
        assert EventKind.END not in kinds and EventKind.ERROR not in kinds
        assert session.state is SessionState.CANCELLED

    @pytest.mark.unit
    def test_cancel_after_end_is_noop(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that cancelling a finished session keeps its END state."""
        async def scenario():
            async with mock_client(streaming_handler(chunk_script(["c1"]))) as client:
                session = StreamSession(descriptor, client)
                await session.start()
                events = await _drain(session)
                await session.cancel()
                return session, events

        session, events = asyncio.run(scenario())

        assert events[-1].kind is EventKind.END
        assert session.state is SessionState.ENDED

    @pytest.mark.unit
    def test_cancel_while_connecting(self, descriptor, mock_client):
        """Test that a hung connect can be cancelled and start() returns."""
        async def handler(request):
            await asyncio.Event().wait()

        async def scenario():
            async with mock_client(handler) as client:
                session = StreamSession(descriptor, client)
                start_task = asyncio.create_task(session.start())
                await asyncio.sleep(0.05)
                assert session.state is SessionState.CONNECTING
                await session.cancel()
                await asyncio.wait_for(start_task, 1.0)
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        assert session.state is SessionState.CANCELLED
        assert [e.kind for e in events] == [EventKind.CANCELLED]

    @pytest.mark.unit
    def test_cancel_before_start(self, descriptor, chunk_script, streaming_handler, mock_client):
        """Test that a session cancelled before start never connects."""
        requests = []

        async def scenario():
            async with mock_client(streaming_handler(chunk_script(["a"]), requests)) as client:
                session = StreamSession(descriptor, client)
                await session.cancel()
                await session.start()
                return session, await _drain(session)

        session, events = asyncio.run(scenario())

        assert requests == []
        assert [e.kind for e in events] == [EventKind.CANCELLED]
