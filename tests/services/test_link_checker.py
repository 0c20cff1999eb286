"""
Tests for link liveness checking.

Tests cover:
- check_url: HEAD outcomes with a mocked httpx client
- LinkCheckRun: batching, concurrency bound, cancellation, restartability
- select_link_check_candidates / apply_link_results / reset_link_status
"""
import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from models.bookmark import Bookmark, LinkStatus
from services.link_checker import (
    USER_AGENT,
    CancellationToken,
    LinkCheckResult,
    LinkCheckRun,
    LinkTarget,
    apply_link_results,
    check_url,
    reset_link_status,
    select_link_check_candidates,
)


def make_client(head: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.head = head
    return client


def response(status_code: int) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    return mock_response


def targets(n: int) -> list[LinkTarget]:
    return [LinkTarget(id=f'b{i}', url=f'https://example.com/{i}') for i in range(n)]


class TestCheckUrl:
    """Tests for check_url."""

    @pytest.mark.asyncio
    async def test__check_url__completed_response_is_ok(self) -> None:
        """Any completed response is OK, with its status code recorded."""
        client = make_client(AsyncMock(return_value=response(404)))

        result = await check_url(client, LinkTarget(id='1', url='https://example.com/gone'))

        assert result.status is LinkStatus.OK
        assert result.http_code == 404
        client.head.assert_awaited_once_with('https://example.com/gone')

    @pytest.mark.asyncio
    async def test__check_url__dead_status_codes(self) -> None:
        """Status codes listed as dead mark the link DEAD."""
        client = make_client(AsyncMock(return_value=response(410)))

        result = await check_url(client, LinkTarget(id='1', url='https://x.test/'), dead_on_status={404, 410})  # noqa: E501

        assert result.status is LinkStatus.DEAD
        assert result.http_code == 410
        assert result.message == 'HTTP 410'

    @pytest.mark.asyncio
    async def test__check_url__timeout_is_suspect(self) -> None:
        """A timed-out request is SUSPECT, never DEAD."""
        client = make_client(AsyncMock(side_effect=httpx.ReadTimeout('timed out')))

        result = await check_url(client, LinkTarget(id='1', url='https://slow.test/'))

        assert result.status is LinkStatus.SUSPECT
        assert result.message == 'Request timed out'
        assert result.http_code is None

    @pytest.mark.asyncio
    async def test__check_url__overall_timeout_is_enforced(self) -> None:
        """A check that hangs past the timeout is cut off and reported SUSPECT."""
        async def hang(_url: str) -> MagicMock:
            await asyncio.sleep(10)
            return response(200)

        client = make_client(AsyncMock(side_effect=hang))

        result = await check_url(client, LinkTarget(id='1', url='https://hang.test/'), timeout=0.01)

        assert result.status is LinkStatus.SUSPECT

    @pytest.mark.asyncio
    async def test__check_url__network_error_is_suspect(self) -> None:
        """Connection failures are SUSPECT with the error message."""
        client = make_client(AsyncMock(side_effect=httpx.ConnectError('Connection refused')))

        result = await check_url(client, LinkTarget(id='1', url='https://down.test/'))

        assert result.status is LinkStatus.SUSPECT
        assert 'Connection refused' in result.message

    @pytest.mark.asyncio
    async def test__check_url__invalid_url_is_suspect(self) -> None:
        """Errors raised for unusable URLs are absorbed too."""
        client = make_client(AsyncMock(side_effect=httpx.UnsupportedProtocol('bad scheme')))

        result = await check_url(client, LinkTarget(id='1', url='ftp://files.test/'))

        assert result.status is LinkStatus.SUSPECT


class TestLinkCheckRun:
    """Tests for LinkCheckRun."""

    @pytest.mark.asyncio
    async def test__run__yields_one_list_per_batch(self) -> None:
        """Targets are checked in batches of the configured size, in order."""
        client = make_client(AsyncMock(return_value=response(200)))
        run = LinkCheckRun(targets(7), batch_size=3, client=client)

        batches = [batch async for batch in run]

        assert [len(b) for b in batches] == [3, 3, 1]
        assert [r.id for b in batches for r in b] == [f'b{i}' for i in range(7)]
        assert all(r.status is LinkStatus.OK for b in batches for r in b)

    @pytest.mark.asyncio
    async def test__run__bounds_concurrency_to_batch_size(self) -> None:
        """No more than batch_size checks are in flight at once."""
        in_flight = 0
        peak = 0

        async def head(_url: str) -> MagicMock:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return response(200)

        run = LinkCheckRun(targets(10), batch_size=4, client=make_client(AsyncMock(side_effect=head)))

        async for _ in run:
            pass

        assert peak == 4

    @pytest.mark.asyncio
    async def test__run__stop_after_current_batch(self) -> None:
        """Stopping lets the current batch finish and starts no further batch."""
        client = make_client(AsyncMock(return_value=response(200)))
        run = LinkCheckRun(targets(9), batch_size=3, client=client)

        received = []
        async for batch in run:
            received.append(batch)
            run.stop()

        assert len(received) == 1
        assert client.head.await_count == 3

    @pytest.mark.asyncio
    async def test__run__shared_token_cancels(self) -> None:
        """A token cancelled from outside stops the run before its first batch."""
        token = CancellationToken()
        token.cancel()
        client = make_client(AsyncMock(return_value=response(200)))

        batches = [b async for b in LinkCheckRun(targets(3), client=client, token=token)]

        assert batches == []
        client.head.assert_not_awaited()

    @pytest.mark.asyncio
    async def test__run__each_iteration_is_a_fresh_pass(self) -> None:
        """Iterating again checks every target again."""
        client = make_client(AsyncMock(return_value=response(200)))
        run = LinkCheckRun(targets(2), batch_size=5, client=client)

        first = [b async for b in run]
        second = [b async for b in run]

        assert len(first) == len(second) == 1
        assert client.head.await_count == 4

    @pytest.mark.asyncio
    async def test__run__empty_targets(self) -> None:
        """Nothing to check yields nothing."""
        assert [b async for b in LinkCheckRun([], client=make_client(AsyncMock()))] == []

    @pytest.mark.asyncio
    async def test__run__creates_client_with_redirects_and_user_agent(self) -> None:
        """Without an injected client, one is opened per pass with the right options."""
        with patch('services.link_checker.httpx.AsyncClient') as mock_client_class:
            mock_client = AsyncMock()
            mock_client.head.return_value = response(200)
            mock_client.__aenter__.return_value = mock_client
            mock_client.__aexit__.return_value = None
            mock_client_class.return_value = mock_client

            batches = [b async for b in LinkCheckRun(targets(1), timeout=2.5)]

            assert batches[0][0].status is LinkStatus.OK
            call_kwargs = mock_client_class.call_args.kwargs
            assert call_kwargs['follow_redirects'] is True
            assert call_kwargs['timeout'] == 2.5
            assert call_kwargs['headers']['User-Agent'] == USER_AGENT

    def test__run__rejects_non_positive_batch_size(self) -> None:
        """Batch size must be positive."""
        with pytest.raises(ValueError):
            LinkCheckRun(targets(1), batch_size=0)


class TestCollectionHelpers:
    """Tests for candidate selection and applying results."""

    def test__select_candidates__only_unknown(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Bookmarks that already have a status are not re-checked."""
        unknown = make_bookmark()
        ok = make_bookmark(link_status=LinkStatus.OK)
        suspect = make_bookmark(link_status=LinkStatus.SUSPECT)

        assert select_link_check_candidates([unknown, ok, suspect]) == [
            LinkTarget(id=unknown.id, url=unknown.url),
        ]

    def test__apply_link_results__updates_matching_unknown(
        self, make_bookmark: Callable[..., Bookmark],
    ) -> None:
        """Results set status, code and message; other bookmarks are untouched."""
        target, other = make_bookmark(), make_bookmark()
        result = LinkCheckResult(
            id=target.id, url=target.url, status=LinkStatus.SUSPECT, message='Request timed out',
        )

        updated = apply_link_results([target, other], [result])

        assert updated[0].link_status is LinkStatus.SUSPECT
        assert updated[0].link_status_message == 'Request timed out'
        assert updated[1] is other

    def test__apply_link_results__never_returns_to_unknown(
        self, make_bookmark: Callable[..., Bookmark],
    ) -> None:
        """Once checked, a bookmark is not overwritten by a later result."""
        checked = make_bookmark(link_status=LinkStatus.OK, link_status_code=200)
        late = LinkCheckResult(id=checked.id, url=checked.url, status=LinkStatus.SUSPECT)

        assert apply_link_results([checked], [late]) == [checked]

    def test__reset_link_status__selected_ids(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Only the given bookmarks go back to unknown."""
        a = make_bookmark(link_status=LinkStatus.SUSPECT, link_status_message='x')
        b = make_bookmark(link_status=LinkStatus.OK, link_status_code=200)

        updated = reset_link_status([a, b], ids={a.id})

        assert updated[0].link_status is LinkStatus.UNKNOWN
        assert updated[0].link_status_message is None
        assert updated[1] is b

    def test__reset_link_status__all(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Without ids every bookmark is reset."""
        bookmarks = [make_bookmark(link_status=LinkStatus.OK) for _ in range(3)]
        assert all(b.link_status is LinkStatus.UNKNOWN for b in reset_link_status(bookmarks))
