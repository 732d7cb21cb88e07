from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pytest_httpserver import HTTPServer

from dom_indexer.browser.session import CDPSession, resolve_websocket_url
from dom_indexer.browser.views import BrowserError

WS_URL = 'ws://127.0.0.1:9222/devtools/browser/abc'


def fake_cdp_client(targets: list[dict]) -> MagicMock:
	client = MagicMock()
	client.start = AsyncMock()
	client.stop = AsyncMock()
	client.send.Target.getTargets = AsyncMock(return_value={'targetInfos': targets})
	client.send.Target.attachToTarget = AsyncMock(return_value={'sessionId': 'session-9'})
	for domain in ('DOM', 'Accessibility', 'DOMSnapshot', 'Page'):
		getattr(client.send, domain).enable = AsyncMock(return_value={})
	return client


@pytest.fixture
def devtools(httpserver: HTTPServer) -> HTTPServer:
	httpserver.expect_request('/json/version').respond_with_json({'Browser': 'Chrome/138', 'webSocketDebuggerUrl': WS_URL})
	return httpserver


class TestResolveWebsocketUrl:
	async def test_websocket_urls_are_used_as_is(self):
		assert await resolve_websocket_url(WS_URL) == WS_URL

	async def test_http_root_is_resolved(self, devtools):
		assert await resolve_websocket_url(devtools.url_for('/')) == WS_URL
		assert await resolve_websocket_url(devtools.url_for('/json/version')) == WS_URL

	async def test_missing_websocket_url(self, httpserver: HTTPServer):
		httpserver.expect_request('/json/version').respond_with_json({'Browser': 'Chrome/138'})

		with pytest.raises(BrowserError):
			await resolve_websocket_url(httpserver.url_for('/'))

	async def test_http_error(self, httpserver: HTTPServer):
		httpserver.expect_request('/json/version').respond_with_data('nope', status=500)

		with pytest.raises(BrowserError):
			await resolve_websocket_url(httpserver.url_for('/'))


class TestCDPSessionConnect:
	"""Attaching to a page target over a flattened session."""

	async def test_attaches_to_matching_page_and_enables_domains(self, devtools):
		targets = [
			{'targetId': 'worker', 'type': 'service_worker', 'url': 'https://example.com/sw.js'},
			{'targetId': 'page-a', 'type': 'page', 'url': 'https://example.com/a'},
			{'targetId': 'page-b', 'type': 'page', 'url': 'https://example.com/b'},
		]
		client = fake_cdp_client(targets)

		with patch('dom_indexer.browser.session.CDPClient', return_value=client) as client_cls:
			session = await CDPSession.connect(devtools.url_for('/'), url='https://example.com/b')

		client_cls.assert_called_once_with(WS_URL)
		client.start.assert_awaited_once()
		client.send.Target.attachToTarget.assert_awaited_once_with(params={'targetId': 'page-b', 'flatten': True})
		client.send.DOMSnapshot.enable.assert_awaited_once_with(session_id='session-9')
		assert session.session_id == 'session-9'
		assert session.target_id == 'page-b'
		assert session.cdp_client is client

	async def test_first_page_without_url(self):
		client = fake_cdp_client([{'targetId': 'page-a', 'type': 'page', 'url': 'about:blank'}])

		with patch('dom_indexer.browser.session.CDPClient', return_value=client):
			session = await CDPSession.connect(WS_URL)

		assert session.target_id == 'page-a'

	async def test_no_page_target_raises_and_stops_client(self):
		client = fake_cdp_client([{'targetId': 'page-a', 'type': 'page', 'url': 'https://example.com/a'}])

		with patch('dom_indexer.browser.session.CDPClient', return_value=client):
			with pytest.raises(BrowserError, match='No page target'):
				await CDPSession.connect(WS_URL, url='https://example.com/missing')

		client.stop.assert_awaited_once()

	async def test_close_stops_the_client(self):
		client = fake_cdp_client([{'targetId': 'page-a', 'type': 'page', 'url': 'about:blank'}])

		with patch('dom_indexer.browser.session.CDPClient', return_value=client):
			session = await CDPSession.connect(WS_URL)
		await session.close()

		client.stop.assert_awaited_once()
