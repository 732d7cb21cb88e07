import logging
from typing import Any

import httpx
from cdp_use import CDPClient
from pydantic import BaseModel, ConfigDict

from dom_indexer.browser.views import BrowserError

logger = logging.getLogger(__name__)


async def resolve_websocket_url(cdp_url: str) -> str:
	"""Turn a DevTools HTTP root (or /json/version URL) into its browser websocket URL."""
	# If the cdp_url is already a websocket URL, use it as-is.
	if cdp_url.startswith('ws'):
		return cdp_url

	url = cdp_url.rstrip('/')
	if not url.endswith('/json/version'):
		url = url + '/json/version'

	async with httpx.AsyncClient() as client:
		try:
			response = await client.get(url)
			response.raise_for_status()
			version_info = response.json()
		except (httpx.HTTPError, ValueError) as e:
			raise BrowserError(f'Could not read DevTools version info from {url}', details={'error': str(e)}) from e

	ws_url = version_info.get('webSocketDebuggerUrl') if isinstance(version_info, dict) else None
	if not ws_url:
		raise BrowserError(f'No webSocketDebuggerUrl in DevTools version info from {url}')
	return ws_url


class CDPSession(BaseModel):
	"""
	Page handle used by the extraction pipeline: a CDP client plus the flattened session attached to one page.

	All protocol calls are sent as `cdp_client.send.<Domain>.<method>(params=..., session_id=session_id)`.
	"""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	cdp_client: Any
	session_id: str
	target_id: str | None = None

	@classmethod
	async def connect(cls, cdp_url: str, url: str | None = None) -> 'CDPSession':
		"""
		Start a CDP client for `cdp_url` and attach to a page target.

		If `url` is given, the first page target with exactly that URL is chosen, otherwise the first page target.
		Raises BrowserError when the browser has no matching page.
		"""
		ws_url = await resolve_websocket_url(cdp_url)

		cdp_client = CDPClient(ws_url)
		await cdp_client.start()

		try:
			targets = await cdp_client.send.Target.getTargets()
			page_targets = [t for t in targets.get('targetInfos', []) if t.get('type') == 'page']
			if url is not None:
				page_targets = [t for t in page_targets if t.get('url') == url]
			if not page_targets:
				raise BrowserError('No page target to attach to', details={'url': url} if url else None)

			target_id = page_targets[0]['targetId']
			session = await cdp_client.send.Target.attachToTarget(params={'targetId': target_id, 'flatten': True})
			session_id = session['sessionId']

			await cdp_client.send.DOM.enable(session_id=session_id)
			await cdp_client.send.Accessibility.enable(session_id=session_id)
			await cdp_client.send.DOMSnapshot.enable(session_id=session_id)
			await cdp_client.send.Page.enable(session_id=session_id)
		except BaseException:
			await cdp_client.stop()
			raise

		logger.debug(f'🔌 Attached to target {target_id} (session {session_id})')
		return cls(cdp_client=cdp_client, session_id=session_id, target_id=target_id)

	async def close(self) -> None:
		await self.cdp_client.stop()
