import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

from dom_indexer.browser.views import PageInfo
from dom_indexer.config import CONFIG
from dom_indexer.dom.builder import build_enhanced_tree
from dom_indexer.dom.enhanced_snapshot import REQUIRED_COMPUTED_STYLES
from dom_indexer.dom.reconciler import BoundsReconciler, needs_reconciliation
from dom_indexer.dom.serializer.bounding_box import BoundingBoxFilter
from dom_indexer.dom.serializer.paint_order import PaintOrderRemover, filter_to_viewport
from dom_indexer.dom.serializer.pruning import prune_tree
from dom_indexer.dom.serializer.serializer import DOMTreeSerializer
from dom_indexer.dom.views import DOMExtractionResult, DOMRect, RawCDPTrees, SelectorMap
from dom_indexer.exceptions import DOMExtractionError
from dom_indexer.utils import time_execution_async

if TYPE_CHECKING:
	from dom_indexer.browser.session import CDPSession

logger = logging.getLogger(__name__)

T = TypeVar('T')

READY_STATE_POLL_INTERVAL = 0.1
RETRY_BASE_DELAY = 0.05


def _positive_number(value: Any) -> float | None:
	if isinstance(value, int | float) and not isinstance(value, bool) and value > 0:
		return float(value)
	return None


def _number_or_zero(value: Any) -> float:
	if isinstance(value, int | float) and not isinstance(value, bool):
		return float(value)
	return 0.0


class DomService:
	"""
	Turns the page behind a CDPSession into a numbered list of interactive elements.

	Every call is a fresh computation: nothing is cached between extractions, and a
	single service must not run two extractions at once against the same page.
	"""

	def __init__(
		self,
		cdp_session: 'CDPSession',
		cdp_timeout: float | None = None,
		box_model_timeout: float | None = None,
		reconcile_timeout: float | None = None,
		occlusion_threshold: float | None = None,
		containment_threshold: float | None = None,
		row_tolerance: float | None = None,
		logger: logging.Logger | None = None,
	):
		self.cdp_session = cdp_session
		self.cdp_timeout = CONFIG.DOM_INDEXER_CDP_TIMEOUT if cdp_timeout is None else cdp_timeout
		self.box_model_timeout = CONFIG.DOM_INDEXER_BOX_MODEL_TIMEOUT if box_model_timeout is None else box_model_timeout
		self.reconcile_timeout = CONFIG.DOM_INDEXER_RECONCILE_TIMEOUT if reconcile_timeout is None else reconcile_timeout
		self.occlusion_threshold = (
			CONFIG.DOM_INDEXER_OCCLUSION_THRESHOLD if occlusion_threshold is None else occlusion_threshold
		)
		self.containment_threshold = (
			CONFIG.DOM_INDEXER_CONTAINMENT_THRESHOLD if containment_threshold is None else containment_threshold
		)
		self.row_tolerance = CONFIG.DOM_INDEXER_ROW_TOLERANCE if row_tolerance is None else row_tolerance
		self.logger = logger or logging.getLogger(__name__)

	@property
	def _send(self) -> Any:
		return self.cdp_session.cdp_client.send

	@property
	def _session_id(self) -> str:
		return self.cdp_session.session_id

	async def _best_effort(self, label: str, request: Awaitable[T]) -> T | None:
		try:
			return await asyncio.wait_for(request, timeout=self.cdp_timeout)
		except Exception as e:
			self.logger.warning(f'⚠️ {label} failed, continuing without it: {type(e).__name__}: {e}')
			return None

	async def _get_document(self) -> dict[str, Any]:
		request = self._send.DOM.getDocument(params={'depth': -1, 'pierce': True}, session_id=self._session_id)
		try:
			result = await asyncio.wait_for(request, timeout=self.cdp_timeout)
		except TimeoutError as e:
			raise DOMExtractionError(f'DOM.getDocument timed out after {self.cdp_timeout}s', cause=e) from e
		except Exception as e:
			raise DOMExtractionError('DOM.getDocument failed', cause=e) from e

		root = result.get('root') if isinstance(result, dict) else None
		if not isinstance(root, dict):
			raise DOMExtractionError('DOM.getDocument returned no root node')
		return root

	def _parse_layout_metrics(self, metrics: Any) -> tuple[DOMRect, float]:
		"""Viewport rectangle in document coordinates and the device pixel ratio."""
		default_viewport = DOMRect.default_viewport(
			CONFIG.DOM_INDEXER_DEFAULT_VIEWPORT_WIDTH, CONFIG.DOM_INDEXER_DEFAULT_VIEWPORT_HEIGHT
		)
		if not isinstance(metrics, dict):
			return default_viewport, 1.0

		# Use CSS pixels (what JavaScript sees) instead of device pixels
		css_visual_viewport = metrics.get('cssVisualViewport')
		if not isinstance(css_visual_viewport, dict):
			css_visual_viewport = metrics.get('cssLayoutViewport')
		if not isinstance(css_visual_viewport, dict):
			return default_viewport, 1.0

		width = _positive_number(css_visual_viewport.get('clientWidth'))
		height = _positive_number(css_visual_viewport.get('clientHeight'))
		if width is None or height is None:
			return default_viewport, 1.0

		viewport = DOMRect(
			x=_number_or_zero(css_visual_viewport.get('pageX')),
			y=_number_or_zero(css_visual_viewport.get('pageY')),
			width=width,
			height=height,
		)

		visual_viewport = metrics.get('visualViewport')
		device_width = _positive_number(visual_viewport.get('clientWidth')) if isinstance(visual_viewport, dict) else None
		device_pixel_ratio = device_width / width if device_width is not None else 1.0
		return viewport, device_pixel_ratio

	@time_execution_async('--get_all_trees')
	async def _get_all_trees(self) -> RawCDPTrees:
		"""Issue the four read-only queries concurrently. Only the document tree is mandatory."""
		snapshot_request = self._best_effort(
			'DOMSnapshot.captureSnapshot',
			self._send.DOMSnapshot.captureSnapshot(
				params={
					'computedStyles': REQUIRED_COMPUTED_STYLES,
					'includePaintOrder': True,
					'includeDOMRects': True,
					'includeBlendedBackgroundColors': False,
					'includeTextColorOpacities': False,
				},
				session_id=self._session_id,
			),
		)
		ax_tree_request = self._best_effort(
			'Accessibility.getFullAXTree',
			self._send.Accessibility.getFullAXTree(session_id=self._session_id),
		)
		metrics_request = self._best_effort(
			'Page.getLayoutMetrics',
			self._send.Page.getLayoutMetrics(session_id=self._session_id),
		)

		tasks = [
			asyncio.ensure_future(request)
			for request in (self._get_document(), snapshot_request, ax_tree_request, metrics_request)
		]
		try:
			dom_root, snapshot, ax_tree, metrics = await asyncio.gather(*tasks)
		except BaseException:
			# A failed document fetch must not leave the optional requests in flight
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			raise

		ax_nodes = ax_tree.get('nodes') if isinstance(ax_tree, dict) else None
		viewport, device_pixel_ratio = self._parse_layout_metrics(metrics)

		return RawCDPTrees(
			dom_root=dom_root,
			snapshot=snapshot if isinstance(snapshot, dict) else None,
			ax_nodes=ax_nodes if isinstance(ax_nodes, list) else None,
			viewport=viewport,
			device_pixel_ratio=device_pixel_ratio,
		)

	def _index_trees(self, raw: RawCDPTrees) -> SelectorMap:
		"""Build, filter, prune and index one set of raw payloads."""
		root = build_enhanced_tree(raw)
		if root is None:
			return SelectorMap()

		filter_to_viewport(root, raw.viewport)
		PaintOrderRemover(root, self.occlusion_threshold).calculate_paint_order()
		BoundingBoxFilter(root, self.containment_threshold).apply()
		if not prune_tree(root):
			return SelectorMap()

		return DOMTreeSerializer(root, row_tolerance=self.row_tolerance).serialize_accessible_elements()

	async def get_page_info(self) -> PageInfo:
		"""URL and title of the attached page. Failures yield empty strings."""
		target_id = self.cdp_session.target_id
		if target_id:
			result = await self._best_effort(
				'Target.getTargetInfo', self._send.Target.getTargetInfo(params={'targetId': target_id})
			)
			target_info = result.get('targetInfo') if isinstance(result, dict) else None
			if isinstance(target_info, dict):
				return PageInfo(url=target_info.get('url') or '', title=target_info.get('title') or '')

		return PageInfo(
			url=await self._evaluate_string('location.href'),
			title=await self._evaluate_string('document.title'),
		)

	async def _evaluate_string(self, expression: str) -> str:
		result = await self._best_effort(
			f'Runtime.evaluate({expression})',
			self._send.Runtime.evaluate(
				params={'expression': expression, 'returnByValue': True}, session_id=self._session_id
			),
		)
		remote_object = result.get('result') if isinstance(result, dict) else None
		value = remote_object.get('value') if isinstance(remote_object, dict) else None
		return value if isinstance(value, str) else ''

	@time_execution_async('--extract')
	async def extract(self) -> DOMExtractionResult:
		"""
		Run one full extraction: fetch, build, filter, index, and reconcile bounds if the snapshot had none.

		Raises DOMExtractionError when the document tree cannot be fetched; every other failure degrades.
		"""
		raw = await self._get_all_trees()
		selector_map = self._index_trees(raw)

		if needs_reconciliation(selector_map):
			self.logger.debug(f'🔧 No element has usable bounds, querying box models for {len(selector_map)} elements')
			reconciler = BoundsReconciler(
				self.cdp_session,
				raw.viewport,
				box_model_timeout=self.box_model_timeout,
				overall_timeout=self.reconcile_timeout,
				row_tolerance=self.row_tolerance,
			)
			selector_map = await reconciler.reconcile(selector_map)

		page_info = await self.get_page_info()
		self.logger.debug(f'📄 Extracted {len(selector_map)} interactive elements from {page_info.url or "page"}')

		return DOMExtractionResult(
			selector_map=selector_map,
			llm_representation=DOMTreeSerializer.serialize_selector_map(selector_map),
			viewport=raw.viewport,
			url=page_info.url,
			title=page_info.title,
		)

	async def _wait_for_ready_state(self, timeout: float) -> bool:
		loop = asyncio.get_running_loop()
		deadline = loop.time() + timeout
		while True:
			if await self._evaluate_string('document.readyState') == 'complete':
				return True
			if loop.time() >= deadline:
				return False
			await asyncio.sleep(READY_STATE_POLL_INTERVAL)

	async def get_indexed_elements(
		self, ready_state_timeout: float | None = None, max_attempts: int | None = None
	) -> DOMExtractionResult:
		"""
		Wait for the document to finish loading, then extract, retrying with backoff while nothing is indexed.

		The last result is returned even when it is still empty. Protocol errors are not retried.
		"""
		ready_state_timeout = CONFIG.DOM_INDEXER_READY_STATE_TIMEOUT if ready_state_timeout is None else ready_state_timeout
		max_attempts = CONFIG.DOM_INDEXER_EXTRACTION_RETRIES if max_attempts is None else max_attempts

		if not await self._wait_for_ready_state(ready_state_timeout):
			self.logger.debug(f'Document not complete after {ready_state_timeout}s, extracting anyway')

		result = await self.extract()
		for attempt in range(1, max(max_attempts, 1)):
			if not result.selector_map.is_empty():
				break
			delay = RETRY_BASE_DELAY * 2 ** (attempt - 1)
			self.logger.debug(f'🔄 No interactive elements found, retrying in {delay * 1000:.0f}ms ({attempt}/{max_attempts - 1})')
			await asyncio.sleep(delay)
			result = await self.extract()

		return result


async def extract_dom(cdp_session: 'CDPSession', **kwargs: Any) -> DOMExtractionResult:
	"""Run a single extraction against `cdp_session` with a throwaway DomService."""
	return await DomService(cdp_session, **kwargs).extract()
