import asyncio
import logging
from typing import TYPE_CHECKING, Any

from dom_indexer.dom.serializer.serializer import DEFAULT_ROW_TOLERANCE, DOMTreeSerializer
from dom_indexer.dom.views import DOMRect, SelectorMap, SimplifiedElement
from dom_indexer.utils import time_execution_async

if TYPE_CHECKING:
	from dom_indexer.browser.session import CDPSession

logger = logging.getLogger(__name__)

DEFAULT_BOX_MODEL_TIMEOUT = 2.0
DEFAULT_RECONCILE_TIMEOUT = 15.0


def rect_from_quad(quad: Any, offset_x: float = 0.0, offset_y: float = 0.0) -> DOMRect | None:
	"""
	Rectangle spanned by the first and third corners of a CDP quad [x1,y1, x2,y2, x3,y3, x4,y4].

	Quads are viewport-relative; the offset moves them into document coordinates.
	"""
	if not isinstance(quad, list) or len(quad) < 6:
		return None
	try:
		x1, y1, x3, y3 = (float(quad[i]) for i in (0, 1, 4, 5))
	except (TypeError, ValueError):
		return None
	return DOMRect(x=x1 + offset_x, y=y1 + offset_y, width=x3 - x1, height=y3 - y1)


def needs_reconciliation(selector_map: SelectorMap) -> bool:
	"""True when the map has elements but not one of them has a positive-area rectangle."""
	return bool(selector_map.ordered_elements) and not any(e.bounds.has_area for e in selector_map.ordered_elements)


class BoundsReconciler:
	"""
	Backfills element geometry with DOM.getBoxModel when the snapshot produced none.

	Never mutates the map it is given: `reconcile` returns a new, fully re-sorted and re-indexed map.
	"""

	def __init__(
		self,
		cdp_session: 'CDPSession',
		viewport: DOMRect,
		box_model_timeout: float | None = None,
		overall_timeout: float | None = None,
		row_tolerance: float | None = None,
	):
		self.cdp_session = cdp_session
		self.viewport = viewport
		self.box_model_timeout = DEFAULT_BOX_MODEL_TIMEOUT if box_model_timeout is None else box_model_timeout
		self.overall_timeout = DEFAULT_RECONCILE_TIMEOUT if overall_timeout is None else overall_timeout
		self.row_tolerance = DEFAULT_ROW_TOLERANCE if row_tolerance is None else row_tolerance

	async def _query_bounds(self, backend_node_id: int, timeout: float) -> DOMRect | None:
		result = await asyncio.wait_for(
			self.cdp_session.cdp_client.send.DOM.getBoxModel(
				params={'backendNodeId': backend_node_id},
				session_id=self.cdp_session.session_id,
			),
			timeout=timeout,
		)
		model = result.get('model') if isinstance(result, dict) else None
		if not isinstance(model, dict):
			return None
		return rect_from_quad(model.get('content'), self.viewport.x, self.viewport.y)

	@time_execution_async('--reconcile_bounds')
	async def reconcile(self, selector_map: SelectorMap) -> SelectorMap:
		loop = asyncio.get_running_loop()
		deadline = loop.time() + self.overall_timeout

		backfilled: list[SimplifiedElement] = []
		for position, element in enumerate(selector_map.ordered_elements):
			if loop.time() >= deadline:
				logger.warning(
					f'⚠️ Bounds reconciliation deadline of {self.overall_timeout}s reached, '
					f'{len(selector_map) - position} elements were not queried'
				)
				break

			try:
				remaining = deadline - loop.time()
				bounds = await self._query_bounds(element.backend_node_id, min(self.box_model_timeout, remaining))
			except Exception as e:
				logger.debug(f'DOM.getBoxModel failed for backend node {element.backend_node_id}: {type(e).__name__}: {e}')
				continue

			if bounds is None or not bounds.has_area:
				continue
			if not self.viewport.intersects(bounds):
				continue
			backfilled.append(element.model_copy(update={'bounds': bounds}))

		ordered = DOMTreeSerializer.sort_elements(backfilled, self.row_tolerance)
		reconciled = SelectorMap.from_ordered_elements(ordered)
		logger.debug(f'Reconciled bounds: kept {len(reconciled)} of {len(selector_map)} elements')
		return reconciled
