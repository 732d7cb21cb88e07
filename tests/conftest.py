"""
Shared builders for raw CDP payloads and a mocked page session.

The builders produce the same shapes Chrome returns for DOM.getDocument, DOMSnapshot.captureSnapshot
and Accessibility.getFullAXTree, so tests can describe a page as a handful of nodes with rectangles.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from dom_indexer.browser.session import CDPSession
from dom_indexer.dom.enhanced_snapshot import REQUIRED_COMPUTED_STYLES

DEFAULT_STYLES = {
	'display': 'block',
	'visibility': 'visible',
	'opacity': '1',
	'pointer-events': 'auto',
	'cursor': 'auto',
	'position': 'static',
	'z-index': 'auto',
	'overflow': 'visible',
}


def element(
	tag: str,
	backend_node_id: int,
	attributes: dict[str, str] | None = None,
	children: list[dict] | None = None,
	**extra: Any,
) -> dict[str, Any]:
	"""A DOM.getDocument element node."""
	flat_attributes: list[str] = []
	for key, value in (attributes or {}).items():
		flat_attributes.extend([key, value])

	node = {
		'nodeId': backend_node_id,
		'backendNodeId': backend_node_id,
		'nodeType': 1,
		'nodeName': tag.upper(),
		'nodeValue': '',
		'attributes': flat_attributes,
		'children': children or [],
	}
	node.update(extra)
	return node


def text(value: str, backend_node_id: int) -> dict[str, Any]:
	return {
		'nodeId': backend_node_id,
		'backendNodeId': backend_node_id,
		'nodeType': 3,
		'nodeName': '#text',
		'nodeValue': value,
	}


def document(*body_children: dict, backend_node_id: int = 1) -> dict[str, Any]:
	"""A full DOM.getDocument response: #document > html > body > children."""
	body = element('body', backend_node_id + 2, children=list(body_children))
	html = element('html', backend_node_id + 1, children=[body])
	return {
		'root': {
			'nodeId': backend_node_id,
			'backendNodeId': backend_node_id,
			'nodeType': 9,
			'nodeName': '#document',
			'nodeValue': '',
			'children': [html],
		}
	}


def layout(
	backend_node_id: int,
	bounds: tuple[float, float, float, float],
	paint_order: int = 1,
	**styles: str,
) -> dict[str, Any]:
	"""One layout entry for `snapshot()`. Style keyword arguments use underscores for dashes."""
	return {
		'backend_node_id': backend_node_id,
		'bounds': list(bounds),
		'paint_order': paint_order,
		'styles': {key.replace('_', '-'): value for key, value in styles.items()},
	}


def snapshot(*entries: dict[str, Any], flat_bounds: bool = False) -> dict[str, Any]:
	"""A DOMSnapshot.captureSnapshot response with one document and one layout row per entry."""
	strings: list[str] = []

	def intern(value: str) -> int:
		if value not in strings:
			strings.append(value)
		return strings.index(value)

	backend_node_ids, node_index, bounds, paint_orders, style_rows = [], [], [], [], []
	for idx, entry in enumerate(entries):
		backend_node_ids.append(entry['backend_node_id'])
		node_index.append(idx)
		if flat_bounds:
			bounds.extend(entry['bounds'])
		else:
			bounds.append(entry['bounds'])
		paint_orders.append(entry['paint_order'])
		styles = {**DEFAULT_STYLES, **entry['styles']}
		style_rows.append([intern(styles[name]) for name in REQUIRED_COMPUTED_STYLES])

	return {
		'documents': [
			{
				'nodes': {'backendNodeId': backend_node_ids},
				'layout': {
					'nodeIndex': node_index,
					'bounds': bounds,
					'paintOrders': paint_orders,
					'styles': style_rows,
				},
			}
		],
		'strings': strings,
	}


def ax_node(backend_node_id: int, role: str | None = None, name: str | None = None, **properties: Any) -> dict[str, Any]:
	"""An Accessibility.getFullAXTree node."""
	node: dict[str, Any] = {'nodeId': str(backend_node_id), 'backendDOMNodeId': backend_node_id, 'ignored': False}
	if role is not None:
		node['role'] = {'type': 'role', 'value': role}
	if name is not None:
		node['name'] = {'type': 'computedString', 'value': name}
	node['properties'] = [
		{'name': key, 'value': {'type': 'boolean', 'value': value}} for key, value in properties.items()
	]
	return node


def layout_metrics(width: float = 1280, height: float = 720, page_x: float = 0, page_y: float = 0, ratio: float = 1.0):
	return {
		'cssVisualViewport': {'clientWidth': width, 'clientHeight': height, 'pageX': page_x, 'pageY': page_y},
		'visualViewport': {'clientWidth': width * ratio, 'clientHeight': height * ratio},
	}


def box_model(x: float, y: float, width: float, height: float) -> dict[str, Any]:
	"""A DOM.getBoxModel response whose content quad spans the given rectangle."""
	quad = [x, y, x + width, y, x + width, y + height, x, y + height]
	return {'model': {'content': quad, 'padding': quad, 'border': quad, 'margin': quad, 'width': width, 'height': height}}


def _mock_call(result: Any) -> AsyncMock:
	if isinstance(result, BaseException):
		return AsyncMock(side_effect=result)
	return AsyncMock(return_value=result)


def make_cdp_session(
	dom: Any,
	snap: Any = None,
	ax_nodes: Any = None,
	metrics: Any = None,
	box_models: dict[int, dict] | None = None,
	ready_state: str = 'complete',
	url: str = 'https://example.com/',
	title: str = 'Example Domain',
	target_id: str | None = 'target-1',
) -> CDPSession:
	"""
	A CDPSession whose client answers every call the extraction makes.

	Pass an exception instance for any payload to make that call fail. Box models are looked up by
	backend node id; unknown ids raise like Chrome does for detached nodes.
	"""
	send = MagicMock()
	send.DOM.getDocument = _mock_call(dom)
	send.DOMSnapshot.captureSnapshot = _mock_call(snap if snap is not None else {'documents': [], 'strings': []})
	send.Accessibility.getFullAXTree = _mock_call({'nodes': ax_nodes} if isinstance(ax_nodes, list) else ax_nodes or {'nodes': []})
	send.Page.getLayoutMetrics = _mock_call(metrics if metrics is not None else layout_metrics())
	send.Target.getTargetInfo = _mock_call({'targetInfo': {'targetId': target_id, 'type': 'page', 'url': url, 'title': title}})

	async def evaluate(params=None, session_id=None):
		expression = params['expression']
		values = {'document.readyState': ready_state, 'location.href': url, 'document.title': title}
		return {'result': {'type': 'string', 'value': values.get(expression)}}

	send.Runtime.evaluate = AsyncMock(side_effect=evaluate)

	models = box_models or {}

	async def get_box_model(params=None, session_id=None):
		backend_node_id = params['backendNodeId']
		if backend_node_id not in models:
			raise RuntimeError(f'Could not compute box model for {backend_node_id}')
		return models[backend_node_id]

	send.DOM.getBoxModel = AsyncMock(side_effect=get_box_model)

	client = MagicMock()
	client.send = send
	return CDPSession(cdp_client=client, session_id='session-1', target_id=target_id)


@pytest.fixture
def button_with_span_page() -> CDPSession:
	"""<button> at (100,100,80,30) wrapping a focusable <span>OK</span> at (110,108,20,14)."""
	dom = document(
		element(
			'button',
			10,
			children=[element('span', 11, {'tabindex': '0'}, children=[text('OK', 12)])],
		)
	)
	snap = snapshot(
		layout(10, (100, 100, 80, 30), paint_order=3, cursor='pointer'),
		layout(11, (110, 108, 20, 14), paint_order=4, cursor='pointer'),
		layout(12, (110, 108, 20, 14), paint_order=4),
	)
	return make_cdp_session(dom, snap, [ax_node(10, 'button', 'OK'), ax_node(11, 'generic')])
