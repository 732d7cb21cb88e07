"""
Enhanced snapshot processing for layout and visibility data.

DOMSnapshot.captureSnapshot returns parallel arrays: a node table (with backend node ids), a layout
table (bounds, paint orders, style rows) and a shared string table. This module correlates them into
a backend node id → EnhancedSnapshotNode mapping before any tree recursion happens.
"""

import logging
from typing import Any

from dom_indexer.dom.views import DOMRect, EnhancedSnapshotNode

logger = logging.getLogger(__name__)

# Only the styles we need; order matters because style rows are positional
REQUIRED_COMPUTED_STYLES = [
	'display',
	'visibility',
	'opacity',
	'pointer-events',
	'cursor',
	'position',
	'z-index',
	'overflow',
]


def _number(value: Any) -> float | None:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return None
	return float(value)


def _list(container: Any, key: str) -> list:
	if not isinstance(container, dict):
		return []
	value = container.get(key)
	return value if isinstance(value, list) else []


def _node_to_layout_index(nodes: dict, layout: dict) -> dict[int, int]:
	"""Resolve node index → layout index from whichever cross-reference the payload carries."""
	mapping: dict[int, int] = {}

	# Current protocol: layout.nodeIndex[layout_index] = node_index
	node_index = _list(layout, 'nodeIndex')
	if node_index:
		for layout_idx, node_idx in enumerate(node_index):
			if isinstance(node_idx, int) and node_idx not in mapping:
				mapping[node_idx] = layout_idx
		return mapping

	# Older shape: nodes.layoutNodeIndex[node_index] = layout_index (or -1)
	for node_idx, layout_idx in enumerate(_list(nodes, 'layoutNodeIndex')):
		if isinstance(layout_idx, int) and layout_idx >= 0:
			mapping[node_idx] = layout_idx
	return mapping


def _parse_bounds(bounds: list, layout_idx: int, device_pixel_ratio: float) -> DOMRect | None:
	row: list | None = None
	if layout_idx < len(bounds) and isinstance(bounds[layout_idx], list):
		row = bounds[layout_idx]
	elif bounds and not isinstance(bounds[0], list):
		# Flat [x, y, w, h, x, y, w, h, ...]
		base = layout_idx * 4
		if base + 3 < len(bounds):
			row = bounds[base : base + 4]

	if row is None or len(row) < 4:
		return None

	values = [_number(v) for v in row[:4]]
	if any(v is None for v in values):
		return None

	ratio = device_pixel_ratio if device_pixel_ratio > 0 else 1.0
	x, y, width, height = (v / ratio for v in values)  # type: ignore[operator]
	return DOMRect(x=x, y=y, width=width, height=height)


def _parse_computed_styles(strings: list, style_row: Any, style_names: list[str]) -> dict[str, str]:
	"""Resolve one positional style row against the shared string table."""
	styles: dict[str, str] = {}
	if not isinstance(style_row, list):
		return styles

	for name, string_idx in zip(style_names, style_row):
		if isinstance(string_idx, int) and 0 <= string_idx < len(strings) and isinstance(strings[string_idx], str):
			styles[name] = strings[string_idx]
	return styles


def _rare_boolean_indices(data: Any) -> set[int]:
	return {i for i in _list(data, 'index') if isinstance(i, int)}


def build_snapshot_lookup(
	snapshot: dict[str, Any] | None,
	device_pixel_ratio: float = 1.0,
	style_names: list[str] | None = None,
) -> dict[int, EnhancedSnapshotNode]:
	"""Map backend node id → layout data. An absent snapshot yields an empty mapping."""
	lookup: dict[int, EnhancedSnapshotNode] = {}
	if not isinstance(snapshot, dict):
		return lookup

	style_names = style_names or REQUIRED_COMPUTED_STYLES
	strings = _list(snapshot, 'strings')

	for document in _list(snapshot, 'documents'):
		if not isinstance(document, dict):
			continue

		nodes = document.get('nodes') if isinstance(document.get('nodes'), dict) else {}
		layout = document.get('layout') if isinstance(document.get('layout'), dict) else {}

		backend_node_ids = _list(nodes, 'backendNodeId')
		clickable_nodes = _rare_boolean_indices(nodes.get('isClickable'))
		layout_index_of = _node_to_layout_index(nodes, layout)

		bounds = _list(layout, 'bounds')
		paint_orders = _list(layout, 'paintOrders')
		styles = _list(layout, 'styles')

		for node_idx, backend_id in enumerate(backend_node_ids):
			if not isinstance(backend_id, int) or backend_id <= 0:
				continue

			layout_idx = layout_index_of.get(node_idx)
			if layout_idx is None:
				continue

			computed_styles = _parse_computed_styles(
				strings, styles[layout_idx] if layout_idx < len(styles) else None, style_names
			)

			paint_order = paint_orders[layout_idx] if layout_idx < len(paint_orders) else None
			if not isinstance(paint_order, int) or isinstance(paint_order, bool):
				paint_order = None

			cursor_style = computed_styles.get('cursor')

			lookup[backend_id] = EnhancedSnapshotNode(
				bounds=_parse_bounds(bounds, layout_idx, device_pixel_ratio),
				paint_order=paint_order,
				is_clickable=cursor_style == 'pointer' or node_idx in clickable_nodes,
				cursor_style=cursor_style,
				display=computed_styles.get('display'),
				visibility=computed_styles.get('visibility'),
				opacity=computed_styles.get('opacity'),
				pointer_events=computed_styles.get('pointer-events'),
				computed_styles=computed_styles,
			)

	logger.debug(f'Built snapshot lookup with {len(lookup)} entries')
	return lookup
