import logging
from typing import Any

from dom_indexer.dom.enhanced_ax import build_ax_lookup
from dom_indexer.dom.enhanced_snapshot import build_snapshot_lookup
from dom_indexer.dom.serializer.clickable_elements import ClickableElementDetector
from dom_indexer.dom.views import (
	DISABLED_ELEMENTS,
	EnhancedAXNode,
	EnhancedDOMTreeNode,
	EnhancedSnapshotNode,
	NodeType,
	RawCDPTrees,
)
from dom_indexer.utils import time_execution_sync

logger = logging.getLogger(__name__)

KEPT_NODE_TYPES = {
	NodeType.ELEMENT_NODE,
	NodeType.TEXT_NODE,
	NodeType.DOCUMENT_NODE,
	NodeType.DOCUMENT_FRAGMENT_NODE,
}


def parse_attributes(raw_attributes: Any) -> dict[str, str]:
	"""Turn CDP's flat [name, value, name, value, ...] list into a mapping."""
	attributes: dict[str, str] = {}
	if not isinstance(raw_attributes, list):
		return attributes

	for i in range(0, len(raw_attributes) - 1, 2):
		key, value = raw_attributes[i], raw_attributes[i + 1]
		if isinstance(key, str):
			attributes[key] = value if isinstance(value, str) else ''
	return attributes


def _int_field(node: dict[str, Any], key: str) -> int:
	value = node.get(key)
	if isinstance(value, int) and not isinstance(value, bool):
		return value
	return 0


def _list_field(node: dict[str, Any], key: str) -> list:
	value = node.get(key)
	return value if isinstance(value, list) else []


class EnhancedTreeBuilder:
	"""Merges the DOM tree with accessibility and layout lookups into one owned tree."""

	def __init__(
		self,
		ax_lookup: dict[int, EnhancedAXNode],
		snapshot_lookup: dict[int, EnhancedSnapshotNode],
	):
		self.ax_lookup = ax_lookup
		self.snapshot_lookup = snapshot_lookup

	def build(self, dom_root: dict[str, Any]) -> EnhancedDOMTreeNode | None:
		return self._construct_enhanced_node(dom_root, in_shadow_dom=False)

	def _construct_enhanced_node(self, node: Any, in_shadow_dom: bool) -> EnhancedDOMTreeNode | None:
		if not isinstance(node, dict):
			return None

		try:
			node_type = NodeType(node.get('nodeType'))
		except ValueError:
			return None
		if node_type not in KEPT_NODE_TYPES:
			return None

		node_name = node.get('nodeName') if isinstance(node.get('nodeName'), str) else ''
		if node_name.lower() in DISABLED_ELEMENTS:
			return None

		backend_node_id = _int_field(node, 'backendNodeId')

		node_value = None
		if node_type == NodeType.TEXT_NODE and isinstance(node.get('nodeValue'), str):
			node_value = node['nodeValue'].strip() or None

		snapshot_node = self.snapshot_lookup.get(backend_node_id)
		shadow_root_type = node.get('shadowRootType') if isinstance(node.get('shadowRootType'), str) else None
		frame_id = node.get('frameId') if isinstance(node.get('frameId'), str) else None

		children: list[EnhancedDOMTreeNode] = []

		for child in _list_field(node, 'children'):
			child_node = self._construct_enhanced_node(child, in_shadow_dom)
			if child_node is not None:
				children.append(child_node)

		shadow_roots = _list_field(node, 'shadowRoots')
		for shadow_root in shadow_roots:
			shadow_node = self._construct_enhanced_node(shadow_root, in_shadow_dom=True)
			if shadow_node is not None:
				children.append(shadow_node)

		content_document = node.get('contentDocument')
		content_document_backend_id = None
		if isinstance(content_document, dict):
			content_document_backend_id = _int_field(content_document, 'backendNodeId') or None
			document_node = self._construct_enhanced_node(content_document, in_shadow_dom)
			if document_node is not None:
				children.append(document_node)

		enhanced_node = EnhancedDOMTreeNode(
			node_id=_int_field(node, 'nodeId'),
			backend_node_id=backend_node_id,
			node_type=node_type,
			node_name=node_name,
			node_value=node_value,
			attributes=parse_attributes(node.get('attributes')),
			frame_id=frame_id,
			shadow_root_type=shadow_root_type,
			is_shadow_host=bool(shadow_roots),
			content_document_backend_id=content_document_backend_id,
			ax_node=self.ax_lookup.get(backend_node_id),
			snapshot_node=snapshot_node,
			children_nodes=children,
			# Missing layout data never means hidden
			is_visible=snapshot_node.is_visible if snapshot_node is not None else True,
			in_shadow_dom=in_shadow_dom,
		)
		enhanced_node.is_interactive = ClickableElementDetector.is_interactive(enhanced_node)
		return enhanced_node


@time_execution_sync('--build_enhanced_tree')
def build_enhanced_tree(raw: RawCDPTrees) -> EnhancedDOMTreeNode | None:
	"""Build the lookup tables, then the merged tree. Returns None if the root is unusable."""
	ax_lookup = build_ax_lookup(raw.ax_nodes)
	snapshot_lookup = build_snapshot_lookup(raw.snapshot, device_pixel_ratio=raw.device_pixel_ratio)

	tree = EnhancedTreeBuilder(ax_lookup, snapshot_lookup).build(raw.dom_root)
	if tree is None:
		logger.warning('⚠️ Document root could not be converted into a tree')
	return tree
