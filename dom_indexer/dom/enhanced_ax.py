"""
Accessibility lookup for the enhanced tree builder.

Turns the flat node list of Accessibility.getFullAXTree into a backend node id → EnhancedAXNode
mapping. Nothing here raises on malformed input: missing or oddly-typed values become None/False.
"""

import logging
from typing import TYPE_CHECKING, Any

from dom_indexer.dom.views import EnhancedAXNode

if TYPE_CHECKING:
	from cdp_use.cdp.accessibility.types import AXNode

logger = logging.getLogger(__name__)

# AX properties that are tri-state (true / false / absent)
_OPTIONAL_STATES = ('checked', 'selected', 'disabled', 'expanded')
# AX properties that default to False when absent
_FLAG_STATES = ('focusable', 'focused', 'required', 'readonly')


def extract_ax_property_value(value: Any) -> str | bool | None:
	"""Extract value from various formats returned by the accessibility API."""
	if isinstance(value, dict):
		extracted = value.get('value')
		if isinstance(extracted, (str, bool)) or extracted is None:
			return extracted
		return str(extracted)
	elif isinstance(value, list) and len(value) > 0:
		# Sometimes values are returned as a list with one element
		return extract_ax_property_value(value[0])
	elif isinstance(value, (str, bool)) or value is None:
		return value
	return str(value)


def _as_text(value: Any) -> str | None:
	extracted = extract_ax_property_value(value)
	if extracted is None or isinstance(extracted, bool):
		return None
	return extracted


def _as_bool(value: Any) -> bool | None:
	extracted = extract_ax_property_value(value)
	if isinstance(extracted, bool):
		return extracted
	if extracted == 'true':
		return True
	if extracted == 'false':
		return False
	# 'mixed' and anything else is undetermined
	return None


def build_enhanced_ax_node(ax_node: 'AXNode | dict[str, Any]') -> EnhancedAXNode:
	"""Build enhanced accessibility node from CDP AX node."""
	data = EnhancedAXNode(
		role=_as_text(ax_node.get('role')),
		name=_as_text(ax_node.get('name')),
		description=_as_text(ax_node.get('description')),
		value=_as_text(ax_node.get('value')),
	)

	properties = ax_node.get('properties')
	if not isinstance(properties, list):
		return data

	for prop in properties:
		if not isinstance(prop, dict):
			continue
		prop_name = prop.get('name')
		state = _as_bool(prop.get('value'))
		if prop_name in _OPTIONAL_STATES:
			setattr(data, prop_name, state)
		elif prop_name in _FLAG_STATES:
			setattr(data, prop_name, bool(state))

	return data


def build_ax_lookup(ax_nodes: list[dict[str, Any]] | None) -> dict[int, EnhancedAXNode]:
	"""Map backend DOM node id → accessibility data. An absent tree yields an empty mapping."""
	lookup: dict[int, EnhancedAXNode] = {}
	if not ax_nodes:
		return lookup

	for ax_node in ax_nodes:
		if not isinstance(ax_node, dict):
			continue
		backend_id = ax_node.get('backendDOMNodeId')
		if not isinstance(backend_id, int) or isinstance(backend_id, bool):
			continue
		lookup[backend_id] = build_enhanced_ax_node(ax_node)

	logger.debug(f'Built accessibility lookup with {len(lookup)} entries')
	return lookup
