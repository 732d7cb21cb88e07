# @file purpose: Flattens the filtered tree into a numbered selector map and renders it for LLM consumption

import logging
from collections.abc import Iterable

from dom_indexer.dom.utils import cap_text_length, collapse_whitespace
from dom_indexer.dom.views import (
	EnhancedDOMTreeNode,
	NodeType,
	SelectOption,
	SelectorMap,
	SimplifiedElement,
)
from dom_indexer.utils import time_execution_sync

logger = logging.getLogger(__name__)

DEFAULT_ROW_TOLERANCE = 20.0
DEFAULT_MAX_TEXT_LENGTH = 100

# Elements whose text is their value, not their children
TEXTLESS_TAGS = {'input', 'textarea', 'select'}

# Input types that add nothing to the rendered line
DEFAULT_INPUT_TYPES = {'text', 'submit'}


def _non_empty(value: str | None) -> str | None:
	if value is None or not value.strip():
		return None
	return value


class DOMTreeSerializer:
	"""Collects indexable nodes from a filtered tree and numbers them in reading order."""

	def __init__(
		self,
		root_node: EnhancedDOMTreeNode,
		row_tolerance: float | None = None,
		max_text_length: int | None = None,
	):
		self.root_node = root_node
		self.row_tolerance = DEFAULT_ROW_TOLERANCE if row_tolerance is None else row_tolerance
		self.max_text_length = DEFAULT_MAX_TEXT_LENGTH if max_text_length is None else max_text_length

	@time_execution_sync('--serialize_accessible_elements')
	def serialize_accessible_elements(self) -> SelectorMap:
		elements = [self._to_simplified(node) for node in self.root_node.walk() if node.is_indexable]
		ordered = self.sort_elements(elements, self.row_tolerance)
		selector_map = SelectorMap.from_ordered_elements(ordered)
		logger.debug(f'Indexed {len(selector_map)} interactive elements')
		return selector_map

	@staticmethod
	def sort_elements(elements: Iterable[SimplifiedElement], row_tolerance: float = DEFAULT_ROW_TOLERANCE) -> list[SimplifiedElement]:
		"""
		Order elements top-to-bottom, left-to-right.

		Rows are anchored on their topmost element: an element joins the current row when its y is
		at most `row_tolerance` below the anchor (a gap of exactly the tolerance is the same row),
		otherwise it starts a new row. Within a row elements are ordered by x. Both sorts are stable,
		so exact ties keep document order.
		"""
		by_y = sorted(elements, key=lambda e: e.bounds.y)

		rows: list[list[SimplifiedElement]] = []
		anchor_y = 0.0
		for element in by_y:
			if not rows or element.bounds.y - anchor_y > row_tolerance:
				rows.append([element])
				anchor_y = element.bounds.y
			else:
				rows[-1].append(element)

		return [element for row in rows for element in sorted(row, key=lambda e: e.bounds.x)]

	def _to_simplified(self, node: EnhancedDOMTreeNode) -> SimplifiedElement:
		attributes = node.attributes

		element = SimplifiedElement(
			backend_node_id=node.backend_node_id,
			tag=node.tag_name,
			role=attributes.get('role'),
			input_type=attributes.get('type'),
			value=attributes.get('value'),
			placeholder=attributes.get('placeholder'),
			aria_label=attributes.get('aria-label'),
			title=attributes.get('title'),
			href=attributes.get('href'),
			disabled=True if 'disabled' in attributes else None,
			required=True if 'required' in attributes else None,
			readonly=True if 'readonly' in attributes else None,
			checked=True if 'checked' in attributes else None,
			selected=True if 'selected' in attributes else None,
			in_shadow_dom=node.in_shadow_dom,
			frame_id=node.frame_id,
			text=self._get_text_content(node),
		)
		if node.bounds is not None:
			element.bounds = node.bounds

		# Accessibility data is more accurate than raw attributes when it has something to say
		ax = node.ax_node
		if ax is not None:
			if _non_empty(ax.role):
				element.role = ax.role
			if _non_empty(ax.name):
				element.name = ax.name
			if _non_empty(ax.value):
				element.value = ax.value
			if ax.checked is not None:
				element.checked = ax.checked
			if ax.selected is not None:
				element.selected = ax.selected
			if ax.disabled is not None:
				element.disabled = ax.disabled
			if ax.required:
				element.required = True
			if ax.readonly:
				element.readonly = True

		if node.tag_name == 'select':
			element.select_options = self._extract_select_options(node)

		return element

	def _get_text_content(self, node: EnhancedDOMTreeNode) -> str | None:
		"""Text from direct text children and one level of grandchildren only."""
		if node.tag_name in TEXTLESS_TAGS:
			return None

		parts: list[str] = []
		for child in node.children_nodes:
			if child.node_type == NodeType.TEXT_NODE:
				if child.node_value:
					parts.append(child.node_value)
			elif child.node_type == NodeType.ELEMENT_NODE:
				for grandchild in child.children_nodes:
					if grandchild.node_type == NodeType.TEXT_NODE and grandchild.node_value:
						parts.append(grandchild.node_value)

		text = collapse_whitespace(' '.join(parts))
		if not text:
			return None
		return text[: self.max_text_length]

	@staticmethod
	def _option_from_node(option: EnhancedDOMTreeNode) -> SelectOption:
		value = option.attributes.get('value', '')
		text = collapse_whitespace(
			' '.join(c.node_value for c in option.children_nodes if c.node_type == NodeType.TEXT_NODE and c.node_value)
		)
		return SelectOption(value=value, text=text or value, selected='selected' in option.attributes)

	def _extract_select_options(self, select_node: EnhancedDOMTreeNode) -> list[SelectOption]:
		options: list[SelectOption] = []
		for child in select_node.children_nodes:
			if child.tag_name == 'option':
				options.append(self._option_from_node(child))
			elif child.tag_name == 'optgroup':
				for grandchild in child.children_nodes:
					if grandchild.tag_name == 'option':
						options.append(self._option_from_node(grandchild))
		return options

	@staticmethod
	def serialize_selector_map(selector_map: SelectorMap) -> str:
		"""Render one `[index]<tag attrs @(x,y)>text` line per element."""
		lines = [DOMTreeSerializer._build_element_line(element) for element in selector_map.ordered_elements]
		return '\n'.join(lines) + ('\n' if lines else '')

	@staticmethod
	def _build_attributes(element: SimplifiedElement) -> list[str]:
		attrs: list[str] = []
		text = (element.text or '').lower()
		name = _non_empty(element.name)
		role = _non_empty(element.role)
		value = _non_empty(element.value)
		placeholder = _non_empty(element.placeholder)
		aria_label = _non_empty(element.aria_label)
		title = _non_empty(element.title)
		href = _non_empty(element.href)

		if element.input_type and element.input_type not in DEFAULT_INPUT_TYPES:
			attrs.append(f'type={element.input_type}')

		if name and name.lower() != text:
			attrs.append(f'name={cap_text_length(name, 30)}')

		if role and role.lower() != element.tag:
			attrs.append(f'role={role}')

		if value and element.tag != 'button':
			attrs.append(f'value={cap_text_length(value, 30)}')

		if element.select_options:
			attrs.append('options="{}"'.format(','.join(option.text for option in element.select_options)))

		for state in ('checked', 'selected', 'disabled', 'required', 'readonly'):
			if getattr(element, state) is True:
				attrs.append(state)

		if placeholder:
			attrs.append(f'placeholder={cap_text_length(placeholder, 30)}')

		if aria_label and aria_label.lower() != text:
			attrs.append(f'aria-label={cap_text_length(aria_label, 40)}')

		if title and title.lower() != text and title != aria_label:
			attrs.append(f'title={cap_text_length(title, 40)}')

		if href and not href.startswith('javascript:'):
			attrs.append(f'href={cap_text_length(href, 50)}')

		return attrs

	@staticmethod
	def _build_element_line(element: SimplifiedElement) -> str:
		attrs = DOMTreeSerializer._build_attributes(element)
		attr_str = f' {" ".join(attrs)}' if attrs else ''
		position = f'@({int(element.bounds.x)},{int(element.bounds.y)})'

		text = element.text.strip() if element.text else ''
		if text:
			return f'[{element.index}]<{element.tag}{attr_str} {position}>{cap_text_length(text, 50)}'
		return f'[{element.index}]<{element.tag}{attr_str} {position} />'
