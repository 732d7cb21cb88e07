from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Tags that never contribute to the tree
DISABLED_ELEMENTS = {'script', 'style', 'noscript', 'head', 'meta', 'link', 'svg', 'path'}

DEFAULT_VIEWPORT_WIDTH = 1280.0
DEFAULT_VIEWPORT_HEIGHT = 720.0


class NodeType(int, Enum):
	"""DOM node types based on the DOM specification."""

	ELEMENT_NODE = 1
	ATTRIBUTE_NODE = 2
	TEXT_NODE = 3
	CDATA_SECTION_NODE = 4
	ENTITY_REFERENCE_NODE = 5
	ENTITY_NODE = 6
	PROCESSING_INSTRUCTION_NODE = 7
	COMMENT_NODE = 8
	DOCUMENT_NODE = 9
	DOCUMENT_TYPE_NODE = 10
	DOCUMENT_FRAGMENT_NODE = 11
	NOTATION_NODE = 12


@dataclass
class DOMRect:
	x: float
	y: float
	width: float
	height: float

	@classmethod
	def default_viewport(cls, width: float = DEFAULT_VIEWPORT_WIDTH, height: float = DEFAULT_VIEWPORT_HEIGHT) -> 'DOMRect':
		return cls(x=0.0, y=0.0, width=width, height=height)

	@property
	def area(self) -> float:
		return self.width * self.height

	@property
	def has_area(self) -> bool:
		return self.width > 0 and self.height > 0

	@property
	def center(self) -> tuple[float, float]:
		return self.x + self.width / 2, self.y + self.height / 2

	def contains_point(self, x: float, y: float) -> bool:
		return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height

	def intersects(self, other: 'DOMRect') -> bool:
		return (
			self.x < other.x + other.width
			and self.x + self.width > other.x
			and self.y < other.y + other.height
			and self.y + self.height > other.y
		)

	def intersection_area(self, other: 'DOMRect') -> float:
		x_overlap = min(self.x + self.width, other.x + other.width) - max(self.x, other.x)
		y_overlap = min(self.y + self.height, other.y + other.height) - max(self.y, other.y)
		if x_overlap > 0 and y_overlap > 0:
			return x_overlap * y_overlap
		return 0.0

	def coverage_by(self, other: 'DOMRect') -> float:
		"""Fraction of this rectangle's area that lies inside `other` (0 for empty rectangles)."""
		area = self.area
		if area <= 0:
			return 0.0
		return self.intersection_area(other) / area


@dataclass(slots=True)
class EnhancedAXNode:
	"""Accessibility data for one node, looked up by backend node id."""

	role: str | None = None
	name: str | None = None
	description: str | None = None
	value: str | None = None

	checked: bool | None = None
	selected: bool | None = None
	disabled: bool | None = None
	expanded: bool | None = None

	focusable: bool = False
	focused: bool = False
	required: bool = False
	readonly: bool = False


@dataclass(slots=True)
class EnhancedSnapshotNode:
	"""Layout and paint data for one node, taken from DOMSnapshot."""

	bounds: DOMRect | None = None
	paint_order: int | None = None
	is_clickable: bool = False
	cursor_style: str | None = None
	display: str | None = None
	visibility: str | None = None
	opacity: str | None = None
	pointer_events: str | None = None
	computed_styles: dict[str, str] = field(default_factory=dict)

	@property
	def is_visible(self) -> bool:
		if self.display == 'none':
			return False
		if self.visibility == 'hidden':
			return False
		if self.opacity == '0':
			return False
		# pointer-events: none means the element cannot receive clicks
		if self.pointer_events == 'none':
			return False
		return self.bounds is not None and self.bounds.has_area


@dataclass(slots=True)
class EnhancedDOMTreeNode:
	"""
	One node of the merged tree: DOM data plus accessibility and layout data.

	Each node exclusively owns its `children_nodes`; there are no parent pointers.
	"""

	node_id: int
	backend_node_id: int
	node_type: NodeType
	node_name: str

	node_value: str | None = None
	attributes: dict[str, str] = field(default_factory=dict)
	frame_id: str | None = None
	shadow_root_type: str | None = None
	is_shadow_host: bool = False
	content_document_backend_id: int | None = None

	ax_node: EnhancedAXNode | None = None
	snapshot_node: EnhancedSnapshotNode | None = None

	children_nodes: list['EnhancedDOMTreeNode'] = field(default_factory=list)

	is_interactive: bool = False
	is_visible: bool = True
	is_obscured: bool = False
	in_shadow_dom: bool = False

	@property
	def tag_name(self) -> str:
		return self.node_name.lower()

	@property
	def bounds(self) -> DOMRect | None:
		if self.snapshot_node is None:
			return None
		return self.snapshot_node.bounds

	@property
	def paint_order(self) -> int | None:
		if self.snapshot_node is None:
			return None
		return self.snapshot_node.paint_order

	@property
	def is_indexable(self) -> bool:
		return self.is_interactive and self.is_visible and not self.is_obscured

	def walk(self) -> Iterator['EnhancedDOMTreeNode']:
		"""Pre-order traversal of this node and all descendants."""
		stack = [self]
		while stack:
			node = stack.pop()
			yield node
			stack.extend(reversed(node.children_nodes))

	def __repr__(self) -> str:
		return f'<{self.tag_name} backend_node_id={self.backend_node_id} children={len(self.children_nodes)}>'


class SelectOption(BaseModel):
	value: str
	text: str
	selected: bool = False


class SimplifiedElement(BaseModel):
	"""Flattened projection of one indexable node, handed to tool callers."""

	model_config = ConfigDict(extra='forbid')

	index: int = 0
	backend_node_id: int
	tag: str

	role: str | None = None
	name: str | None = None
	text: str | None = None
	input_type: str | None = None
	value: str | None = None
	placeholder: str | None = None
	aria_label: str | None = None
	title: str | None = None
	href: str | None = None

	checked: bool | None = None
	selected: bool | None = None
	disabled: bool | None = None
	required: bool | None = None
	readonly: bool | None = None

	bounds: DOMRect = Field(default_factory=lambda: DOMRect(0.0, 0.0, 0.0, 0.0))
	in_shadow_dom: bool = False
	frame_id: str | None = None
	select_options: list[SelectOption] | None = None


class SelectorMap(BaseModel):
	"""Index ↔ backend node id ↔ element tables. Always built whole, never patched."""

	index_to_backend_id: dict[int, int] = Field(default_factory=dict)
	backend_id_to_element: dict[int, SimplifiedElement] = Field(default_factory=dict)
	ordered_elements: list[SimplifiedElement] = Field(default_factory=list)

	@classmethod
	def from_ordered_elements(cls, elements: Iterable[SimplifiedElement]) -> 'SelectorMap':
		"""Number already-ordered elements 1..N and build all three tables together.

		A backend node id seen twice keeps its first position so the tables stay the same size.
		"""
		index_to_backend_id: dict[int, int] = {}
		backend_id_to_element: dict[int, SimplifiedElement] = {}
		ordered: list[SimplifiedElement] = []

		for element in elements:
			if element.backend_node_id in backend_id_to_element:
				continue
			indexed = element.model_copy(update={'index': len(ordered) + 1})
			index_to_backend_id[indexed.index] = indexed.backend_node_id
			backend_id_to_element[indexed.backend_node_id] = indexed
			ordered.append(indexed)

		return cls(
			index_to_backend_id=index_to_backend_id,
			backend_id_to_element=backend_id_to_element,
			ordered_elements=ordered,
		)

	def get_backend_id(self, index: int) -> int | None:
		return self.index_to_backend_id.get(index)

	def get_element_by_index(self, index: int) -> SimplifiedElement | None:
		backend_id = self.index_to_backend_id.get(index)
		if backend_id is None:
			return None
		return self.backend_id_to_element.get(backend_id)

	def get_element_by_backend_id(self, backend_id: int) -> SimplifiedElement | None:
		return self.backend_id_to_element.get(backend_id)

	def is_empty(self) -> bool:
		return not self.ordered_elements

	def is_consistent(self) -> bool:
		"""Check the table invariants: equal sizes and indices exactly 1..N in order."""
		n = len(self.ordered_elements)
		if len(self.index_to_backend_id) != n or len(self.backend_id_to_element) != n:
			return False
		for position, element in enumerate(self.ordered_elements, start=1):
			if element.index != position:
				return False
			if self.index_to_backend_id.get(position) != element.backend_node_id:
				return False
			if self.backend_id_to_element.get(element.backend_node_id) != element:
				return False
		return True

	def __len__(self) -> int:
		return len(self.ordered_elements)


@dataclass
class RawCDPTrees:
	"""Raw protocol payloads for one extraction, before any processing."""

	dom_root: dict[str, Any]
	snapshot: dict[str, Any] | None
	ax_nodes: list[dict[str, Any]] | None
	viewport: DOMRect
	device_pixel_ratio: float = 1.0


class DOMExtractionResult(BaseModel):
	selector_map: SelectorMap = Field(default_factory=SelectorMap)
	llm_representation: str = ''
	viewport: DOMRect = Field(default_factory=DOMRect.default_viewport)
	url: str = ''
	title: str = ''
