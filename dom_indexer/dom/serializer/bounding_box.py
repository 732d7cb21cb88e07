import logging

from dom_indexer.dom.views import DOMRect, EnhancedDOMTreeNode

logger = logging.getLogger(__name__)

DEFAULT_CONTAINMENT_THRESHOLD = 0.99

# Elements that propagate their bounds to all descendants
PROPAGATING_TAGS = {'a', 'button'}
PROPAGATING_ROLES = {'button', 'link', 'combobox'}

# Form controls always need their own index
FORM_CONTROL_TAGS = {'input', 'select', 'textarea', 'label'}


class BoundingBoxFilter:
	"""
	Collapses interactive descendants that sit entirely inside an interactive container.

	A container (link, button, role=button/link/combobox) owns the click for anything drawn within
	its bounds, so such descendants are demoted to non-interactive unless they are independently
	targetable: form controls, explicit click handlers, or elements with their own aria-label.
	"""

	def __init__(self, root: EnhancedDOMTreeNode, threshold: float | None = None):
		self.root = root
		self.threshold = DEFAULT_CONTAINMENT_THRESHOLD if threshold is None else threshold

	@staticmethod
	def is_propagating_element(node: EnhancedDOMTreeNode) -> bool:
		if not node.is_interactive:
			return False
		if node.tag_name in PROPAGATING_TAGS:
			return True
		role = node.attributes.get('role')
		return bool(role) and role.strip().lower() in PROPAGATING_ROLES

	@staticmethod
	def is_exception(node: EnhancedDOMTreeNode) -> bool:
		if node.tag_name in FORM_CONTROL_TAGS:
			return True
		if 'onclick' in node.attributes:
			return True
		aria_label = node.attributes.get('aria-label')
		return bool(aria_label and aria_label.strip())

	def _is_contained(self, node: EnhancedDOMTreeNode, container: DOMRect) -> bool:
		bounds = node.bounds
		if bounds is None or not bounds.has_area:
			return False
		return bounds.coverage_by(container) >= self.threshold

	def apply(self) -> int:
		"""Demote contained descendants in place. Returns how many were demoted."""
		demoted = 0
		stack: list[tuple[EnhancedDOMTreeNode, DOMRect | None]] = [(self.root, None)]

		while stack:
			node, container = stack.pop()

			if container is not None and node.is_interactive and not self.is_exception(node):
				if self._is_contained(node, container):
					node.is_interactive = False
					demoted += 1

			# Demoted nodes no longer start a container of their own
			child_container = container
			if self.is_propagating_element(node) and node.bounds is not None and node.bounds.has_area:
				child_container = node.bounds

			for child in reversed(node.children_nodes):
				stack.append((child, child_container))

		logger.debug(f'Containment filter demoted {demoted} nested interactive nodes')
		return demoted
