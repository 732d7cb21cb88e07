from dom_indexer.dom.views import EnhancedDOMTreeNode, NodeType

INTERACTIVE_TAGS = {'a', 'button', 'input', 'select', 'textarea', 'label', 'details', 'summary'}

INTERACTIVE_ROLES = {
	'button',
	'link',
	'checkbox',
	'radio',
	'textbox',
	'searchbox',
	'tab',
	'menuitem',
	'option',
	'switch',
	'slider',
	'combobox',
	'listbox',
}


class ClickableElementDetector:
	@staticmethod
	def _has_interactive_role(node: EnhancedDOMTreeNode) -> bool:
		"""
		Check the raw `role` attribute and the accessibility role.

		Returns:
			True if either role is in the interactive role set
		"""
		role = node.attributes.get('role')
		if role and role.strip().lower() in INTERACTIVE_ROLES:
			return True

		if node.ax_node and node.ax_node.role:
			return node.ax_node.role.lower() in INTERACTIVE_ROLES

		return False

	@staticmethod
	def _has_event_handlers_or_interactive_attributes(node: EnhancedDOMTreeNode) -> bool:
		"""
		Check for an explicit click handler, a focusable tab index, or editable content.

		Returns:
			True if node has any of them
		"""
		if 'onclick' in node.attributes:
			return True

		tabindex = node.attributes.get('tabindex')
		if tabindex is not None and tabindex.strip() != '-1':
			return True

		return node.attributes.get('contenteditable', 'false').strip().lower() != 'false'

	@staticmethod
	def is_interactive(node: EnhancedDOMTreeNode) -> bool:
		"""Check if this node is clickable/interactive."""

		# Skip non-element nodes
		if node.node_type != NodeType.ELEMENT_NODE:
			return False

		if node.tag_name in INTERACTIVE_TAGS:
			return True

		if ClickableElementDetector._has_interactive_role(node):
			return True

		return ClickableElementDetector._has_event_handlers_or_interactive_attributes(node)
