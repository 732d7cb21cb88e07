from dom_indexer.dom.views import EnhancedDOMTreeNode

PRUNED_TAGS = {'style', 'script', 'noscript', 'head', 'meta', 'link'}

# Select option lists are read from these subtrees after pruning, so they are kept whole
KEPT_SUBTREE_TAGS = {'option', 'optgroup'}


def _survives(node: EnhancedDOMTreeNode) -> bool:
	if node.tag_name in PRUNED_TAGS:
		return False

	has_meaningful_text = node.node_value is not None and len(node.node_value) > 1

	return (
		node.is_indexable
		or bool(node.children_nodes)
		or node.is_shadow_host
		or node.shadow_root_type is not None
		or node.tag_name in KEPT_SUBTREE_TAGS
		or has_meaningful_text
	)


def prune_tree(root: EnhancedDOMTreeNode) -> bool:
	"""
	Remove dead branches bottom-up. Returns whether `root` itself survives.

	A node survives if it is indexable, keeps at least one child, hosts or is a shadow root, or
	carries text longer than one character. Disallowed tags are removed regardless of children.
	`option` and `optgroup` subtrees are left untouched.
	"""
	# Post-order without recursion: parents are processed after all of their children
	order: list[EnhancedDOMTreeNode] = []
	stack = [root]
	while stack:
		node = stack.pop()
		if node.tag_name in KEPT_SUBTREE_TAGS:
			continue
		order.append(node)
		stack.extend(node.children_nodes)

	for node in reversed(order):
		node.children_nodes = [child for child in node.children_nodes if _survives(child)]

	return _survives(root)
