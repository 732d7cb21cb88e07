import logging

from dom_indexer.dom.views import DOMRect, EnhancedDOMTreeNode

logger = logging.getLogger(__name__)

DEFAULT_OCCLUSION_THRESHOLD = 0.8


def filter_to_viewport(root: EnhancedDOMTreeNode, viewport: DOMRect) -> int:
	"""Force every node whose bounds miss the viewport invisible. Returns how many were hidden.

	Nodes without layout geometry are left alone; they stay in the tree for pruning.
	"""
	hidden = 0
	for node in root.walk():
		bounds = node.bounds
		if bounds is None or not node.is_visible:
			continue
		if not viewport.intersects(bounds):
			node.is_visible = False
			hidden += 1

	logger.debug(f'Viewport filter hid {hidden} nodes outside {viewport}')
	return hidden


class PaintOrderRemover:
	"""
	Marks interactive nodes that are covered by another interactive node painted on top of them.

	Only visible, interactive nodes with both bounds and a paint order take part, so the
	pairwise scan stays bounded by the interactive subset instead of the whole tree.
	"""

	def __init__(self, root: EnhancedDOMTreeNode, threshold: float | None = None):
		self.root = root
		self.threshold = DEFAULT_OCCLUSION_THRESHOLD if threshold is None else threshold

	def _collect_candidates(self) -> list[tuple[EnhancedDOMTreeNode, DOMRect, int]]:
		candidates = []
		for node in self.root.walk():
			if not (node.is_interactive and node.is_visible):
				continue
			bounds, paint_order = node.bounds, node.paint_order
			if bounds is None or paint_order is None or not bounds.has_area:
				continue
			candidates.append((node, bounds, paint_order))
		return candidates

	def calculate_paint_order(self) -> int:
		"""Mark obscured nodes in place. Returns the number of nodes marked."""
		candidates = self._collect_candidates()
		if not candidates:
			return 0

		# Highest paint order first, so everything that can cover candidate i precedes it
		candidates.sort(key=lambda item: item[2], reverse=True)

		obscured = 0
		for i, (node, bounds, paint_order) in enumerate(candidates):
			for _, other_bounds, other_paint_order in candidates[:i]:
				if other_paint_order <= paint_order:
					continue
				if bounds.coverage_by(other_bounds) >= self.threshold:
					node.is_obscured = True
					obscured += 1
					break

		logger.debug(f'Paint order: {obscured} of {len(candidates)} interactive nodes are obscured')
		return obscured
