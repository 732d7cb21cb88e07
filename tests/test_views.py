from dom_indexer.dom.views import DOMExtractionResult, DOMRect, SelectorMap, SimplifiedElement


def make_element(backend_node_id: int, x: float = 0, y: float = 0, tag: str = 'button') -> SimplifiedElement:
	return SimplifiedElement(backend_node_id=backend_node_id, tag=tag, bounds=DOMRect(x, y, 10, 10))


class TestDOMRect:
	"""Geometry helpers used by the filters."""

	def test_area_and_has_area(self):
		"""Zero or negative sizes have no usable area."""
		assert DOMRect(0, 0, 10, 5).area == 50
		assert DOMRect(0, 0, 10, 5).has_area
		assert not DOMRect(0, 0, 0, 5).has_area
		assert not DOMRect(0, 0, 10, -1).has_area

	def test_center_and_contains_point(self):
		"""Center lies inside the rectangle, edges are inclusive."""
		rect = DOMRect(10, 20, 100, 40)
		assert rect.center == (60, 40)
		assert rect.contains_point(10, 20)
		assert rect.contains_point(110, 60)
		assert not rect.contains_point(111, 60)

	def test_intersects_requires_overlap(self):
		"""Rectangles that only share an edge do not intersect."""
		a = DOMRect(0, 0, 100, 100)
		assert a.intersects(DOMRect(50, 50, 100, 100))
		assert not a.intersects(DOMRect(100, 0, 50, 50))
		assert not a.intersects(DOMRect(0, 200, 10, 10))

	def test_coverage_by(self):
		"""Coverage is intersection over this rectangle's own area."""
		inner = DOMRect(110, 108, 20, 14)
		outer = DOMRect(100, 100, 80, 30)
		assert inner.coverage_by(outer) == 1.0
		assert outer.coverage_by(inner) == (20 * 14) / (80 * 30)
		assert DOMRect(0, 0, 10, 10).coverage_by(DOMRect(5, 0, 10, 10)) == 0.5
		assert DOMRect(0, 0, 0, 0).coverage_by(outer) == 0.0

	def test_default_viewport(self):
		"""The fallback viewport sits at the origin."""
		assert DOMRect.default_viewport() == DOMRect(0, 0, 1280, 720)


class TestSelectorMap:
	"""The index tables are always built together and stay consistent."""

	def test_indices_are_contiguous_from_one(self):
		"""Elements are numbered 1..N in the order given."""
		selector_map = SelectorMap.from_ordered_elements([make_element(7), make_element(3), make_element(9)])

		assert [e.index for e in selector_map.ordered_elements] == [1, 2, 3]
		assert selector_map.index_to_backend_id == {1: 7, 2: 3, 3: 9}
		assert selector_map.get_backend_id(2) == 3
		assert selector_map.get_element_by_index(3).backend_node_id == 9
		assert selector_map.get_element_by_backend_id(7).index == 1
		assert selector_map.is_consistent()

	def test_duplicate_backend_ids_keep_first_position(self):
		"""A repeated backend id does not make the tables diverge in size."""
		selector_map = SelectorMap.from_ordered_elements([make_element(1, tag='a'), make_element(2), make_element(1)])

		assert len(selector_map) == 2
		assert selector_map.get_element_by_backend_id(1).tag == 'a'
		assert selector_map.is_consistent()

	def test_input_elements_are_not_mutated(self):
		"""Numbering works on copies so the caller's elements keep their old index."""
		original = make_element(5)
		SelectorMap.from_ordered_elements([original])
		assert original.index == 0

	def test_missing_lookups_return_none(self):
		"""Unknown indices and backend ids resolve to None."""
		selector_map = SelectorMap.from_ordered_elements([make_element(1)])
		assert selector_map.get_backend_id(0) is None
		assert selector_map.get_backend_id(2) is None
		assert selector_map.get_element_by_index(5) is None
		assert selector_map.get_element_by_backend_id(42) is None

	def test_empty_map(self):
		"""An empty map is consistent and reports itself empty."""
		selector_map = SelectorMap()
		assert selector_map.is_empty()
		assert len(selector_map) == 0
		assert selector_map.is_consistent()

	def test_inconsistent_tables_are_detected(self):
		"""A hand-built map with a gap in its indices fails the check."""
		element = make_element(1).model_copy(update={'index': 2})
		selector_map = SelectorMap(
			index_to_backend_id={2: 1},
			backend_id_to_element={1: element},
			ordered_elements=[element],
		)
		assert not selector_map.is_consistent()


class TestSerialization:
	"""Results are plain pydantic models."""

	def test_extraction_result_dumps_to_dict(self):
		"""model_dump produces nested plain data including rectangles."""
		result = DOMExtractionResult(
			selector_map=SelectorMap.from_ordered_elements([make_element(4, 10, 20)]),
			llm_representation='[1]<button @(10,20) />\n',
			url='https://example.com/',
			title='Example',
		)
		data = result.model_dump()

		assert data['url'] == 'https://example.com/'
		assert data['viewport'] == {'x': 0.0, 'y': 0.0, 'width': 1280.0, 'height': 720.0}
		assert data['selector_map']['ordered_elements'][0]['bounds'] == {'x': 10, 'y': 20, 'width': 10, 'height': 10}
		assert data['selector_map']['index_to_backend_id'] == {1: 4}
