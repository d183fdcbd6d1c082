import logging
from typing import List, Optional, Union

from webqa_casegen.data.test_structures import (CATEGORY_ORDER, Cursor,
                                                ElementType, IncrementalBatch,
                                                PageSnapshot, ProcessedCounts,
                                                SessionState, TestCase)
from webqa_casegen.generator.templates import (build_element_case,
                                               build_overview_cases)


class TestCaseSynthesizer:
    """Derives ordered test cases from a page snapshot.

    Overview cases (page load / app launch and the count checks) come first,
    then one case per element in category order: button, form, link, input,
    screen. Incremental mode walks the same sequence in batches, so the union
    of the first batch and every later batch equals :meth:`synthesize_full`.
    """

    __test__ = False

    def __init__(self, category_order: Optional[List[ElementType]] = None):
        self.category_order = list(category_order or CATEGORY_ORDER)

    def synthesize_first(self, snapshot: PageSnapshot) -> List[TestCase]:
        snapshot = PageSnapshot.from_raw(snapshot)
        return build_overview_cases(snapshot)

    def synthesize_full(self, snapshot: PageSnapshot) -> List[TestCase]:
        snapshot = PageSnapshot.from_raw(snapshot)
        cases = build_overview_cases(snapshot)
        for element_type in self.category_order:
            for index in range(snapshot.count(element_type)):
                cases.append(build_element_case(snapshot, element_type, index))
        logging.info(f"Synthesized {len(cases)} test cases for {snapshot.url}")
        return cases

    def initial_cursor(self, snapshot: PageSnapshot) -> Cursor:
        return self.next_cursor(snapshot, ProcessedCounts())

    def next_cursor(self, snapshot: PageSnapshot, counts: ProcessedCounts,
                    start: Optional[ElementType] = None) -> Cursor:
        """First category (from ``start``, wrapping) that still has unprocessed elements."""
        for element_type in self._rotation(start):
            if counts.get(element_type) < snapshot.count(element_type):
                return Cursor(element_type=element_type, element_index=counts.get(element_type))
        return Cursor()

    def synthesize_incremental(
        self,
        state: SessionState,
        batch_size: int,
        element_type: Optional[Union[ElementType, str]] = None,
        element_index: Optional[int] = None,
    ) -> IncrementalBatch:
        """Generate the next batch of element cases for a session.

        Args:
            state: Current session state; not modified.
            batch_size: Number of cases to emit; fewer only when elements run out.
            element_type: Category to continue from; defaults to the session cursor.
            element_index: Requested index in that category. Clamped to the
                processed count so processed elements are never re-emitted and
                none are skipped.

        Returns:
            IncrementalBatch with the new cases, advanced cursor and counts.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        snapshot = state.snapshot
        counts = state.processed_counts
        start = ElementType(element_type) if element_type else state.cursor.element_type

        if start is not None and element_index is not None and element_index != counts.get(start):
            logging.debug(
                f"Requested {start} index {element_index} differs from processed count "
                f"{counts.get(start)}; continuing from the processed count"
            )

        new_cases: List[TestCase] = []
        last_type = start
        for category in self._rotation(start):
            while counts.get(category) < snapshot.count(category) and len(new_cases) < batch_size:
                new_cases.append(build_element_case(snapshot, category, counts.get(category)))
                counts = counts.incremented(category)
                last_type = category
            if len(new_cases) >= batch_size:
                break

        cursor = self.next_cursor(snapshot, counts, start=last_type)
        return IncrementalBatch(
            new_cases=new_cases,
            cursor=cursor,
            processed_counts=counts,
            has_more=cursor.element_type is not None,
        )

    def _rotation(self, start: Optional[ElementType]) -> List[ElementType]:
        if start is None or start not in self.category_order:
            return list(self.category_order)
        position = self.category_order.index(start)
        return self.category_order[position:] + self.category_order[:position]


_default = TestCaseSynthesizer()


def synthesize_full(snapshot: PageSnapshot) -> List[TestCase]:
    return _default.synthesize_full(snapshot)


def synthesize_first(snapshot: PageSnapshot) -> List[TestCase]:
    return _default.synthesize_first(snapshot)


def synthesize_incremental(state: SessionState, batch_size: int, element_type=None,
                           element_index=None) -> IncrementalBatch:
    return _default.synthesize_incremental(state, batch_size, element_type, element_index)
