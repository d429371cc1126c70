"""Tests for offset pagination helpers in overflow.services.pagination."""

from overflow.services.pagination import PageResult, has_next, skip_amount


class TestSkipAmount:
    def test_first_page_skips_nothing(self):
        assert skip_amount(1, 10) == 0

    def test_later_pages_skip_whole_pages(self):
        assert skip_amount(3, 20) == 40

    def test_pages_below_one_are_treated_as_first(self):
        assert skip_amount(0, 10) == 0
        assert skip_amount(-4, 10) == 0


class TestHasNext:
    def test_more_rows_than_consumed(self):
        assert has_next(total=25, skip=10, returned=10) is True

    def test_exactly_consumed_is_last_page(self):
        """total == skip + returned means nothing is left."""
        assert has_next(total=20, skip=10, returned=10) is False

    def test_short_last_page(self):
        assert has_next(total=23, skip=20, returned=3) is False

    def test_empty_result(self):
        assert has_next(total=0, skip=0, returned=0) is False


def test_page_result_unpacks_like_a_tuple():
    items, is_next, total = PageResult(["a"], True, 5)
    assert items == ["a"]
    assert is_next is True
    assert total == 5
