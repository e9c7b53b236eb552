"""Tests for assigning hidden text fragments to regions."""

import math

import pytest

from blackout_breaker.models import HiddenText, PageTransform, Rectangle, Region, TextFragment
from blackout_breaker.text_associator import (
    associate, fragment_box, is_recoverable, sort_reading_order,
)


IDENTITY = PageTransform.scaled(1.0)


def _region(x=50, y=50, width=100, height=20, page_num=1) -> Region:
    return Region(page_num=page_num, rect=Rectangle(x, y, width, height))


def _texts(region: Region) -> list[str]:
    return [h.text for h in region.hidden_text]


class TestIsRecoverable:
    @pytest.mark.parametrize("text", ["", "   ", "1111", " 1111 ", "\t1111\n"])
    def test_excluded(self, text):
        assert not is_recoverable(TextFragment(text, 0, 0, 12, index=0))

    @pytest.mark.parametrize("text", ["Secret", "11111", "111", "John Doe"])
    def test_included(self, text):
        assert is_recoverable(TextFragment(text, 0, 0, 12, index=0))


class TestFragmentBox:
    def test_box_extends_up_from_baseline(self):
        fragment = TextFragment("Secret", 55, 65, 12, index=0, width=40)
        assert fragment_box(fragment, IDENTITY) == (55, 53, 95, 65)

    def test_scaled(self):
        fragment = TextFragment("Secret", 10, 20, 12, index=0, width=40)
        assert fragment_box(fragment, PageTransform.scaled(1.5)) == (15, 12, 75, 30)

    def test_fallback_width(self):
        """Without a width the box is len(text) * font size * 0.6 wide."""
        fragment = TextFragment("abcd", 10, 20, 10, index=0)
        left, top, right, bottom = fragment_box(fragment, PageTransform.scaled(2.0))
        assert (left, top, bottom) == (20, 20, 40)
        assert right - left == pytest.approx(48)

    def test_zero_width_uses_fallback(self):
        fragment = TextFragment("abcd", 0, 20, 10, index=0, width=0)
        left, _, right, _ = fragment_box(fragment, IDENTITY)
        assert right - left == pytest.approx(24)

    def test_custom_fallback_ratio(self):
        fragment = TextFragment("abcd", 0, 20, 10, index=0)
        left, _, right, _ = fragment_box(fragment, IDENTITY, fallback_width_ratio=0.5)
        assert right - left == pytest.approx(20)

    def test_zero_font_size_defaults_to_twelve(self):
        fragment = TextFragment("ab", 0, 20, 0, index=0, width=10)
        _, top, _, bottom = fragment_box(fragment, IDENTITY)
        assert bottom - top == 12

    def test_non_finite(self):
        fragment = TextFragment("Secret", math.nan, 65, 12, index=0, width=40)
        assert fragment_box(fragment, IDENTITY) is None


class TestSortReadingOrder:
    def _item(self, text, x, y):
        return HiddenText(text, x, y, 10, 10, 10, index=0)

    def test_same_line_by_x(self):
        items = [self._item("world", 100, 65), self._item("hello", 55, 67)]
        assert [h.text for h in sort_reading_order(items)] == ["hello", "world"]

    def test_lines_top_to_bottom(self):
        items = [self._item("second", 10, 100), self._item("first", 200, 70)]
        assert [h.text for h in sort_reading_order(items)] == ["first", "second"]

    def test_line_tolerance(self):
        """Baselines 5 or more pixels apart are separate lines."""
        items = [self._item("right", 100, 60), self._item("left", 10, 65)]
        assert [h.text for h in sort_reading_order(items)] == ["right", "left"]
        assert [h.text for h in sort_reading_order(items, line_tolerance=6)] == ["left", "right"]


class TestAssociate:
    def test_secret_recovered_sentinel_dropped(self):
        fragments = [
            TextFragment("Secret", 55, 65, 12, index=0, width=40),
            TextFragment("1111", 100, 65, 12, index=1),
        ]
        [region] = associate([_region()], fragments, IDENTITY)
        assert _texts(region) == ["Secret"]

    def test_hidden_text_in_raster_space(self):
        region = _region(x=75, y=75, width=150, height=30)
        fragment = TextFragment("Secret", 55, 65, 12, index=4, width=40, font_name="Helv")
        [result] = associate([region], [fragment], PageTransform.scaled(1.5))
        [hidden] = result.hidden_text
        assert (hidden.x, hidden.y) == (82.5, 97.5)
        assert hidden.font_size == 18
        assert hidden.width == 60
        assert hidden.index == 4
        assert hidden.font_name == "Helv"

    def test_half_overlap_is_enough(self):
        fragment = TextFragment("Secret", 130, 65, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], IDENTITY)
        assert _texts(region) == ["Secret"]

    def test_less_than_half_overlap(self):
        fragment = TextFragment("Secret", 131, 65, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], IDENTITY)
        assert region.hidden_text == ()

    def test_min_overlap_configurable(self):
        fragment = TextFragment("Secret", 131, 65, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], IDENTITY, min_overlap=0.4)
        assert _texts(region) == ["Secret"]

    def test_vertical_centre_outside(self):
        """Overlapping the bottom edge is not enough when the centre is below it."""
        fragment = TextFragment("Secret", 55, 78, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], IDENTITY)
        assert region.hidden_text == ()

    def test_reading_order(self):
        fragments = [
            TextFragment("world", 100, 65, 12, index=0, width=30),
            TextFragment("hello", 55, 66, 12, index=1, width=30),
        ]
        [region] = associate([_region()], fragments, IDENTITY)
        assert _texts(region) == ["hello", "world"]
        assert region.text == "hello world"

    def test_multi_line_order(self):
        region = _region(width=200, height=60)
        fragments = [
            TextFragment("second", 55, 100, 12, index=0, width=40),
            TextFragment("first", 150, 70, 12, index=1, width=40),
        ]
        [result] = associate([region], fragments, IDENTITY)
        assert _texts(result) == ["first", "second"]

    def test_source_index_assigned_once(self):
        fragments = [
            TextFragment("Secret", 55, 65, 12, index=7, width=40),
            TextFragment("Secret", 60, 65, 12, index=7, width=40),
        ]
        [region] = associate([_region()], fragments, IDENTITY)
        assert len(region.hidden_text) == 1

    def test_disjoint_across_regions(self):
        regions = [_region(), _region(y=100), _region(x=200, y=50)]
        fragments = [
            TextFragment(f"w{i}", x, y, 12, index=i, width=30)
            for i, (x, y) in enumerate([
                (55, 65), (90, 65), (55, 115), (210, 66), (240, 64), (400, 400)
            ])
        ]
        results = associate(regions, fragments, IDENTITY)
        indices = [h.index for r in results for h in r.hidden_text]
        assert len(indices) == len(set(indices)) == 5
        assert [_texts(r) for r in results] == [["w0", "w1"], ["w2"], ["w3", "w4"]]

    def test_contested_fragment_goes_to_lower_index_on_tie(self):
        regions = [_region(), _region(x=40, y=45, width=120, height=40)]
        fragment = TextFragment("Secret", 55, 65, 12, index=0, width=40)
        first, second = associate(regions, [fragment], IDENTITY)
        assert _texts(first) == ["Secret"]
        assert second.hidden_text == ()

    def test_contested_fragment_goes_to_larger_vertical_overlap(self):
        regions = [_region(), _region(x=40, y=45, width=120, height=40)]
        fragment = TextFragment("Secret", 55, 72, 12, index=0, width=40)
        first, second = associate(regions, [fragment], IDENTITY)
        assert first.hidden_text == ()
        assert _texts(second) == ["Secret"]

    def test_malformed_fragment_skipped(self):
        fragments = [
            TextFragment("Bad", math.inf, 65, 12, index=0, width=40),
            TextFragment("Secret", 55, 65, 12, index=1, width=40),
        ]
        [region] = associate([_region()], fragments, IDENTITY)
        assert _texts(region) == ["Secret"]

    def test_non_finite_transform(self):
        fragment = TextFragment("Secret", 55, 65, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], PageTransform(math.nan, 1.0))
        assert region.hidden_text == ()

    def test_inputs_not_modified(self):
        regions = [_region()]
        fragment = TextFragment("Secret", 55, 65, 12, index=0, width=40)
        [result] = associate(regions, [fragment], IDENTITY)
        assert regions[0].hidden_text == ()
        assert result is not regions[0]
        assert result.rect == regions[0].rect

    def test_no_regions(self):
        fragment = TextFragment("Secret", 55, 65, 12, index=0, width=40)
        assert associate([], [fragment], IDENTITY) == []

    def test_bottom_left_origin_layout(self):
        """Fragments in PDF user space (y up) land in the same raster box."""
        page_height = 200
        transform = PageTransform.flipped(1.0, page_height)
        fragment = TextFragment("Secret", 55, page_height - 65, 12, index=0, width=40)
        [region] = associate([_region()], [fragment], transform)
        assert _texts(region) == ["Secret"]
