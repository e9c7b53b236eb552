"""Tests for pixel-level block detection."""

import numpy as np

from blackout_breaker.block_scanner import find_candidates, sample_density, scan
from blackout_breaker.models import PixelBuffer, Rectangle


class TestSampleDensity:
    def test_solid_block(self):
        mask = np.ones((20, 40), dtype=bool)
        assert sample_density(mask, Rectangle(0, 0, 39, 19)) == 1.0

    def test_half_block(self):
        mask = np.zeros((20, 40), dtype=bool)
        mask[:, :20] = True
        density = sample_density(mask, Rectangle(0, 0, 39, 19))
        assert density == 0.5


class TestScan:
    def test_single_block(self, make_buffer):
        """A solid block is found within one grid step of its true bounds."""
        buffer = make_buffer(200, 100, [(10, 10, 70, 40)])
        rects = scan(buffer)
        assert len(rects) == 1
        rect = rects[0]
        assert abs(rect.x - 10) <= 5
        assert abs(rect.y - 10) <= 5
        assert abs(rect.width - 60) <= 5
        assert abs(rect.height - 30) <= 5

    def test_white_buffer(self, make_buffer):
        """No black pixels is a normal, empty result."""
        assert scan(make_buffer(120, 80)) == []

    def test_fully_black_buffer(self, make_buffer):
        """A black page is one block bounded by the buffer edges."""
        rects = scan(make_buffer(120, 60, [(0, 0, 120, 60)]))
        assert rects == [Rectangle(0, 0, 119, 59)]

    def test_too_narrow(self, make_buffer):
        assert scan(make_buffer(100, 100, [(10, 10, 25, 60)])) == []

    def test_too_short(self, make_buffer):
        assert scan(make_buffer(100, 100, [(10, 10, 80, 16)])) == []

    def test_minimum_size_is_kept(self, make_buffer):
        """Width 20 and height 8 (max - min) pass the size filter."""
        rects = scan(make_buffer(100, 100, [(10, 10, 31, 19)]))
        assert rects == [Rectangle(10, 10, 20, 8)]

    def test_checkerboard_rejected(self, make_buffer):
        buffer = make_buffer(200, 200)
        samples = buffer.samples.copy()
        for yy in range(25):
            for xx in range(25):
                if (xx + yy) % 2 == 0:
                    samples[50 + yy, 50 + xx, :3] = 0
        assert scan(PixelBuffer(samples=samples)) == []

    def test_sparse_block_rejected_by_density(self, make_buffer):
        """Rows that pass the stride-3 row check can still fail the density check."""
        samples = make_buffer(120, 80).samples.copy()
        samples[20, 20:80, :3] = 0
        for x in range(20, 80, 3):
            samples[21:50, x, :3] = 0
        buffer = PixelBuffer(samples=samples)
        assert find_candidates(buffer) == []
        assert scan(buffer) == []

    def test_dark_grey_is_not_black(self, make_buffer):
        samples = make_buffer(100, 60).samples.copy()
        samples[10:40, 10:80, :3] = 40
        assert scan(PixelBuffer(samples=samples)) == []

    def test_threshold_is_configurable(self, make_buffer):
        samples = make_buffer(100, 60).samples.copy()
        samples[10:40, 10:80, :3] = 40
        rects = scan(PixelBuffer(samples=samples), black_threshold=50)
        assert len(rects) == 1

    def test_one_candidate_per_block(self, make_buffer):
        """Grid points inside a detected block are not reused as seeds."""
        buffer = make_buffer(200, 120, [(13, 17, 113, 67)])
        candidates = find_candidates(buffer)
        assert candidates == [Rectangle(13, 17, 99, 49)]

    def test_nearby_blocks_merge(self, make_buffer):
        """Blocks 6 pixels apart come back as one region."""
        buffer = make_buffer(200, 80, [(20, 20, 80, 40), (85, 20, 140, 40)])
        assert len(find_candidates(buffer)) == 2
        assert scan(buffer) == [Rectangle(20, 20, 119, 19)]

    def test_distant_blocks_stay_separate(self, make_buffer):
        buffer = make_buffer(300, 200, [(150, 20, 250, 40), (20, 100, 120, 130)])
        rects = scan(buffer)
        assert rects == [Rectangle(150, 20, 99, 19), Rectangle(20, 100, 99, 29)]

    def test_noise_between_sampled_pixels_tolerated(self, make_buffer):
        """A light pixel off the stride-3 sample columns does not cut the block."""
        samples = make_buffer(200, 100).samples.copy()
        samples[10:40, 10:70, :3] = 0
        samples[30, 11, :3] = 255
        rects = scan(PixelBuffer(samples=samples))
        assert rects == [Rectangle(10, 10, 59, 29)]

    def test_block_touching_buffer_corner(self, make_buffer):
        """Growth stops at the right and bottom edges without wrapping."""
        buffer = make_buffer(100, 60, [(60, 30, 100, 60)])
        assert scan(buffer) == [Rectangle(60, 30, 39, 29)]

    def test_block_touching_buffer_origin(self, make_buffer):
        buffer = make_buffer(100, 60, [(0, 0, 40, 20)])
        assert scan(buffer) == [Rectangle(0, 0, 39, 19)]
