import numpy as np
import pytest

from core.services import BufferedLandmarkSource, StaticLandmarkSource, parse_landmark_message


def _frame(points, mode="FREE"):
    return "\n".join(f"{mode}|{i}|{x}|{y}|{z}" for i, (x, y, z) in points.items())


def _full(value):
    return {i: (value + i, value, -value) for i in range(33)}


class TestParseLandmarkMessage:

    def test_parses_free_lines(self):
        parsed = parse_landmark_message("FREE|23|-0.1|0|0\nFREE|24|0.1|0|0")
        assert [i for i, _ in parsed] == [23, 24]
        np.testing.assert_allclose(parsed[1][1], [0.1, 0.0, 0.0])

    def test_filters_by_mode(self):
        message = "FREE|0|1|2|3\nANCHORED|1|4|5|6"
        assert [i for i, _ in parse_landmark_message(message)] == [0]
        assert [i for i, _ in parse_landmark_message(message, anchored=True)] == [1]

    def test_skips_bad_lines(self):
        message = "\n  \nFREE|0|1|2\nFREE|x|1|2|3\nFREE|2|a|b|c\nFREE|3|1|2|3\n"
        assert [i for i, _ in parse_landmark_message(message)] == [3]


class TestBufferedLandmarkSource:

    def test_no_snapshot_until_every_landmark_published(self):
        source = BufferedLandmarkSource()
        points = _full(0.0)
        del points[32]
        source.feed(_frame(points))
        assert source.current_snapshot() is None

        source.push(32, (1.0, 2.0, 3.0))
        snapshot = source.current_snapshot()
        assert snapshot is not None
        assert snapshot.is_complete()

    def test_averages_samples(self):
        source = BufferedLandmarkSource(samples_per_pose=2)
        assert source.feed(_frame(_full(0.0))) == 33
        assert source.current_snapshot() is None

        source.feed(_frame(_full(1.0)))
        snapshot = source.current_snapshot()
        np.testing.assert_allclose(snapshot[5], [5.5, 0.5, -0.5])

    def test_multiplier(self):
        source = BufferedLandmarkSource(multiplier=2.0)
        source.feed(_frame(_full(1.0)))
        np.testing.assert_allclose(source.current_snapshot()[0], [2.0, 2.0, -2.0])

    def test_out_of_range_index_ignored(self):
        source = BufferedLandmarkSource(landmark_count=2)
        source.feed("FREE|0|0|0|0\nFREE|7|1|1|1\nFREE|1|1|0|0")
        assert sorted(source.current_snapshot()) == [0, 1]

    def test_anchored_source(self):
        source = BufferedLandmarkSource(landmark_count=1, anchored=True)
        assert source.feed("FREE|0|1|1|1") == 0
        assert source.feed("ANCHORED|0|2|2|2") == 1
        np.testing.assert_allclose(source.current_snapshot()[0], [2.0, 2.0, 2.0])

    def test_clear(self):
        source = BufferedLandmarkSource(landmark_count=1)
        source.push(0, (1.0, 1.0, 1.0))
        source.clear()
        assert source.current_snapshot() is None

    def test_invalid_sample_count(self):
        with pytest.raises(ValueError):
            BufferedLandmarkSource(samples_per_pose=0)


def test_static_source():
    assert StaticLandmarkSource().current_snapshot() is None


def test_parser_skips_non_finite_lines():
    message = "FREE|0|nan|0|0\nFREE|1|inf|0|0\nFREE|2|1|2|3"
    assert [i for i, _ in parse_landmark_message(message)] == [2]
