"""Tests for the playtime ticker."""

import pytest

from squeezesync.lib.playtime import format_time, near_track_end, tick
from squeezesync.lib.status import PlayerStatus


def playing(**kwargs):
    fields = {"mode": "play", "rate": 1, "duration": 200, "playtime": 10}
    fields.update(kwargs)
    return PlayerStatus(**fields)


class TestTick:

    def test_advances_while_playing(self):
        status = playing()
        seen = []
        for _ in range(5):
            update, _refresh = tick(status)
            seen.append(update.current)
        assert seen == [10, 11, 12, 13, 14]
        assert status.playtime == 15

    def test_payload(self):
        update, refresh = tick(playing(playtime=50))
        assert (update.current, update.duration, update.remaining) == (50, 200, -150)
        assert refresh is False

    def test_no_duration_means_no_remaining(self):
        update, _ = tick(playing(duration=0, playtime=30))
        assert update.remaining == 0

    def test_stop_forces_zero(self):
        status = playing(playtime=80)
        tick(status)
        status.mode = "stop"
        update, _ = tick(status)
        assert update.current == 0
        assert status.playtime == 0

    @pytest.mark.parametrize("mode, rate", [("pause", 1), ("play", 2), ("play", -1)])
    def test_no_interpolation(self, mode, rate):
        status = playing(mode=mode, rate=rate, playtime=40)
        tick(status)
        assert status.playtime == 40

    @pytest.mark.parametrize("playtime, expected", [
        (198, False), (199, True), (200, True), (202, True), (203, False),
    ])
    def test_refresh_near_track_end(self, playtime, expected):
        assert near_track_end(playing(playtime=playtime)) is expected

    def test_no_refresh_without_duration(self):
        assert near_track_end(playing(duration=0, playtime=0)) is False


@pytest.mark.parametrize("seconds, text", [
    (0, "0:00"), (5, "0:05"), (65, "1:05"), (3600, "1:00:00"),
    (3725, "1:02:05"), (-150, "-2:30"), (None, "0:00"),
])
def test_format_time(seconds, text):
    assert format_time(seconds) == text
