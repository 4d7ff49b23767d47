import time

import pytest

from mica.models.graph import Camera, ViewState
from mica.services.view_writes import ViewWriteCoalescer


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _view(x: float) -> ViewState:
    return ViewState(camera=Camera(position=(x, 0.0, 0.0)))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def written() -> list:
    return []


@pytest.fixture()
def coalescer(clock, written) -> ViewWriteCoalescer:
    return ViewWriteCoalescer(
        lambda space_id, view: written.append((space_id, view.camera.position[0])),
        interval=0.4,
        clock=clock,
        use_timer=False,
    )


def test_first_write_is_immediate(coalescer, written):
    assert coalescer.submit("s1", _view(1)) is True
    assert written == [("s1", 1.0)]
    assert coalescer.pending == {}


def test_burst_inside_interval_is_coalesced(coalescer, clock, written):
    coalescer.submit("s1", _view(1))
    for x in range(2, 12):
        clock.advance(0.01)
        assert coalescer.submit("s1", _view(x)) is False

    assert written == [("s1", 1.0)]
    assert coalescer.pending["s1"].camera.position[0] == 11.0

    assert coalescer.flush() == 1
    assert written == [("s1", 1.0), ("s1", 11.0)]
    assert coalescer.writes == 2


def test_write_after_interval_goes_through(coalescer, clock, written):
    coalescer.submit("s1", _view(1))
    clock.advance(0.25)
    coalescer.submit("s1", _view(2))
    clock.advance(0.25)

    assert coalescer.submit("s1", _view(3)) is True
    assert written == [("s1", 1.0), ("s1", 3.0)]


def test_sustained_stream_is_rate_bounded(coalescer, clock, written):
    # 60 updates per second for two seconds
    for x in range(120):
        coalescer.submit("s1", _view(x))
        clock.advance(1 / 60)
    coalescer.flush()

    assert len(written) <= 2 / 0.4 + 2
    assert written[-1] == ("s1", 119.0)


def test_pending_writes_are_per_space(coalescer, clock, written):
    coalescer.submit("s1", _view(1))
    clock.advance(0.1)
    coalescer.submit("s1", _view(2))
    coalescer.submit("s2", _view(5))

    assert set(coalescer.pending) == {"s1", "s2"}
    assert coalescer.flush() == 2
    assert sorted(written[1:]) == [("s1", 2.0), ("s2", 5.0)]


def test_discard_drops_pending_write(coalescer, clock, written):
    coalescer.submit("s1", _view(1))
    clock.advance(0.1)
    coalescer.submit("s1", _view(2))

    coalescer.discard("s1")
    coalescer.discard("unknown")

    assert coalescer.flush() == 0
    assert written == [("s1", 1.0)]


def test_close_flushes_remaining_write(coalescer, clock, written):
    coalescer.submit("s1", _view(1))
    clock.advance(0.1)
    coalescer.submit("s1", _view(2))

    coalescer.close()

    assert written[-1] == ("s1", 2.0)
    assert coalescer.pending == {}


def test_timer_flushes_trailing_write(written):
    coalescer = ViewWriteCoalescer(
        lambda space_id, view: written.append((space_id, view.camera.position[0])),
        interval=0.05,
    )
    coalescer.submit("s1", _view(1))
    coalescer.submit("s1", _view(2))

    deadline = time.monotonic() + 2
    while len(written) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)

    assert written == [("s1", 1.0), ("s1", 2.0)]
    assert coalescer.pending == {}
    coalescer.close()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        ViewWriteCoalescer(lambda space_id, view: None, interval=0)
