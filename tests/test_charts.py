import pytest

from charts import frame_map_figure, process_figure, totals_figure
from stats import ProcessReport, Snapshot, Totals
from utils import FREE_COLOR, process_color


@pytest.fixture
def snapshot():
    return Snapshot(
        tick=7,
        per_process=[
            ProcessReport(pid=0, state="Ready", cpu_burst=4, fault_count=3, eviction_count=1,
                          frame_share=2),
            ProcessReport(pid=1, state="Ready", cpu_burst=9, fault_count=2, eviction_count=0,
                          frame_share=1),
        ],
        totals=Totals(accesses=10, hits=5, faults=5, evictions=1),
        frame_ownership=[0, 1, 0, None],
        last_victim=2,
        fifo_length=3,
        memory_usage=0.75,
    )


class TestFrameMap:

    def test_one_marker_per_frame(self, snapshot) -> None:
        fig = frame_map_figure(snapshot, per_row=2)
        frames = fig.data[0]
        assert list(frames.x) == [0, 1, 0, 1]
        assert list(frames.y) == [0, 0, 1, 1]
        assert list(frames.marker.color) == [
            process_color(0), process_color(1), process_color(0), FREE_COLOR,
        ]
        assert frames.hovertext[3] == "F3: Free"

    def test_last_victim_marked(self, snapshot) -> None:
        fig = frame_map_figure(snapshot, per_row=2)
        assert len(fig.data) == 2
        assert list(fig.data[1].x) == [0]
        assert list(fig.data[1].y) == [1]

    def test_no_marker_without_eviction(self, snapshot) -> None:
        quiet = Snapshot(tick=0, per_process=[], totals=Totals(), frame_ownership=[None] * 4)
        assert len(frame_map_figure(quiet).data) == 1


def test_process_figure(snapshot) -> None:
    fig = process_figure(snapshot)
    assert [trace.name for trace in fig.data] == ["Faults", "Evictions", "Frames held"]
    assert list(fig.data[0].y) == [3, 2]
    assert list(fig.data[2].y) == [2, 1]


def test_totals_figure(snapshot) -> None:
    fig = totals_figure(snapshot)
    assert list(fig.data[0].y) == [5, 5, 1]
