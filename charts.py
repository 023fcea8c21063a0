# charts.py

"""
Plotly figures for the dashboard, built from a Snapshot only.
"""

import plotly.graph_objects as go

from stats import Snapshot
from utils import process_color

FRAMES_PER_ROW = 32


def frame_map_figure(snapshot: Snapshot, per_row: int = FRAMES_PER_ROW) -> go.Figure:
    """
    Physical memory map: one square per frame, colored by owning process,
    with the latest eviction victim marked.
    """
    x, y, colors, text = [], [], [], []
    for frame, pid in enumerate(snapshot.frame_ownership):
        x.append(frame % per_row)
        y.append(frame // per_row)
        colors.append(process_color(pid))
        text.append(f"F{frame}: " + (f"P{pid}" if pid is not None else "Free"))

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=x,
        y=y,
        mode="markers",
        marker=dict(symbol="square", size=14, color=colors),
        hovertext=text,
        hoverinfo="text",
        name="frames",
    ))

    victim = snapshot.last_victim
    if victim is not None and victim < len(snapshot.frame_ownership):
        fig.add_trace(go.Scatter(
            x=[victim % per_row],
            y=[victim // per_row],
            mode="markers",
            marker=dict(symbol="x", size=12, color="crimson"),
            hovertext=[f"Last victim: F{victim}"],
            hoverinfo="text",
            name="last victim",
        ))

    rows = max(1, -(-len(snapshot.frame_ownership) // per_row))
    fig.update_layout(
        height=60 + 22 * rows,
        showlegend=False,
        xaxis=dict(showticklabels=False, showgrid=False, zeroline=False),
        yaxis=dict(showticklabels=False, showgrid=False, zeroline=False, autorange="reversed"),
        margin=dict(l=10, r=10, t=10, b=10),
    )
    return fig


def process_figure(snapshot: Snapshot) -> go.Figure:
    """Faults, evictions and held frames per process."""
    labels = [f"P{r.pid}" for r in snapshot.per_process]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=labels, y=[r.fault_count for r in snapshot.per_process], name="Faults"))
    fig.add_trace(go.Bar(x=labels, y=[r.eviction_count for r in snapshot.per_process],
                         name="Evictions"))
    fig.add_trace(go.Bar(
        x=labels,
        y=[r.frame_share for r in snapshot.per_process],
        name="Frames held",
        marker_color=[process_color(r.pid) for r in snapshot.per_process],
    ))
    fig.update_layout(height=320, barmode="group", title="Per-process memory activity")
    return fig


def totals_figure(snapshot: Snapshot) -> go.Figure:
    totals = snapshot.totals
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=["Hits", "Faults", "Evictions"],
        y=[totals.hits, totals.faults, totals.evictions],
    ))
    fig.update_layout(height=300, title="Hits vs Faults")
    return fig
