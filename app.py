"""
FIFO Paging Simulator — Dashboard

Interactive front end for the demand-paging simulation:
    - Several logical processes share one pool of physical frames
    - Each tick one process is granted the CPU and issues a burst of accesses
    - Page faults take a free frame, or evict the oldest allocation (FIFO)

Built with Streamlit for the web interface and Plotly for visualizations.
Run with:  streamlit run app.py
"""

# =============================================================================
# IMPORTS
# =============================================================================

import streamlit as st                       # Web application framework

from charts import frame_map_figure, process_figure, totals_figure
from config import (
    DEFAULT_ACCESS_PER_TICK,
    DEFAULT_MAX_VIRTUAL_PAGES,
    DEFAULT_PROCESS_COUNT,
    ReplacementPolicy,
    SimulationConfig,
)
from errors import InvariantViolation, SimulationError
from simulation import Simulation


# =============================================================================
# PAGE SETUP
# =============================================================================

st.set_page_config(page_title="FIFO Paging Simulator", layout="wide")
st.title("FIFO Paging Simulator — Frames, Page Tables & Handshakes")

# -----------------------------------------------------------------------------
# SIDEBAR - Simulation Settings
# -----------------------------------------------------------------------------

st.sidebar.header("Simulation Settings")

total_frames = st.sidebar.number_input("Physical frames", min_value=1, max_value=4096, value=64, step=8)
max_pages = st.sidebar.number_input(
    "Virtual pages per process", min_value=1, max_value=4096, value=DEFAULT_MAX_VIRTUAL_PAGES
)
access_per_tick = st.sidebar.number_input(
    "Accesses per tick", min_value=1, max_value=100, value=DEFAULT_ACCESS_PER_TICK
)
process_count = st.sidebar.number_input(
    "Processes", min_value=1, max_value=64, value=DEFAULT_PROCESS_COUNT
)
tick_limit = st.sidebar.number_input("Tick limit", min_value=1, max_value=100000, value=1000, step=100)
policy = st.sidebar.selectbox("Replacement Policy", options=list(ReplacementPolicy.SUPPORTED))
seed = st.sidebar.number_input("Seed", min_value=0, value=42)

config = SimulationConfig(
    total_frames=int(total_frames),
    max_virtual_pages=int(max_pages),
    access_per_tick=int(access_per_tick),
    process_count=int(process_count),
    tick_limit=int(tick_limit),
    policy=policy,
    seed=int(seed),
)

# -----------------------------------------------------------------------------
# SESSION STATE - Simulation Persistence
# -----------------------------------------------------------------------------


def new_simulation(cfg: SimulationConfig) -> Simulation:
    old = st.session_state.get("simulation")
    if old is not None:
        old.close()
    sim = Simulation(cfg)
    sim.start()
    st.session_state.simulation = sim
    st.session_state.halted = None
    return sim


try:
    if "simulation" not in st.session_state or st.session_state.simulation.config != config:
        new_simulation(config)
except SimulationError as e:
    st.error(str(e))
    st.stop()

sim: Simulation = st.session_state.simulation

st.sidebar.markdown("---")
st.sidebar.header("Run")

ticks_per_run = st.sidebar.slider("Ticks per run", min_value=1, max_value=500, value=50)

if st.sidebar.button("Reset Simulation"):
    sim = new_simulation(config)
    st.sidebar.success("Simulation reset")

# =============================================================================
# MAIN CONTENT AREA - Two Column Layout
# =============================================================================

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("Controls")

    def advance(ticks):
        remaining = config.tick_limit - sim.scheduler.tick
        if remaining <= 0:
            st.warning("Tick limit reached")
            return
        try:
            sim.run(min(ticks, remaining))
        except InvariantViolation as e:
            st.session_state.halted = e

    if st.session_state.halted is None:
        if st.button("Step Once"):
            advance(1)
        if st.button(f"Run {ticks_per_run} ticks"):
            advance(ticks_per_run)

    halted = st.session_state.halted
    if halted is not None:
        st.error(f"Simulation halted: {halted}")
        st.json(halted.diagnostic)

    snapshot = sim.snapshot()

    st.metric("Tick", f"{snapshot.tick} / {config.tick_limit}")
    st.metric("Memory used", f"{snapshot.memory_usage * 100:.1f}%")
    st.metric("FIFO queue length", snapshot.fifo_length)

    # Most recent events, newest first
    st.subheader("Event Log")
    for ev in snapshot.events[-20:][::-1]:
        st.write(ev)

with col2:
    st.subheader("Physical Memory Map (FIFO)")
    st.plotly_chart(frame_map_figure(snapshot), use_container_width=True)

    st.subheader("Process Status Board")
    st.table([
        {
            "pid": f"P{r.pid}",
            "state": r.state,
            "cpu_burst": r.cpu_burst,
            "faults": r.fault_count,
            "evictions": r.eviction_count,
            "frames": r.frame_share,
        }
        for r in snapshot.per_process
    ])
    st.plotly_chart(process_figure(snapshot), use_container_width=True)

    st.subheader("Statistics")
    totals = snapshot.totals
    st.metric("Page Accesses", totals.accesses)
    st.metric("Page Faults", totals.faults)
    st.metric("Hit Ratio", totals.hit_ratio)
    if totals.protocol_errors or totals.timeouts:
        st.warning(
            f"{totals.protocol_errors} rejected dispatches, {totals.timeouts} workers removed"
        )
    st.plotly_chart(totals_figure(snapshot), use_container_width=True)

st.markdown("---")
st.markdown(
    "**Usage tips**:\n"
    "- With few frames and many processes, watch evictions hit the oldest frame first.\n"
    "- The red cross on the memory map marks the frame taken by the latest eviction."
)
