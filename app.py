"""
Memory Allocation Visualizer — First/Best/Worst/Next Fit

This application provides an interactive simulation and visualization of
contiguous memory allocation:
    - Placement strategies (First-Fit, Best-Fit, Worst-Fit, Next-Fit)
    - Block splitting on allocation
    - Coalescing of adjacent free blocks on deallocation
    - External fragmentation reporting

The simulation itself lives in engine.py; this module only renders it.
Built with Streamlit for the web interface and Plotly for visualizations.

Run with: streamlit run app.py
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging                               # Engine logs go to the server console
import streamlit as st                       # Web application framework
import plotly.graph_objects as go            # Interactive plotting library
from typing import Dict                      # Type hints for better code clarity

from config import AllocationStrategy, SimulatorConfig
from engine import MemoryEngine
from exceptions import AllocatorError
from utils import block_colors

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

DEFAULTS = SimulatorConfig()


# =============================================================================
# STREAMLIT UI - Web Application Interface
# =============================================================================

# Configure the Streamlit page
st.set_page_config(page_title="Memory Allocation Visualizer", layout="wide")

# -----------------------------------------------------------------------------
# SIDEBAR NAVIGATION
# -----------------------------------------------------------------------------

# Page selector for switching between Simulator and Concepts views
page = st.sidebar.radio("Choose View", ["Simulator", "Concepts"])

# Main application title
st.title("Memory Allocation Visualizer — First, Best, Worst & Next Fit")

# =============================================================================
# CONCEPTS PAGE - Educational Content
# =============================================================================

if page == "Concepts":
    st.header("Operating System Concepts Used in This Project")
    st.markdown(
        """
        ## 📘 Key Concepts

        ### **1. Contiguous Allocation**
        - Memory is one address range split into *blocks*.
        - Each block is either free or owned by exactly one process.
        - Blocks always cover the whole range with no gaps or overlaps.

        ### **2. Placement Strategies**
        #### **First Fit**
        - Take the first free block that is large enough.
        #### **Best Fit**
        - Take the smallest free block that is large enough.
        #### **Worst Fit**
        - Take the largest free block, leaving the biggest remainder.
        #### **Next Fit**
        - Like First Fit, but resume scanning after the last allocation
          and wrap around to the start.

        ### **3. Block Splitting**
        - If the chosen block is larger than the request, it is split into an
          occupied part and a free remainder.

        ### **4. Coalescing**
        - When a process is deallocated, its block becomes free and is merged
          with any free neighbours.

        ### **5. External Fragmentation**
        - Free memory that exists but is not contiguous.
        - Reported here as the free space outside the largest free block,
          as a percentage of total memory.
        """
    )
    st.stop()  # Stop rendering - don't show simulator on Concepts page

# =============================================================================
# SIMULATOR PAGE - Main Interactive Interface
# =============================================================================

# -----------------------------------------------------------------------------
# SIDEBAR - Simulation Settings
# -----------------------------------------------------------------------------

st.sidebar.header("Simulation Settings")

# Total memory size input
total_memory = st.sidebar.number_input(
    "Total memory (MB)",
    min_value=1,
    max_value=DEFAULTS.max_memory,
    value=DEFAULTS.total_memory,
    step=64
)

# Placement strategy selection
strategy = st.sidebar.selectbox(
    "Allocation Strategy",
    options=list(AllocationStrategy.ALL),
    index=AllocationStrategy.ALL.index(DEFAULTS.strategy)
)

# -----------------------------------------------------------------------------
# SESSION STATE - Engine Persistence
# -----------------------------------------------------------------------------

# Initialize engine in session state (persists across Streamlit reruns)
if 'engine' not in st.session_state:
    st.session_state.engine = MemoryEngine.from_config(
        SimulatorConfig(total_memory=int(total_memory), strategy=strategy)
    )
else:
    # If memory size changed, create a new engine
    eng = st.session_state.engine
    if eng.total_memory != total_memory:
        st.session_state.engine = MemoryEngine.from_config(
            SimulatorConfig(total_memory=int(total_memory), strategy=strategy)
        )
        st.session_state.colors = {}

engine: MemoryEngine = st.session_state.engine
engine.set_strategy(strategy)

# Reset button to clear simulation state
if st.sidebar.button("Reset Simulation"):
    engine.reset()
    st.session_state.colors = {}
    st.sidebar.success("Simulation reset")

st.sidebar.markdown("---")

# -----------------------------------------------------------------------------
# SIDEBAR - Simulated Clock
# -----------------------------------------------------------------------------

st.sidebar.header("Clock")
st.sidebar.write(f"Current time: {engine.current_time}s")

if st.sidebar.button("Tick (+1s)"):
    engine.tick()
    st.rerun()

set_time = st.sidebar.number_input("Set time (s)", min_value=0, value=engine.current_time)
if st.sidebar.button("Set Clock"):
    try:
        engine.advance_clock(int(set_time))
        st.rerun()
    except AllocatorError as e:
        st.sidebar.error(str(e))

# =============================================================================
# MAIN CONTENT AREA - Two Column Layout
# =============================================================================

col1, col2 = st.columns([1, 2])

# -----------------------------------------------------------------------------
# LEFT COLUMN - Process Creation, Statistics and Event Log
# -----------------------------------------------------------------------------

with col1:
    st.subheader("Create Process")

    with st.form("create_process", clear_on_submit=True):
        name = st.text_input("Process name", placeholder="Enter process name")
        size = st.number_input("Size (MB)", min_value=1, value=128, step=1)
        submitted = st.form_submit_button("Create Process")

    if submitted:
        try:
            process = engine.create_process(name, int(size))
            block = engine.allocate(process)
            st.success(f"Allocated {process.name} at [{block.start}-{block.end}]")
        except AllocatorError as e:
            st.error(str(e))

    # ----- Statistics Display -----
    st.subheader("Memory Statistics")
    stats: Dict[str, float] = engine.get_memory_stats()

    st.progress(min(1.0, stats['used'] / 100.0))
    st.metric("Used", f"{stats['used']:.1f}%")
    st.metric("Free", f"{stats['free']:.1f}%")
    st.metric("Fragmentation", f"{stats['fragmented']:.1f}%")
    st.metric("Active Processes", stats['active_processes'])

    # Display event log (most recent events, newest first)
    st.subheader("Event Log")
    for ev in engine.event_log[-DEFAULTS.event_log_limit:][::-1]:
        st.write(ev)

# -----------------------------------------------------------------------------
# RIGHT COLUMN - Visualizations
# -----------------------------------------------------------------------------

with col2:
    # ----- Memory Blocks Visualization -----
    st.subheader("Memory Blocks")
    snapshot = engine.snapshot()

    # Keep one color per process across reruns
    colors_by_process = st.session_state.setdefault('colors', {})
    colors = block_colors(snapshot['blocks'], colors_by_process)

    # One horizontal stacked segment per block, width proportional to size
    fig = go.Figure()
    for i, row in enumerate(snapshot['blocks']):
        if row['is_free']:
            label = f"Free: {row['size']}MB"
        else:
            label = f"{row['process_name']}: {row['size']}MB"
        color = colors[i]

        highlighted = i == engine.last_selected
        fig.add_trace(go.Bar(
            x=[row['size']],
            y=["Memory"],
            orientation='h',
            text=label,
            marker_color=color,
            marker_line=dict(color="gold" if highlighted else "black", width=3 if highlighted else 1),
            hovertext=f"{label} [{row['start']}-{row['end']}]",
            hoverinfo='text'
        ))

    # Configure layout
    fig.update_layout(
        barmode='stack',
        height=180,
        showlegend=False,
        xaxis=dict(range=[0, snapshot['total_memory']], title="Address (MB)"),
        yaxis=dict(showticklabels=False)
    )
    st.plotly_chart(fig, use_container_width=True)

    # ----- Block Table Display -----
    st.subheader("Block Table (snapshot)")
    st.table([
        {
            "start": row['start'],
            "end": row['end'],
            "size": row['size'],
            "state": "Free" if row['is_free'] else row['process_name'],
        }
        for row in snapshot['blocks']
    ])

    # ----- Process History -----
    st.subheader("Process History")
    history = engine.process_history()

    if len(history) == 0:
        st.write("No processes allocated yet")
    else:
        header = st.columns([2, 1, 1, 1, 1, 1])
        for col, title in zip(header, ["Process", "Size", "Allocated", "Deallocated", "Duration", ""]):
            col.markdown(f"**{title}**")

        for row in history:
            cols = st.columns([2, 1, 1, 1, 1, 1])
            cols[0].write(row['name'])
            cols[1].write(row['size'])
            cols[2].write(f"{row['allocated_at']}s")
            cols[3].write(f"{row['deallocated_at']}s" if row['deallocated_at'] is not None else "Active")
            cols[4].write(f"{row['duration']}s")
            if row['active'] and cols[5].button("Deallocate", key=f"free-{row['id']}"):
                try:
                    engine.deallocate(row['id'])
                    st.rerun()
                except AllocatorError as e:
                    st.error(str(e))

    # ----- Fragmentation Gauge -----
    fig2 = go.Figure()
    fig2.add_trace(go.Bar(
        x=["Used", "Free", "Fragmented"],
        y=[stats['used'], stats['free'], stats['fragmented']]
    ))
    fig2.update_layout(height=300, title="Memory Usage (%)", yaxis=dict(range=[0, 100]))
    st.plotly_chart(fig2, use_container_width=True)

# =============================================================================
# FOOTER - Usage Tips and Examples
# =============================================================================

st.markdown("---")
st.markdown(
    "**Usage tips**:\n"
    "- Create a few processes, deallocate one in the middle, then watch how each strategy fills the hole.\n"
    "- Switch strategy between allocations to compare placements on the same layout.\n"
    "- Use **Tick** to advance the simulated clock so durations in the history table change."
)

st.markdown("---")
st.markdown(
    "**Instructor examples**:\n"
    "1) Total=1000MB, First Fit: allocate 100, 200, 50, then free the 200 block → fragmentation 20%.\n"
    "2) Best vs Worst: with holes of 200 and 650, allocate 150 and compare which hole is used."
)
