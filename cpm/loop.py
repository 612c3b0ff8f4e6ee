import logging
import math
import time

import streamlit as st

from . import constants as c
from . import physics
from . import render

logger = logging.getLogger(__name__)

# --- 1. SCHEDULING HELPERS ---

def steps_for_elapsed(elapsed, dt, speed_factor=c.SPEED_FACTOR):
    """
    Number of ticks owed for elapsed wall-clock seconds.
    speed_factor is wall-clock seconds per simulated second.
    """
    if elapsed <= 0:
        return 0
    return int(math.floor(elapsed / (dt * speed_factor)))

def run_batch(state, steps):
    for _ in range(steps):
        physics.tick(state)
    return state

def record_history(history, totals, limit=c.HISTORY_LENGTH):
    """
    Appends a counter snapshot, keeping at most limit points.
    """
    history.append(dict(totals))
    if len(history) > limit:
        del history[:len(history) - limit]
    return history

def run_headless(state, max_ticks=10_000, history=None):
    """
    Ticks until every particle has arrived or died, or max_ticks is hit.
    Returns the number of ticks run.
    """
    physics.start(state)

    ticks = 0
    while ticks < max_ticks and physics.get_totals(state)["current"] > 0:
        physics.tick(state)
        ticks += 1
        if history is not None:
            record_history(history, physics.get_totals(state))

    totals = physics.get_totals(state)
    if totals["current"] > 0:
        logger.info("Stopped after %d ticks with %d particles still active", ticks, totals["current"])
    else:
        logger.info(
            "Finished in %d ticks: %d reached, %d died",
            ticks, totals["reached_target"], totals["died"]
        )
    return ticks

# --- 2. LIVE LOOP ---

def run_simulation(canvas_placeholder, stats_placeholder, chart_placeholder, speed_factor=c.SPEED_FACTOR):
    """
    The main Game Loop.
    Catches up with wall-clock time by running a batch of ticks per frame.
    """
    state = st.session_state.physics_state
    history = st.session_state.setdefault("population_history", [])
    physics.start(state)

    last_frame_time = None
    frame_count = 0

    while True:
        if not st.session_state.get("sim_running", False):
            break

        # A. BATCHED TICKS
        now = time.monotonic()
        if last_frame_time is None:
            last_frame_time = now

        steps = steps_for_elapsed(now - last_frame_time, physics.get_time_step(state), speed_factor)
        run_batch(state, steps)
        if steps > 0:
            last_frame_time = now
            record_history(history, physics.get_totals(state))

        # B. RENDER CANVAS (Every Frame)
        frame = render.render_state(state)
        canvas_placeholder.image(frame, channels="RGB")

        render.render_stats(
            stats_placeholder,
            physics.get_totals(state),
            physics.get_demographic_stats(state),
            physics.get_registry(state),
            physics.get_time_step(state),
            physics.get_elapsed_time(state),
            physics.is_complete(state),
        )

        # C. RENDER CHART (Every 5 Frames)
        if frame_count % 5 == 0:
            render.render_chart(chart_placeholder, history)
        frame_count += 1

        if physics.is_complete(state):
            st.session_state.sim_running = False
            render.render_chart(chart_placeholder, history)
            break

        # D. YIELD
        time.sleep(c.FRAME_DELAY)

    st.session_state.physics_state = state
