import logging

import altair as alt
import cv2
import numpy as np
import pandas as pd
import streamlit as st

from . import constants as c
from . import physics

logger = logging.getLogger(__name__)

# --- 1. UI GETTERS ---

def render_sidebar_controls(pause_callback, reset_callback, initial_speed=c.SPEED_FACTOR):
    """
    Draws the sidebar controls for the LIVE simulation phase.
    """
    st.sidebar.markdown(
        "<h1 style='text-align: center;'>Live Controls</h1>",
        unsafe_allow_html=True
    )

    speed_factor = st.sidebar.slider(
        "Playback Slowdown",
        min_value=0.1,
        max_value=4.0,
        value=float(initial_speed),
        step=0.1,
        help="Wall-clock seconds per simulated second. Higher is slower."
    )

    st.sidebar.markdown("---")

    st.sidebar.markdown("### Population")
    stats_placeholder = st.sidebar.empty()
    chart_placeholder = st.sidebar.empty()
    st.sidebar.markdown("---")

    sb_col1, sb_col2 = st.sidebar.columns([1, 1])

    with sb_col1:
        st.button("Pause", on_click=pause_callback, type="secondary", use_container_width=True)
    with sb_col2:
        st.button("Reset", on_click=reset_callback, type="secondary", use_container_width=True)

    st.sidebar.info(
        """
        **Legend:**
        - Fill: demographic colour, reddening with stress while in contact
        - Green line: desired velocity
        - Red line: escape velocity
        - Cross: death marker
        """
    )

    return speed_factor, stats_placeholder, chart_placeholder

def format_stats(totals, demographic_stats, registry, dt, elapsed=None, complete=False):
    """
    Markdown summary of the counters.
    """
    lines = [
        f"**Particles:** {totals['current']}",
        f"**Reached target:** {totals['reached_target']}",
        f"**Died:** {totals['died']}",
        f"**Time step:** {dt:.3f}s",
        f"**Elapsed:** {0.0 if elapsed is None else elapsed:.2f}s",
    ]

    if len(registry) > 1:
        lines.append("")
        lines.append("**Demographics:**")
        for key, stats in demographic_stats.items():
            profile = registry[key]
            lines.append(
                f"- <span style='color: {profile.color}'>{profile.name}</span>: "
                f"{stats['current']} ({stats['reached_target']} reached, {stats['died']} died)"
            )

    if complete:
        lines.append("")
        lines.append(f"All particles reached target/died in {elapsed or 0.0:.2f}s!")

    return "  \n".join(lines)

def render_stats(placeholder, totals, demographic_stats, registry, dt, elapsed=None, complete=False):
    placeholder.markdown(
        format_stats(totals, demographic_stats, registry, dt, elapsed, complete),
        unsafe_allow_html=True
    )

def history_frame(history):
    """
    Long-format DataFrame of the counter history for charting.
    """
    df = pd.DataFrame(history, columns=["current", "reached_target", "died"])
    df["Tick"] = range(len(df))
    return df.melt(id_vars="Tick", var_name="Counter", value_name="Particles")

def render_chart(placeholder, history):
    """
    Updates the sidebar chart using Altair.
    """
    if not history:
        return

    chart = alt.Chart(history_frame(history)).mark_line().encode(
        x=alt.X("Tick", axis=alt.Axis(title="Time (Frames)")),
        y=alt.Y("Particles", axis=alt.Axis(title="Particles")),
        color=alt.Color("Counter", legend=alt.Legend(orient="bottom"))
    ).properties(
        height=180
    )

    placeholder.altair_chart(chart, use_container_width=True)

# --- 2. RENDER HELPERS ---

def hex_to_bgr(color):
    """
    '#RRGGBB' -> (B, G, R). Falls back to gray on anything else.
    """
    try:
        value = color.lstrip("#")
        if len(value) != 6:
            raise ValueError(color)
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except (AttributeError, ValueError):
        logger.warning("Unreadable colour %r, using fallback", color)
        return c.COLOR_FALLBACK
    return (b, g, r)

def mix_colors(base, overlay, fraction):
    """
    Linear blend of two BGR colours, fraction=0 gives base.
    """
    fraction = max(0.0, min(1.0, fraction))
    return tuple(int(base[i] * (1 - fraction) + overlay[i] * fraction) for i in range(3))

def get_particle_color(base_color, stress, stress_threshold, in_contact):
    """
    Demographic colour tinted by stress: red while in contact, blue otherwise.
    """
    stress_ratio = stress / stress_threshold if stress_threshold > 0 else 0.0
    stress_alpha = min(stress_ratio * 0.7, 0.7)
    if in_contact:
        return mix_colors(base_color, c.COLOR_CONTACT, stress_alpha)
    return mix_colors(base_color, c.COLOR_FREE, stress_alpha * 0.5)

def get_target_color(index):
    if index < 0:
        return c.COLOR_FALLBACK
    return c.TARGET_COLORS[index % len(c.TARGET_COLORS)]

def to_pixels(x, y, scale):
    return int(round(x * scale)), int(round(y * scale))

def render_boundary(img, boundary, scale):
    cv2.line(
        img,
        to_pixels(boundary.x1, boundary.y1, scale),
        to_pixels(boundary.x2, boundary.y2, scale),
        c.COLOR_BOUNDARY, 2
    )

def render_target(img, index, target, scale):
    cv2.circle(img, to_pixels(target.x, target.y, scale), 8, get_target_color(index), -1)

def render_particle(img, particle, profile, scale):
    """
    Draws a single particle onto the image.
    """
    center = to_pixels(particle.x, particle.y, scale)
    radius = max(1, int(particle.r * scale))

    color = get_particle_color(
        hex_to_bgr(profile.color), particle.stress, profile.stress_threshold, particle.in_contact
    )
    cv2.circle(img, center, radius, color, -1)

    # Target dot
    if particle.target_index >= 0:
        cv2.circle(img, center, max(1, int(radius * 0.3)), get_target_color(particle.target_index), -1)

    render_velocity_vectors(img, particle, scale)

def render_velocity_vectors(img, particle, scale):
    start = to_pixels(particle.x, particle.y, scale)

    vd_end = to_pixels(
        particle.x + particle.vd[0] * c.VECTOR_SCALE,
        particle.y + particle.vd[1] * c.VECTOR_SCALE,
        scale
    )
    cv2.line(img, start, vd_end, c.COLOR_DESIRED, 1)

    if particle.in_contact:
        ve_end = to_pixels(
            particle.x + particle.ve[0] * c.VECTOR_SCALE,
            particle.y + particle.ve[1] * c.VECTOR_SCALE,
            scale
        )
        cv2.line(img, start, ve_end, c.COLOR_ESCAPE, 1)

def render_death_marker(img, marker, color, scale):
    x, y = to_pixels(marker.x, marker.y, scale)
    size = c.MARKER_SIZE_PX
    cv2.line(img, (x - size, y - size), (x + size, y + size), color, 2)
    cv2.line(img, (x + size, y - size), (x - size, y + size), color, 2)

# --- 3. MAIN RENDER FUNCTION ---

def render_frame(particles, boundaries, targets, death_markers, registry,
                 scale=c.PIXELS_PER_METER, width=c.CANVAS_WIDTH_PX, height=c.CANVAS_HEIGHT_PX):
    """
    Main Rendering Function.
    Takes the read-only snapshots from physics.get_* and returns an RGB image.
    """
    # 1. Init Canvas
    img = np.full((height, width, 3), c.COLOR_BG, dtype=np.uint8)

    # 2. Static scene
    for boundary in boundaries:
        render_boundary(img, boundary, scale)

    for index, target in enumerate(targets):
        render_target(img, index, target, scale)

    # 3. Particles
    for particle in particles:
        render_particle(img, particle, registry[particle.demographic], scale)

    # 4. Death markers on top
    for marker in death_markers:
        render_death_marker(img, marker, hex_to_bgr(registry[marker.demographic].color), scale)

    # 5. Convert to RGB for Streamlit
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

def render_state(state, **kwargs):
    """
    Convenience wrapper pulling every snapshot out of a simulation state.
    """
    return render_frame(
        physics.get_particles(state),
        physics.get_boundaries(state),
        physics.get_targets(state),
        physics.get_death_markers(state),
        physics.get_registry(state),
        **kwargs
    )
