import logging

import streamlit as st

from cpm import constants as c
from cpm import loop
from cpm import physics
from cpm import render
from cpm import scenes

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

# --- SETUP PAGE CONFIG ---
st.set_page_config(page_title="Contractile Crowd", layout="wide")

# --- SESSION STATE INITIALIZATION ---
if "page" not in st.session_state:
    st.session_state.page = "setup"  # Options: "setup", "simulation"

if "sim_params" not in st.session_state:
    st.session_state.sim_params = {}  # Stores config to pass to simulation

if "sim_running" not in st.session_state:
    st.session_state.sim_running = False

# --- CALLBACKS ---
def build_state():
    """Creates the model and scene from the saved setup values."""
    sim_params = st.session_state.sim_params
    params = physics.get_model_params(
        r_max=sim_params["r_max"],
        beta=sim_params["beta"],
        tau=sim_params["tau"],
        stress_rate=sim_params["stress_rate"],
        stress_threshold=sim_params["stress_threshold"],
        crush_threshold=sim_params["crush_threshold"],
    )
    state = physics.init_state(
        params,
        demographics=sim_params["demographics"],
        seed=sim_params["seed"],
    )
    scenes.build_exit_room(state, num_particles=sim_params["num_particles"])
    return state

def start_simulation():
    # 1. Save Slider Values
    for key in ("num_particles", "r_max", "beta", "tau", "stress_rate",
                "stress_threshold", "crush_threshold", "demographics", "seed"):
        st.session_state.sim_params[key] = st.session_state[f"setup_{key}"]

    # 2. Build the model
    st.session_state.physics_state = build_state()
    st.session_state.population_history = []

    # 3. Switch Page
    st.session_state.page = "simulation"
    st.session_state.sim_running = True

def pause_simulation():
    st.session_state.sim_running = False

def resume_simulation():
    st.session_state.sim_running = True

def reset_simulation():
    st.session_state.sim_running = False
    st.session_state.page = "setup"

    if "physics_state" in st.session_state:
        physics.reset(st.session_state.physics_state)
        del st.session_state.physics_state
    st.session_state.population_history = []

# --- MAIN CONTAINER ---
main_interface = st.empty()

# --- PAGE 1: SETUP ---
if st.session_state.page == "setup":

    with main_interface.container():

        st.title("Contractile Crowd")
        st.markdown("<h4 style='text-align: center; color: gray;'>Contractile particle model of crowd evacuation</h4>", unsafe_allow_html=True)
        st.markdown("---")

        col1, col2, col3 = st.columns([1, 1, 1])

        # --- LEFT COLUMN: CROWD ---
        with col1:
            st.markdown("### Crowd")
            st.slider("Number of Particles", 1, 500, 200, key="setup_num_particles")
            st.checkbox(
                "Varying Population",
                value=True,
                key="setup_demographics",
                help="Youth / Adult / Elderly mix. Off uses a single population built from the sliders."
            )
            st.number_input("Random Seed", min_value=0, value=0, step=1, key="setup_seed")

        # --- MIDDLE COLUMN: MOVEMENT ---
        with col2:
            st.markdown("### Movement")
            st.slider("Maximum Radius (m)", 0.3, 1.2, float(c.R_MAX), step=0.05, key="setup_r_max",
                      help="Only used when Varying Population is off.")
            st.slider("Beta", 0.5, 3.0, float(c.BETA), step=0.1, key="setup_beta",
                      help="Exponent of the speed-radius law.")
            st.slider("Tau (s)", 0.1, 2.0, float(c.TAU), step=0.1, key="setup_tau",
                      help="Time to regrow to full radius.")

        # --- RIGHT COLUMN: STRESS ---
        with col3:
            st.markdown("### Stress")
            st.slider("Stress Rate", 0.5, 10.0, 5.0, step=0.5, key="setup_stress_rate")
            st.slider("Stress Threshold", 0.5, 10.0, 2.0, step=0.5, key="setup_stress_threshold",
                      help="Only used when Varying Population is off.")
            st.slider("Crush Threshold", 1, 8, int(c.CRUSH_THRESHOLD), key="setup_crush_threshold",
                      help="Only used when Varying Population is off.")

        st.markdown("---")
        st.button("Start Simulation", on_click=start_simulation, type="primary", use_container_width=True)

# --- PAGE 2: SIMULATION ---
elif st.session_state.page == "simulation":

    # 1. Forcefully clear the Setup UI
    main_interface.empty()

    if "physics_state" not in st.session_state:
        st.error("No simulation found. Please return to setup.")
        if st.button("Back to Setup"):
            reset_simulation()
            st.rerun()
    else:
        # 2. Sidebar Controls
        speed_factor, stats_placeholder, chart_placeholder = render.render_sidebar_controls(
            pause_callback=pause_simulation,
            reset_callback=reset_simulation,
        )

        # 3. Simulation Layout
        st.markdown("<h2 style='text-align: center;'>Live Simulation</h2>", unsafe_allow_html=True)

        c1, c2, c3 = st.columns([1, 6, 1])
        with c2:
            canvas_placeholder = st.empty()
            if not st.session_state.sim_running:
                st.button("Resume", on_click=resume_simulation, type="primary")

        state = st.session_state.physics_state

        # 4. Run the Loop (or draw the paused frame)
        if st.session_state.sim_running:
            loop.run_simulation(canvas_placeholder, stats_placeholder, chart_placeholder, speed_factor)
        else:
            canvas_placeholder.image(render.render_state(state), channels="RGB")
            render.render_stats(
                stats_placeholder,
                physics.get_totals(state),
                physics.get_demographic_stats(state),
                physics.get_registry(state),
                physics.get_time_step(state),
                physics.get_elapsed_time(state),
                physics.is_complete(state),
            )
            render.render_chart(chart_placeholder, st.session_state.get("population_history", []))
