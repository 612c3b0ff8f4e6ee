import logging
import time

import numpy as np
from numba import njit

from . import constants as c
from .entities import (
    Boundary,
    DeathMarker,
    Demographic,
    ParticleView,
    Target,
    default_registry,
    resolve_demographic,
    standard_registry,
)
from .geometry import distance_to_segment

logger = logging.getLogger(__name__)

# Per-particle arrays held in the state, with their dtype and trailing shape.
# Every array has the active particle count as its first dimension.
PARTICLE_FIELDS = {
    "pos":              (np.float64, (2,)),
    "radius":           (np.float64, ()),
    "vd":               (np.float64, (2,)),
    "vd_mag":           (np.float64, ()),
    "ve":               (np.float64, (2,)),
    "ve_mag":           (np.float64, ()),
    "target":           (np.int64, ()),
    "in_contact":       (np.bool_, ()),
    "contacts":         (np.int64, ()),
    "stress":           (np.float64, ()),
    "dead":             (np.bool_, ()),
    "demo":             (np.int64, ()),
    # Owned copies of the demographic profile
    "r_min":            (np.float64, ()),
    "r_max":            (np.float64, ()),
    "vd_max":           (np.float64, ()),
    "stress_threshold": (np.float64, ()),
    "crush_threshold":  (np.int64, ()),
}

COUNTER_FIELDS = ("created", "current", "reached_target", "died")

# --- 1. CONFIGURATION HELPERS ---

def get_model_params(**overrides):
    """
    Returns the model parameters as a dictionary, defaults from constants.py
    with any overrides applied on top.
    """
    params = {
        "r_min":            c.R_MIN,
        "r_max":            c.R_MAX,
        "vd_max":           c.VD_MAX,
        "beta":             c.BETA,
        "tau":              c.TAU,
        "stress_rate":      c.STRESS_RATE,
        "stress_threshold": c.STRESS_THRESHOLD,
        "crush_threshold":  c.CRUSH_THRESHOLD,
        "arrival_radius":   c.ARRIVAL_RADIUS,
        "escape_speed":     None,  # None = same as the fastest demographic
    }
    unknown = set(overrides) - set(params)
    if unknown:
        raise TypeError(f"Unknown model parameter(s): {', '.join(sorted(unknown))}")

    params.update(overrides)
    return params

def compute_time_step(registry, escape_speed=None):
    """
    Fixed time step: half the smallest radius over the fastest speed, so no
    particle can cross another within a single step.
    """
    min_radius = min(profile.r_min for profile in registry.values())
    max_velocity = max(profile.vd_max for profile in registry.values())
    if escape_speed is None:
        escape_speed = max_velocity
    return min_radius / (2 * max(max_velocity, escape_speed))

def desired_speed(radius, r_min, r_max, vd_max, beta):
    """
    Radius-coupled speed law: vd_max * ((r - r_min) / (r_max - r_min)) ** beta
    """
    normalized_radius = (radius - r_min) / (r_max - r_min)
    return vd_max * normalized_radius ** beta

# --- 2. CONTACT KERNEL (JIT COMPILED) ---

@njit(cache=True)
def find_contacts(pos, radius, vd, vd_max, walls):
    """
    Contact detection and escape velocity.
    walls is a (B, 4) array of [x1, y1, x2, y2] segments.
    """
    N = pos.shape[0]
    in_contact = np.zeros(N, dtype=np.bool_)
    contacts = np.zeros(N, dtype=np.int64)
    ve = np.zeros((N, 2))
    ve_mag = np.zeros(N)

    # Particle-particle, each unordered pair once (i < j)
    for i in range(N):
        for j in range(i + 1, N):
            dx = pos[i, 0] - pos[j, 0]
            dy = pos[i, 1] - pos[j, 1]
            distance = np.sqrt(dx * dx + dy * dy)

            if distance < radius[i] + radius[j]:
                in_contact[i] = True
                in_contact[j] = True
                contacts[i] += 1
                contacts[j] += 1

                # Coincident centers have no escape direction
                if distance > 0.0:
                    ex = dx / distance
                    ey = dy / distance
                    # Away from the other particle plus own desired velocity:
                    # pushed-from-behind particles keep moving forward.
                    ve[i, 0] += ex + vd[i, 0]
                    ve[i, 1] += ey + vd[i, 1]
                    ve[j, 0] += -ex + vd[j, 0]
                    ve[j, 1] += -ey + vd[j, 1]

    # Particle-boundary
    for i in range(N):
        for k in range(walls.shape[0]):
            distance, cx, cy = distance_to_segment(
                pos[i, 0], pos[i, 1], walls[k, 0], walls[k, 1], walls[k, 2], walls[k, 3]
            )
            if distance < radius[i]:
                in_contact[i] = True
                contacts[i] += 1
                if distance > 0.0:
                    ve[i, 0] += (pos[i, 0] - cx) / distance
                    ve[i, 1] += (pos[i, 1] - cy) / distance

    # Normalise to each particle's own maximum desired velocity
    for i in range(N):
        if not in_contact[i]:
            continue
        magnitude = np.sqrt(ve[i, 0] ** 2 + ve[i, 1] ** 2)
        if magnitude > 0.0:
            ve[i, 0] = (ve[i, 0] / magnitude) * vd_max[i]
            ve[i, 1] = (ve[i, 1] / magnitude) * vd_max[i]
            ve_mag[i] = vd_max[i]
        else:
            ve[i, 0] = 0.0
            ve[i, 1] = 0.0

    return in_contact, contacts, ve, ve_mag

# --- 3. STATE MANAGEMENT ---

def _empty_particles():
    return {
        name: np.empty((0,) + shape, dtype=dtype)
        for name, (dtype, shape) in PARTICLE_FIELDS.items()
    }

def _empty_counters(registry):
    totals = dict.fromkeys(COUNTER_FIELDS, 0)
    per_demographic = {key: dict.fromkeys(COUNTER_FIELDS, 0) for key in registry}
    return totals, per_demographic

def init_state(params=None, registry=None, demographics=False, clock=time.monotonic, seed=None):
    """
    Creates an empty simulation context.

    registry: ordered mapping Demographic -> DemographicProfile. If omitted,
    the built-in Youth/Adult/Elderly table is used when demographics=True,
    otherwise a single STANDARD profile built from params.
    clock: zero-argument callable returning seconds, only read for the
    start and completion timestamps.
    seed: seed for the particle-creation sampler.
    """
    if params is None:
        params = get_model_params()

    if registry is None:
        registry = default_registry() if demographics else standard_registry(params)
    registry = dict(registry)

    keys = list(registry)
    default_key = Demographic.ADULT if Demographic.ADULT in registry else keys[0]

    dt = compute_time_step(registry, params["escape_speed"])
    totals, per_demographic = _empty_counters(registry)

    state = {
        "params": dict(params),
        "registry": registry,
        "demographics": keys,
        "default_demographic": default_key,
        "dt": dt,
        "clock": clock,
        "rng": np.random.default_rng(seed),
        "boundaries": [],
        "targets": [],
        "death_markers": [],
        "totals": totals,
        "demographic_stats": per_demographic,
        "start_time": None,
        "completion_time": None,
        "tick_count": 0,
    }
    state.update(_empty_particles())

    logger.debug(
        "Initialised model: dt=%.5f, demographics=%s",
        dt, ", ".join(key.name for key in keys),
    )
    return state

def reset(state):
    """
    Clears particles, scene, death markers, counters and timestamps.
    Configuration, registry, dt, clock and sampler are kept.
    """
    state.update(_empty_particles())
    state["boundaries"] = []
    state["targets"] = []
    state["death_markers"] = []
    state["totals"], state["demographic_stats"] = _empty_counters(state["registry"])
    state["start_time"] = None
    state["completion_time"] = None
    state["tick_count"] = 0

    logger.info("Simulation reset")
    return state

def start(state):
    """
    Records the start timestamp, once.
    """
    if state["start_time"] is None:
        state["start_time"] = state["clock"]()
    return state

def _compact(state, keep):
    """
    Builds the next active set from a keep mask, preserving order.
    """
    for name in PARTICLE_FIELDS:
        state[name] = state[name][keep]

def _record(state, key, field):
    totals = state["totals"]
    stats = state["demographic_stats"][key]
    totals[field] += 1
    totals["current"] -= 1
    stats[field] += 1
    stats["current"] -= 1

# --- 4. SCENE BUILDING ---

def add_boundary(state, x1, y1, x2, y2):
    state["boundaries"].append(Boundary(float(x1), float(y1), float(x2), float(y2)))

def add_target(state, x, y):
    """Adds a target point and returns its index."""
    state["targets"].append(Target(float(x), float(y)))
    return len(state["targets"]) - 1

def add_particle(state, x, y, demographic=None):
    """
    Adds a particle at (x, y) with r = r_min of its demographic.
    Raises UnknownDemographicError before anything is modified.
    """
    registry = state["registry"]
    if demographic is None:
        key = state["default_demographic"]
    else:
        key = resolve_demographic(registry, demographic)
    profile = registry[key]

    row = {
        "pos":              (float(x), float(y)),
        "radius":           profile.r_min,
        "vd":               (0.0, 0.0),
        "vd_mag":           0.0,
        "ve":               (0.0, 0.0),
        "ve_mag":           0.0,
        "target":           c.NO_TARGET,
        "in_contact":       False,
        "contacts":         0,
        "stress":           0.0,
        "dead":             False,
        "demo":             state["demographics"].index(key),
        "r_min":            profile.r_min,
        "r_max":            profile.r_max,
        "vd_max":           profile.vd_max,
        "stress_threshold": profile.stress_threshold,
        "crush_threshold":  profile.crush_threshold,
    }
    for name, (dtype, _) in PARTICLE_FIELDS.items():
        state[name] = np.concatenate((state[name], np.array([row[name]], dtype=dtype)))

    totals = state["totals"]
    stats = state["demographic_stats"][key]
    totals["created"] += 1
    totals["current"] += 1
    stats["created"] += 1
    stats["current"] += 1
    return key

def sample_demographic(state, rand):
    """
    Picks the demographic whose slice of the cumulative proportions
    (in registry order) contains rand.
    """
    cumulative = 0.0
    for key, profile in state["registry"].items():
        cumulative += profile.proportion
        if rand <= cumulative:
            return key
    return state["default_demographic"]

def add_particles_with_demographics(state, x, y, count=1):
    """
    Adds count particles around (x, y), each with a sampled demographic
    and a small random offset.
    """
    rng = state["rng"]
    added = []
    for _ in range(count):
        demographic = sample_demographic(state, rng.random())
        offset_x = (rng.random() - 0.5) * c.SPAWN_JITTER
        offset_y = (rng.random() - 0.5) * c.SPAWN_JITTER
        added.append(add_particle(state, x + offset_x, y + offset_y, demographic))
    return added

def _wall_array(state):
    walls = [(b.x1, b.y1, b.x2, b.y2) for b in state["boundaries"]]
    return np.array(walls, dtype=np.float64).reshape(-1, 4)

def _target_array(state):
    targets = [(t.x, t.y) for t in state["targets"]]
    return np.array(targets, dtype=np.float64).reshape(-1, 2)

# --- 5. TICK PHASES ---

def resolve_contacts(state):
    in_contact, contacts, ve, ve_mag = find_contacts(
        state["pos"], state["radius"], state["vd"], state["vd_max"], _wall_array(state)
    )
    state["in_contact"] = in_contact
    state["contacts"] = contacts
    state["ve"] = ve
    state["ve_mag"] = ve_mag

def adjust_radii(state):
    """
    Snap to r_min while in contact, otherwise grow by (r_max / tau) * dt.
    """
    params = state["params"]
    grown = state["radius"] + (state["r_max"] / params["tau"]) * state["dt"]
    state["radius"] = np.where(
        state["in_contact"], state["r_min"], np.minimum(grown, state["r_max"])
    )

def accumulate_stress(state):
    """
    Stress builds while crushed and decays otherwise. Marks the dead.
    """
    dt = state["dt"]
    crushed = state["contacts"] >= state["crush_threshold"]
    state["stress"] = np.where(
        crushed,
        state["stress"] + state["params"]["stress_rate"] * dt,
        np.maximum(0.0, state["stress"] - dt),
    )
    state["dead"] = state["dead"] | (state["stress"] >= state["stress_threshold"])

def purge_dead(state):
    """
    Removes dead particles, leaving a death marker for each.
    Returns the number removed.
    """
    dead = state["dead"]
    if not dead.any():
        return 0

    pos = state["pos"]
    for i in np.flatnonzero(dead):
        key = state["demographics"][state["demo"][i]]
        state["death_markers"].append(DeathMarker(float(pos[i, 0]), float(pos[i, 1]), key))
        _record(state, key, "died")

    _compact(state, ~dead)
    return int(dead.sum())

def assign_targets(state):
    """
    Nearest target per particle; ties go to the lowest index.
    """
    pos = state["pos"]
    targets = _target_array(state)
    N = pos.shape[0]
    T = targets.shape[0]

    if T == 0:
        state["target"] = np.full(N, c.NO_TARGET, dtype=np.int64)
        return

    diff = targets.reshape(1, T, 2) - pos.reshape(N, 1, 2)
    dists = np.sqrt(np.sum(diff**2, axis=2))
    state["target"] = np.argmin(dists, axis=1).astype(np.int64).reshape(N)

def compute_desired_velocities(state):
    """
    Unit direction to the assigned target times the radius-coupled speed.
    No target, or sitting exactly on it, means zero desired velocity.
    """
    pos = state["pos"]
    N = pos.shape[0]
    vd = np.zeros((N, 2))
    vd_mag = np.zeros(N)

    idx = np.flatnonzero(state["target"] >= 0)
    if len(idx) > 0:
        goals = _target_array(state)[state["target"][idx]]
        direction = goals - pos[idx]
        distance = np.sqrt(np.sum(direction**2, axis=1))

        moving = distance > 0
        idx = idx[moving]
        direction = direction[moving]
        distance = distance[moving]

        magnitude = desired_speed(
            state["radius"][idx], state["r_min"][idx], state["r_max"][idx],
            state["vd_max"][idx], state["params"]["beta"],
        )
        vd[idx] = direction / distance[:, np.newaxis] * magnitude[:, np.newaxis]
        vd_mag[idx] = magnitude

    state["vd"] = vd
    state["vd_mag"] = vd_mag

def integrate(state):
    """
    Walk with the desired velocity above r_min, escape at r_min.
    """
    walking = state["radius"] > state["r_min"]
    velocity = np.where(walking[:, np.newaxis], state["vd"], state["ve"])
    state["pos"] = state["pos"] + velocity * state["dt"]

def remove_arrivals(state):
    """
    Removes particles within the arrival radius of their target and latches
    the completion time once everybody has arrived or died.
    Returns the number removed.
    """
    pos = state["pos"]
    arrived = np.zeros(pos.shape[0], dtype=np.bool_)

    idx = np.flatnonzero(state["target"] >= 0)
    if len(idx) > 0:
        goals = _target_array(state)[state["target"][idx]]
        distance = np.sqrt(np.sum((goals - pos[idx])**2, axis=1))
        arrived[idx] = distance <= state["params"]["arrival_radius"]

    for i in np.flatnonzero(arrived):
        _record(state, state["demographics"][state["demo"][i]], "reached_target")

    if arrived.any():
        _compact(state, ~arrived)

    _check_completion(state)
    return int(arrived.sum())

def _check_completion(state):
    totals = state["totals"]
    if state["completion_time"] is not None or totals["created"] == 0:
        return
    if totals["reached_target"] + totals["died"] == totals["created"]:
        state["completion_time"] = state["clock"]()
        logger.info(
            "All %d particles finished after %d ticks (%d reached, %d died)",
            totals["created"], state["tick_count"] + 1,
            totals["reached_target"], totals["died"],
        )

# --- 6. ORCHESTRATION ---

def tick(state):
    """
    One time step. The phase order is fixed:
    contacts -> radii -> stress/death -> targets -> velocities -> positions -> arrivals
    """
    # 1. Contacts & escape velocities
    resolve_contacts(state)

    # 2. Radii reflect this tick's contacts
    adjust_radii(state)

    # 3. Stress, death and purge (before anybody moves)
    accumulate_stress(state)
    died = purge_dead(state)

    # 4. Goal seeking
    assign_targets(state)
    compute_desired_velocities(state)

    # 5. Integration
    integrate(state)

    # 6. Arrivals
    arrived = remove_arrivals(state)

    state["tick_count"] += 1
    if died or arrived:
        logger.debug("Tick %d: %d died, %d arrived", state["tick_count"], died, arrived)

    return state

# --- 7. GETTERS ---

def get_particles(state):
    """
    Read-only snapshots of the active particles.
    """
    keys = state["demographics"]
    return [
        ParticleView(
            x=float(state["pos"][i, 0]),
            y=float(state["pos"][i, 1]),
            r=float(state["radius"][i]),
            vd=(float(state["vd"][i, 0]), float(state["vd"][i, 1])),
            vd_magnitude=float(state["vd_mag"][i]),
            ve=(float(state["ve"][i, 0]), float(state["ve"][i, 1])),
            ve_magnitude=float(state["ve_mag"][i]),
            in_contact=bool(state["in_contact"][i]),
            contacts=int(state["contacts"][i]),
            stress=float(state["stress"][i]),
            demographic=keys[state["demo"][i]],
            target_index=int(state["target"][i]),
        )
        for i in range(len(state["pos"]))
    ]

def get_positions(state): return state["pos"].copy()
def get_radii(state): return state["radius"].copy()
def get_stresses(state): return state["stress"].copy()
def get_boundaries(state): return tuple(state["boundaries"])
def get_targets(state): return tuple(state["targets"])
def get_death_markers(state): return tuple(state["death_markers"])
def get_registry(state): return dict(state["registry"])
def get_time_step(state): return state["dt"]
def get_start_time(state): return state["start_time"]
def get_completion_time(state): return state["completion_time"]

def get_totals(state):
    return dict(state["totals"])

def get_demographic_stats(state):
    return {key: dict(stats) for key, stats in state["demographic_stats"].items()}

def is_complete(state):
    return state["completion_time"] is not None

def get_elapsed_time(state):
    """
    Seconds since start, frozen at completion. None if never started.
    """
    if state["start_time"] is None:
        return None
    end = state["completion_time"]
    if end is None:
        end = state["clock"]()
    return end - state["start_time"]
