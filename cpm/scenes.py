from . import physics

# --- 1. THE VENUE (Exit Room) ---
# A 14m x 9m room whose right wall funnels into two exits.

EXIT_ROOM_BOUNDARIES = [
    (1, 1, 15, 1),    # Top
    (1, 1, 1, 10),    # Left
    (1, 10, 15, 10),  # Bottom
    (15, 1, 16, 3),   # Top right slanted wall
    (15, 10, 16, 8),  # Bottom right slanted wall
]
EXIT_ROOM_TARGETS = [(17, 3), (17, 8)]
EXIT_ROOM_SPAWN_AREA = (2.0, 2.0, 12.0, 7.0)  # x, y, width, height

# --- 2. PLACEMENT HELPERS ---

def scatter_particles(state, count, area, sample_demographics=False, cluster_size=5):
    """
    Places count particles uniformly inside area = (x, y, width, height).

    With sample_demographics, particles are spawned in clusters of
    cluster_size around each uniform point, each with a sampled demographic.
    """
    rng = state["rng"]
    x0, y0, width, height = area

    added = 0
    while added < count:
        x = x0 + rng.random() * width
        y = y0 + rng.random() * height

        if sample_demographics:
            n = min(cluster_size, count - added)
            physics.add_particles_with_demographics(state, x, y, n)
        else:
            n = 1
            physics.add_particle(state, x, y)
        added += n

    return added

# --- 3. MAIN SCENES ---

def build_exit_room(state, num_particles=200, sample_demographics=None, cluster_size=5):
    """
    Walls, two exit targets and num_particles spread over the room.
    Demographic sampling defaults to on whenever the registry has more than
    one profile.
    """
    for segment in EXIT_ROOM_BOUNDARIES:
        physics.add_boundary(state, *segment)

    for point in EXIT_ROOM_TARGETS:
        physics.add_target(state, *point)

    if sample_demographics is None:
        sample_demographics = len(state["registry"]) > 1

    scatter_particles(
        state, num_particles, EXIT_ROOM_SPAWN_AREA,
        sample_demographics=sample_demographics, cluster_size=cluster_size
    )

    physics.assign_targets(state)
    return state
