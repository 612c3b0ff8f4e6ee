"""Tests for the external scheduler helpers."""

from conftest import pin_between_walls

from cpm import loop, physics


class TestStepsForElapsed:
    """Tests for wall-clock to tick conversion."""

    def test_whole_steps(self):
        """Elapsed time is divided by dt * speed_factor."""
        assert loop.steps_for_elapsed(1.0, 0.125, 0.5) == 16

    def test_rounds_down(self):
        """Partial steps are carried to the next frame."""
        assert loop.steps_for_elapsed(0.05, 0.125, 0.5) == 0
        assert loop.steps_for_elapsed(0.1, 0.125, 0.5) == 1

    def test_no_elapsed_time(self):
        """Zero or negative elapsed time runs nothing."""
        assert loop.steps_for_elapsed(0.0, 0.125) == 0
        assert loop.steps_for_elapsed(-1.0, 0.125) == 0


class TestRunBatch:
    """Tests for batched stepping."""

    def test_runs_requested_ticks(self, state):
        """A batch advances the tick counter by its size."""
        physics.add_particle(state, 0.0, 0.0)

        loop.run_batch(state, 7)

        assert state["tick_count"] == 7

    def test_zero_batch(self, state):
        """An empty batch is a no-op."""
        loop.run_batch(state, 0)

        assert state["tick_count"] == 0


class TestHistory:
    """Tests for the population history buffer."""

    def test_appends_copy(self):
        """Snapshots are copies of the counters."""
        totals = {"created": 1, "current": 1, "reached_target": 0, "died": 0}
        history = []

        loop.record_history(history, totals)
        totals["current"] = 0

        assert history == [{"created": 1, "current": 1, "reached_target": 0, "died": 0}]

    def test_trims_to_limit(self):
        """Only the newest points are kept."""
        history = []

        for i in range(10):
            loop.record_history(history, {"current": i}, limit=4)

        assert [point["current"] for point in history] == [6, 7, 8, 9]


class TestRunHeadless:
    """Tests for run-to-completion."""

    def test_runs_until_complete(self, state):
        """Stops as soon as everybody has arrived."""
        physics.add_target(state, 0.3, 0.0)
        physics.add_particle(state, 0.0, 0.0)

        ticks = loop.run_headless(state)

        assert ticks == 1
        assert physics.is_complete(state)
        assert physics.get_start_time(state) is not None

    def test_stops_at_limit(self, state):
        """Particles that never arrive stop the run at max_ticks."""
        physics.add_particle(state, 0.0, 0.0)
        history = []

        ticks = loop.run_headless(state, max_ticks=5, history=history)

        assert ticks == 5
        assert len(history) == 5
        assert not physics.is_complete(state)

    def test_empty_model(self, state):
        """Nothing to simulate means no ticks."""
        assert loop.run_headless(state) == 0

    def test_counts_deaths_as_finished(self, crush_state):
        """A crushed population also finishes the run."""
        pin_between_walls(crush_state)

        loop.run_headless(crush_state, max_ticks=100)

        assert physics.get_totals(crush_state)["died"] == 1
        assert physics.is_complete(crush_state)
