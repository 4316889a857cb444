import pytest

from core.domain import (
    CompletionPolicy,
    LandmarkSnapshot,
    NormalizationMode,
    PoseGoal,
    SequencePhase,
)
from core.services import PoseNormalizer, PoseSequencer, StaticLandmarkSource

from conftest import make_skeleton, transform, yaw


class FakeClock:

    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class Recorder:
    """Collects sequencer events in order."""

    def __init__(self):
        self.events = []

    def goal_changed(self, goal, index):
        self.events.append(("goal_changed", goal.reference_name, index))

    def complete(self):
        self.events.append(("complete",))

    def transition(self, scene):
        self.events.append(("transition", scene))


@pytest.fixture
def poses(registry):
    skeletons = {name: make_skeleton(seed=seed) for seed, name in enumerate(("a", "b", "c"), start=10)}
    for name, points in skeletons.items():
        registry.record(name, LandmarkSnapshot(points), tolerance=0.05)
    return skeletons


@pytest.fixture
def recorder():
    return Recorder()


def _sequencer(registry, recorder, **kwargs):
    return PoseSequencer(
        registry,
        on_goal_changed=recorder.goal_changed,
        on_sequence_complete=recorder.complete,
        on_transition=recorder.transition,
        **kwargs,
    )


GOALS = [PoseGoal("A"), PoseGoal(" b "), PoseGoal("C")]


class TestLifecycle:

    def test_starts_idle(self, registry, recorder):
        sequencer = _sequencer(registry, recorder)
        assert sequencer.phase is SequencePhase.IDLE
        assert sequencer.current_goal is None
        assert sequencer.tick(LandmarkSnapshot()) is None

    def test_start_emits_first_goal(self, registry, recorder):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        assert sequencer.phase is SequencePhase.ACTIVE
        assert sequencer.current_index == 0
        assert sequencer.current_goal == GOALS[0]
        assert recorder.events == [("goal_changed", "A", 0)]

    def test_start_without_goals_raises(self, registry, recorder):
        sequencer = _sequencer(registry, recorder)
        with pytest.raises(ValueError):
            sequencer.start([])
        assert sequencer.phase is SequencePhase.IDLE

    def test_start_while_active_restarts(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)
        sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert sequencer.current_index == 1

        sequencer.start(GOALS)
        assert sequencer.current_index == 0
        assert recorder.events[-1] == ("goal_changed", "A", 0)

    def test_reset(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)
        sequencer.reset()

        assert sequencer.phase is SequencePhase.IDLE
        assert sequencer.goals == ()
        assert sequencer.tick(LandmarkSnapshot(poses["a"])) is None


class TestMatching:

    def test_matching_pose_advances_exactly_once(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        result = sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert result.advanced
        assert not result.completed
        assert result.similarity == 1.0
        assert sequencer.current_index == 1

        # Goal 0's pose no longer advances anything
        result = sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert not result.advanced
        assert result.goal_index == 1
        assert sequencer.current_index == 1

    def test_later_goal_does_not_skip_ahead(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        for _ in range(3):
            result = sequencer.tick(LandmarkSnapshot(poses["c"]))
            assert not result.advanced
        assert sequencer.current_index == 0

    def test_matches_moved_turned_and_scaled_player(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        live = transform(poses["a"], rotation=yaw(80.0), scale=1.2, offset=(1.5, 0.0, -3.0))
        result = sequencer.tick(live)
        assert result.advanced
        assert result.notes == []

    def test_raw_distance_needs_same_placement(self, registry, recorder, poses):
        sequencer = _sequencer(
            registry, recorder, normalizer=PoseNormalizer(mode=NormalizationMode.RAW_DISTANCE)
        )
        sequencer.start(GOALS)

        assert not sequencer.tick(transform(poses["a"], offset=(1.0, 0.0, 0.0))).advanced
        assert sequencer.tick(LandmarkSnapshot(poses["a"])).advanced

    def test_full_sequence_completes(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        results = [sequencer.tick(LandmarkSnapshot(poses[name])) for name in ("a", "b", "c")]

        assert [r.completed for r in results] == [False, False, True]
        assert sequencer.phase is SequencePhase.COMPLETE
        assert sequencer.current_goal is None
        assert recorder.events == [
            ("goal_changed", "A", 0),
            ("goal_changed", " b ", 1),
            ("goal_changed", "C", 2),
            ("complete",),
        ]

    def test_no_events_after_completion_until_reset(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start([PoseGoal("a")])
        sequencer.tick(LandmarkSnapshot(poses["a"]))
        count = len(recorder.events)

        for name in ("a", "b", "c"):
            assert sequencer.tick(LandmarkSnapshot(poses[name])) is None
        assert len(recorder.events) == count

        sequencer.reset()
        sequencer.start([PoseGoal("a")])
        assert len(recorder.events) == count + 1

    def test_required_similarity_threshold(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start([PoseGoal("a", required_similarity=0.5)])

        # Half of the landmarks (plus the hips) in place is enough
        mixed = dict(poses["b"])
        for index in range(0, 33, 2):
            mixed[index] = poses["a"][index]
        mixed[23], mixed[24] = poses["a"][23], poses["a"][24]

        result = sequencer.tick(LandmarkSnapshot(mixed))
        assert result.similarity >= 0.5
        assert result.completed


class TestPerFrameProblems:

    def test_missing_reference(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start([PoseGoal("unknown"), PoseGoal("a")])

        result = sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert result.similarity == 0.0
        assert not result.reference_found
        assert result.notes == ["reference_not_found"]
        assert sequencer.current_index == 0

    def test_no_snapshot(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        result = sequencer.tick_source(StaticLandmarkSource(None))
        assert result.reference_found
        assert result.similarity == 0.0
        assert result.notes == ["no_snapshot"]

    def test_incomplete_snapshot(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        partial = dict(poses["a"])
        del partial[0]
        result = sequencer.tick(LandmarkSnapshot(partial))
        assert not result.snapshot_valid
        assert result.notes == ["incomplete_snapshot"]
        assert not result.advanced

    def test_degenerate_hips_are_reported(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start(GOALS)

        collapsed = dict(poses["a"])
        collapsed[24] = collapsed[23]
        result = sequencer.tick(LandmarkSnapshot(collapsed))
        assert result.snapshot_valid
        assert "rotation_skipped" in result.notes
        assert "scale_skipped" in result.notes

    def test_strict_scale_fails_degenerate_hips(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder, normalizer=PoseNormalizer(strict_scale=True))
        sequencer.start(GOALS)

        collapsed = dict(poses["a"])
        collapsed[24] = collapsed[23]
        result = sequencer.tick(LandmarkSnapshot(collapsed))
        assert result.similarity == 0.0
        assert result.notes == ["normalization_failed"]

    def test_registry_changes_apply_between_ticks(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start([PoseGoal("late")])

        assert not sequencer.tick(LandmarkSnapshot(poses["a"])).reference_found
        registry.record("Late", LandmarkSnapshot(poses["a"]))
        assert sequencer.tick(LandmarkSnapshot(poses["a"])).completed


class TestCompletionPolicy:

    def test_transition_after_display_time(self, registry, recorder, poses):
        clock = FakeClock()
        sequencer = _sequencer(
            registry,
            recorder,
            completion=CompletionPolicy(display_asset="done.png", display_seconds=20.0, next_scene="Hub"),
            clock=clock,
        )
        sequencer.start([PoseGoal("a")])
        sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert sequencer.transition_pending

        clock.now += 19.9
        sequencer.tick(None)
        assert ("transition", "Hub") not in recorder.events

        clock.now += 0.2
        sequencer.tick(None)
        sequencer.tick(None)
        assert recorder.events.count(("transition", "Hub")) == 1
        assert not sequencer.transition_pending

    def test_reset_cancels_transition(self, registry, recorder, poses):
        clock = FakeClock()
        sequencer = _sequencer(registry, recorder, completion=CompletionPolicy(), clock=clock)
        sequencer.start([PoseGoal("a")])
        sequencer.tick(LandmarkSnapshot(poses["a"]))

        sequencer.reset()
        clock.now += 60.0
        sequencer.tick(None)
        assert not any(event[0] == "transition" for event in recorder.events)

    def test_no_policy_no_transition(self, registry, recorder, poses):
        sequencer = _sequencer(registry, recorder)
        sequencer.start([PoseGoal("a")])
        sequencer.tick(LandmarkSnapshot(poses["a"]))
        assert not sequencer.transition_pending
