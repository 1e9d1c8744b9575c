"""Tests for terrainmapper generators module.

Tests: TokenElevationHandler (walking, burrowing, flying, verification,
fallback)
Focus: Waypoints over the small scenes laid out along y=0 in conftest.py

Note: Fixtures are defined in conftest.py (scenes along the y=0 test line).
"""

import math

import pytest

from terrainmapper.constants import PathConfig
from terrainmapper.core.cutaway_handler import ElevationLocation
from terrainmapper.core.point_pool import CutawayPoint
from terrainmapper.generators.token_elevation_handler import (
    DuplicateWaypointError,
    PathConnectionError,
    PathVerificationError,
    TokenElevationHandler,
)
from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.movement_mode import MovementMode
from terrainmapper.model.scene import Scene

from conftest import along


def coords(path: list[ElevatedPoint]) -> list[tuple[float, float, float]]:
    """Rounded (x, y, elevation) triples; -0.0 and 0.0 compare equal."""
    return [(round(p.x, 6) + 0.0, round(p.y, 6) + 0.0, round(p.elevation, 6) + 0.0) for p in path]


class FailingUnion:
    """Polygon union that always fails, to force the fallback path."""

    def union(self, polygons):
        raise RuntimeError("union exploded")


# =============================================================================
# TESTS FOR WALKING
# =============================================================================


class TestWalkingPath:
    """TokenElevationHandler.construct_walking_path - following surfaces."""

    def test_flat_floor_is_straight_line(self, flat_scene: Scene) -> None:
        """Nothing in the way: the input endpoints come back unchanged."""
        start, end = along(0), along(100)
        path = TokenElevationHandler(flat_scene).construct_walking_path(start, end)
        assert path == [start, end]
        assert path[0] is start and path[-1] is end

    def test_climbs_over_plateau(self, mesa_scene: Scene) -> None:
        """Walker climbs the left face, crosses the top and drops off the right face."""
        path = TokenElevationHandler(mesa_scene).construct_walking_path(along(0), along(100))
        assert coords(path) == [
            (0, 0, 0),
            (40, 0, 0),
            (40, 0, 20),
            (60, 0, 20),
            (60, 0, 0),
            (100, 0, 0),
        ]

    def test_reverse_direction(self, mesa_scene: Scene) -> None:
        path = TokenElevationHandler(mesa_scene).construct_walking_path(along(100), along(0))
        assert coords(path) == [
            (100, 0, 0),
            (60, 0, 0),
            (60, 0, 20),
            (40, 0, 20),
            (40, 0, 0),
            (0, 0, 0),
        ]

    def test_walks_up_ramp(self, ramp_scene: Scene) -> None:
        """The ramp beats the floor it starts from, so the walker takes it."""
        path = TokenElevationHandler(ramp_scene).construct_walking_path(along(0), along(100))
        assert coords(path) == [(0, 0, 0), (40, 0, 0), (80, 0, 20), (80, 0, 0), (100, 0, 0)]

    def test_touching_plateaus(self, touching_scene: Scene) -> None:
        """Stepping from the low plateau straight up onto the high one."""
        path = TokenElevationHandler(touching_scene).construct_walking_path(along(0), along(100))
        assert coords(path) == [
            (0, 0, 0),
            (40, 0, 0),
            (40, 0, 20),
            (60, 0, 20),
            (60, 0, 30),
            (80, 0, 30),
            (80, 0, 0),
            (100, 0, 0),
        ]

    def test_falls_to_floor(self, flat_scene: Scene) -> None:
        """A walker starting in mid-air drops straight down first."""
        start = along(0, elevation=10)
        path = TokenElevationHandler(flat_scene).construct_walking_path(start, along(100))
        assert coords(path) == [(0, 0, 10), (0, 0, 0), (100, 0, 0)]

    def test_walks_under_bridge(self, bridge_scene: Scene) -> None:
        start, end = along(0), along(100)
        assert TokenElevationHandler(bridge_scene).construct_walking_path(start, end) == [start, end]

    def test_steps_off_bridge(self, bridge_scene: Scene) -> None:
        """Walking off the end of a floor overlay lands on the scene floor."""
        path = TokenElevationHandler(bridge_scene).construct_walking_path(along(50, 30), along(100, 30))
        assert coords(path) == [(50, 0, 30), (60, 0, 30), (60, 0, 0), (100, 0, 0)]

    def test_repeated_queries_agree(self, mesa_scene: Scene) -> None:
        """The handler keeps no state between queries."""
        handler = TokenElevationHandler(mesa_scene)
        first = handler.construct_walking_path(along(0), along(100))
        handler.construct_walking_path(along(100), along(0))
        assert handler.construct_walking_path(along(0), along(100)) == first


# =============================================================================
# TESTS FOR BURROWING AND FLYING
# =============================================================================


class TestBurrowingPath:
    """TokenElevationHandler.construct_burrowing_path - tunnels through solids."""

    def test_tunnels_through_plateau(self, mesa_scene: Scene) -> None:
        path = TokenElevationHandler(mesa_scene).construct_burrowing_path(along(0), along(100))
        assert coords(path) == [(0, 0, 0), (40, 0, 0), (60, 0, 0), (100, 0, 0)]

    def test_tunnels_through_touching_plateaus(self, touching_scene: Scene) -> None:
        """Two touching volumes form one solid: no waypoint at their shared face."""
        path = TokenElevationHandler(touching_scene).construct_burrowing_path(along(0), along(100))
        assert coords(path) == [(0, 0, 0), (40, 0, 0), (80, 0, 0), (100, 0, 0)]
        assert not any(40 < p.x < 80 for p in path)

    def test_surfaces_in_gap(self, gap_scene: Scene) -> None:
        """Between separate volumes the burrower walks the open floor."""
        path = TokenElevationHandler(gap_scene).construct_burrowing_path(along(0), along(100))
        assert coords(path) == [
            (0, 0, 0),
            (40, 0, 0),
            (60, 0, 0),
            (70, 0, 0),
            (90, 0, 0),
            (100, 0, 0),
        ]

    def test_flat_floor_is_straight_line(self, flat_scene: Scene) -> None:
        start, end = along(0), along(100)
        assert TokenElevationHandler(flat_scene).construct_burrowing_path(start, end) == [start, end]


class TestFlyingPath:
    """TokenElevationHandler.construct_flying_path - straight flights through air."""

    def test_flies_over_plateau(self, mesa_scene: Scene) -> None:
        """Diagonal up onto the plateau edge, across, then straight down to the end."""
        path = TokenElevationHandler(mesa_scene).construct_flying_path(along(0), along(100))
        assert coords(path) == [(0, 0, 0), (40, 0, 20), (60, 0, 20), (100, 0, 0)]

    def test_flies_onto_bridge(self, bridge_scene: Scene) -> None:
        """Reaching a bridge top joins a reverse walk off the bridge, then shortcuts it."""
        end = along(50, 30)
        path = TokenElevationHandler(bridge_scene).construct_flying_path(along(0), end)
        assert coords(path) == [(0, 0, 0), (40, 0, 30), (50, 0, 30)]
        assert path[-1] is end

    def test_flat_floor_is_straight_line(self, flat_scene: Scene) -> None:
        start, end = along(0), along(100)
        assert TokenElevationHandler(flat_scene).construct_flying_path(start, end) == [start, end]


# =============================================================================
# TESTS FOR MODE DISPATCH AND FALLBACK
# =============================================================================


class TestConstructPath:
    """TokenElevationHandler.construct_path - mode selection and guards."""

    def test_defaults_to_walking(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        walked = handler.construct_walking_path(along(0), along(100))
        assert handler.construct_path(along(0), along(100)) == walked

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"flying": True, "burrowing": True},
            {"walking": False},
            {"mode": MovementMode.from_action("blink")},
        ],
        ids=["fly+burrow", "nothing", "unknown-action"],
    )
    def test_unconstrained_is_straight_line(self, mesa_scene: Scene, kwargs: dict) -> None:
        start, end = along(0), along(100)
        assert TokenElevationHandler(mesa_scene).construct_path(start, end, **kwargs) == [start, end]

    def test_flying_beats_walking(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        flown = handler.construct_flying_path(along(0), along(100))
        assert handler.construct_path(along(0), along(100), flying=True, walking=True) == flown

    def test_burrowing_beats_walking(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        dug = handler.construct_burrowing_path(along(0), along(100))
        assert handler.construct_path(along(0), along(100), mode=MovementMode(walking=True, burrowing=True)) == dug

    def test_construct_path_for_is_stateless(self, mesa_scene: Scene) -> None:
        path = TokenElevationHandler.construct_path_for(mesa_scene, along(0), along(100), MovementMode(burrowing=True))
        assert coords(path) == [(0, 0, 0), (40, 0, 0), (60, 0, 0), (100, 0, 0)]

    @pytest.mark.parametrize("mode", ["walking", "burrowing", "flying"])
    def test_pool_released_after_query(self, gap_scene: Scene, mode: str) -> None:
        """Every temporary point goes back to the pool."""
        handler = TokenElevationHandler(gap_scene)
        handler.construct_path(along(0), along(100), **{mode: True})
        assert handler.pool.in_use == 0

    def test_failure_falls_back_to_straight_line(self, mesa_scene: Scene, caplog: pytest.LogCaptureFixture) -> None:
        """An internal error is logged and the straight line comes back."""
        handler = TokenElevationHandler(mesa_scene, union=FailingUnion())
        start, end = along(0), along(100)
        with caplog.at_level("ERROR"):
            result = handler.construct_path_result(start, end, flying=True)
        assert result.degraded
        assert result.points == [start, end]
        assert isinstance(result.cause, RuntimeError)
        assert "falling back" in caplog.text
        assert handler.pool.in_use == 0

    def test_successful_result_is_not_degraded(self, mesa_scene: Scene) -> None:
        result = TokenElevationHandler(mesa_scene).construct_path_result(along(0), along(100))
        assert not result.degraded
        assert result.cause is None


class TestIterationCapsAndJoins:
    """Hard iteration caps and forward/reverse joins that never meet."""

    def test_walk_cap_returns_partial_path(
        self, mesa_scene: Scene, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """One iteration only reaches the plateau's foot; that partial walk is the result."""
        monkeypatch.setattr(PathConfig, "MAX_ITERATIONS", 1)
        start, end = along(0), along(100)
        with caplog.at_level("WARNING"):
            result = TokenElevationHandler(mesa_scene).construct_path_result(start, end)
        assert not result.degraded
        assert coords(result.points) == [(0, 0, 0), (40, 0, 0)]
        assert result.points[0] is start
        assert "iteration cap" in caplog.text

    def test_shortcut_cap_keeps_path_without_raising(
        self, mesa_scene: Scene, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """The walk fits under the cap, the six-point shortcut pass does not."""
        monkeypatch.setattr(PathConfig, "MAX_ITERATIONS", 4)
        start, end = along(0), along(100)
        with caplog.at_level("WARNING"):
            result = TokenElevationHandler(mesa_scene).construct_path_result(start, end, burrowing=True)
        assert not result.degraded
        assert result.points[0] is start
        assert "Shortcut pass hit" in caplog.text
        assert "Walk hit" not in caplog.text

    def test_walks_that_never_meet_fall_back(
        self, bridge_scene: Scene, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A reverse walk far above the forward one cannot be joined."""

        def high_reverse_walk(scene, start, end, mode, union=None):
            return [along(100, 500), along(0, 500)]

        monkeypatch.setattr(TokenElevationHandler, "construct_path_for", staticmethod(high_reverse_walk))
        handler = TokenElevationHandler(bridge_scene)
        start, end = along(0), along(50, 30)
        with caplog.at_level("ERROR"):
            result = handler.construct_path_result(start, end, flying=True)
        assert result.degraded
        assert isinstance(result.cause, PathConnectionError)
        assert result.points == [start, end]
        assert "partial path [(1.0, 0.0)" in caplog.text
        assert handler.pool.in_use == 0


class TestVerifyPath:
    """TokenElevationHandler.verify_path - sanity bounds."""

    def test_accepts_normal_path(self) -> None:
        TokenElevationHandler.verify_path([along(0), along(50, 20), along(100)])

    @pytest.mark.parametrize(
        "points",
        [
            [],
            [along(i) for i in range(10_000)],
            [along(0), ElevatedPoint(x=math.nan, y=0.0)],
            [along(0), along(50, 2e5)],
            [along(0), along(50, -math.inf)],
        ],
        ids=["empty", "too-long", "nan", "too-high", "infinite"],
    )
    def test_rejects(self, points: list[ElevatedPoint]) -> None:
        with pytest.raises(PathVerificationError):
            TokenElevationHandler.verify_path(points)


# =============================================================================
# TESTS FOR SUPPORT SELECTION
# =============================================================================


class TestNearestSupport:
    """TokenElevationHandler.nearest_support - which shape governs a point."""

    def test_buried_point_is_pushed_to_plateau(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        handler.initialize(along(0), along(100))
        support = handler.nearest_support(CutawayPoint(41, 0))
        assert support.location == ElevationLocation.BELOW
        assert support.elevation == 20
        assert support.region.name == "mesa"

    def test_exclude_falls_through_to_floor(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        handler.initialize(along(0), along(100))
        mesa = handler.nearest_support(CutawayPoint(41, 0)).region
        support = handler.nearest_support(CutawayPoint(41, 0), exclude=mesa)
        assert support.location == ElevationLocation.GROUND
        assert support.region.source is mesa_scene

    def test_ramp_beats_floor_on_tie(self, ramp_scene: Scene) -> None:
        """Both stand at (41, 0); the ramp leaves it at the steeper angle."""
        handler = TokenElevationHandler(ramp_scene)
        handler.initialize(along(0), along(100))
        support = handler.nearest_support(CutawayPoint(41, 0))
        assert support.location == ElevationLocation.GROUND
        assert support.region.name == "ramp"

    def test_highest_above_wins(self, bridge_scene: Scene) -> None:
        handler = TokenElevationHandler(bridge_scene)
        handler.initialize(along(0), along(100))
        support = handler.nearest_support(CutawayPoint(50, 100))
        assert support.location == ElevationLocation.ABOVE
        assert support.elevation == 30

    def test_nothing_covers_point(self, flat_scene: Scene) -> None:
        handler = TokenElevationHandler(flat_scene)
        handler.initialize(along(0), along(100))
        support = handler.nearest_support(CutawayPoint(500, 0))
        assert not support.found
        assert support.elevation == -math.inf

    def test_duplicate_final_waypoints_rejected(self, flat_scene: Scene) -> None:
        handler = TokenElevationHandler(flat_scene)
        handler.initialize(along(0), along(100))
        with pytest.raises(DuplicateWaypointError):
            handler._adjust_endpoint([CutawayPoint(5, 0), CutawayPoint(5, 0)])


class TestCutawayAccess:
    """Region and combined cutaway views of an initialized handler."""

    def test_region_cutaways_keyed_by_source(self, touching_scene: Scene) -> None:
        handler = TokenElevationHandler(touching_scene)
        handler.initialize(along(0), along(100))
        cutaways = handler.region_cutaways
        assert set(cutaways) == {*touching_scene.volumes, touching_scene}

    def test_touching_volumes_merge_with_floor(self, touching_scene: Scene) -> None:
        handler = TokenElevationHandler(touching_scene)
        handler.initialize(along(0), along(100))
        assert len(handler.combined_cutaways) == 1
        assert handler.combined_cutaways[0].is_clockwise

    def test_floor_overlay_stays_separate(self, bridge_scene: Scene) -> None:
        handler = TokenElevationHandler(bridge_scene)
        handler.initialize(along(0), along(100))
        assert len(handler.combined_cutaways) == 2

    def test_projection_maps_endpoints_exactly(self, mesa_scene: Scene) -> None:
        handler = TokenElevationHandler(mesa_scene)
        start, end = along(0), along(100)
        handler.initialize(start, end)
        assert handler.start2d.x == pytest.approx(1)
        assert handler.end2d.x == pytest.approx(101)
        assert handler.from_2d(CutawayPoint(101, 0)) is end
        assert coords([handler.from_2d(CutawayPoint(41, 20))]) == [(40, 0, 20)]
