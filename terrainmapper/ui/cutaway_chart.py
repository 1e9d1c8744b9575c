"""CutawayChart - Plotly rendering of a path query's cutaway plane.

Debugging aid: shows every cutaway polygon the handler built for its current
segment (scene floor, terrain volumes, floor overlays) and optionally the
computed path, all in cutaway coordinates (distance along segment x
elevation).
"""

import logging
from typing import Optional, Sequence

import plotly.graph_objects as go

from terrainmapper.constants import ChartConfig
from terrainmapper.core.cutaway_handler import CutawayRegion
from terrainmapper.generators.token_elevation_handler import TokenElevationHandler
from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.floor_overlay import FloorOverlay
from terrainmapper.model.scene import Scene

logger = logging.getLogger(__name__)


class CutawayChart:
    """Renders cutaways and paths using Plotly.

    Example:
        handler.initialize(start, end)
        fig = CutawayChart(width=900, height=450).render(handler, path=waypoints)
        fig.show()
    """

    def __init__(
        self,
        width: int = ChartConfig.DEFAULT_WIDTH,
        height: int = ChartConfig.DEFAULT_HEIGHT,
    ) -> None:
        self.width = width
        self.height = height

    def render(
        self,
        handler: TokenElevationHandler,
        path: Optional[Sequence[ElevatedPoint]] = None,
        title: Optional[str] = None,
    ) -> go.Figure:
        """Render the handler's cutaways and an optional path.

        Args:
            handler: Handler initialized for a segment
            path: Waypoints to overlay (3D, projected into the cutaway plane)
            title: Optional chart title

        Returns:
            Plotly Figure object.
        """
        if handler.frame is None:
            raise ValueError("Handler must be initialized for a segment before rendering")

        path_xy = [handler.frame.to_2d(p).xy for p in path] if path else []
        tops = [p.y for r in handler.all_regions for poly in r.polygons for p in poly.points]
        tops = [y for y in tops if y > handler.scene.floor_elevation - ChartConfig.CLIP_BELOW_PATH]
        elevations = tops + [y for _, y in path_xy] + [handler.start.elevation, handler.end.elevation]
        min_elev = min(elevations)
        max_elev = max(elevations)
        padding = max(
            (max_elev - min_elev) * ChartConfig.ELEVATION_PADDING_FACTOR,
            ChartConfig.ELEVATION_PADDING_MIN,
        )
        clip = min_elev - padding

        fig = go.Figure()
        for region in handler.all_regions:
            self._add_region(fig, region, clip)

        if path_xy:
            fig.add_trace(
                go.Scatter(
                    x=[x for x, _ in path_xy],
                    y=[y for _, y in path_xy],
                    mode="lines+markers",
                    line=dict(color=ChartConfig.PATH_COLOR, width=3),
                    name="Path",
                    hovertemplate="Distance: %{x:.1f}<br>Elevation: %{y:.1f}<extra></extra>",
                )
            )

        title = title or f"Cutaway {handler.origin_start} -> {handler.origin_end}"
        fig.update_layout(
            title=dict(text=title, x=0.5),
            xaxis=dict(title="Distance along segment", showgrid=True, gridcolor="rgba(200, 200, 200, 0.3)"),
            yaxis=dict(
                title="Elevation",
                showgrid=True,
                gridcolor="rgba(200, 200, 200, 0.3)",
                range=[clip, max_elev + padding],
            ),
            showlegend=True,
            width=self.width,
            height=self.height,
            margin=dict(l=50, r=30, t=50, b=50),
            plot_bgcolor="white",
        )
        return fig

    def _add_region(self, fig: go.Figure, region: CutawayRegion, clip: float) -> None:
        color = self._color_for(region)
        for i, poly in enumerate(region.polygons):
            xs = [p.x for p in poly.points] + [poly.points[0].x]
            ys = [max(p.y, clip) for p in poly.points] + [max(poly.points[0].y, clip)]
            fig.add_trace(
                go.Scatter(
                    x=xs,
                    y=ys,
                    fill="toself",
                    fillcolor=f"rgba{self._hex_to_rgba(hex_color=color, alpha=ChartConfig.FILL_ALPHA)}",
                    line=dict(color=color, width=1),
                    name=region.name if i == 0 else f"{region.name} ({i + 1})",
                    hoverinfo="name",
                )
            )

    def _color_for(self, region: CutawayRegion) -> str:
        if isinstance(region.source, Scene):
            return ChartConfig.SCENE_COLOR
        if isinstance(region.source, FloorOverlay):
            return ChartConfig.FLOOR_COLOR
        return ChartConfig.VOLUME_COLOR

    def _hex_to_rgba(self, hex_color: str, alpha: float) -> tuple:
        """Convert hex color to RGBA tuple."""
        hex_color = hex_color.lstrip("#")
        r = int(hex_color[0:2], 16)
        g = int(hex_color[2:4], 16)
        b = int(hex_color[4:6], 16)
        return (r, g, b, alpha)
