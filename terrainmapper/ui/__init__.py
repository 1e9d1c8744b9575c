"""Debugging views for path queries.

- cutaway_chart.py: Plotly chart of a handler's cutaways and a path
"""

from terrainmapper.ui.cutaway_chart import CutawayChart

__all__ = [
    "CutawayChart",
]
