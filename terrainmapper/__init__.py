"""Terrain Mapper - Elevation-aware movement over designer-placed terrain.

Computes the 3D waypoints a mover follows along a straight horizontal
movement, given terrain volumes (plateaus, ramps, stepped ramps) and floor
overlays placed on a map:
- Walking movers climb onto, walk along and fall off terrain
- Burrowing movers tunnel straight through solid terrain where they can
- Flying movers cut straight through open air where they can

Modules:
    core: Cutaway geometry (projection, polygons, classification, union)
    model: Data structures (ElevatedPoint, MovementMode, TerrainVolume, FloorOverlay, Scene)
    generators: Path construction (TokenElevationHandler)
    ui: Plotly debugging chart of cutaways and paths

Example:
    from terrainmapper.model import ElevatedPoint, Scene, TerrainVolume
    from terrainmapper.generators import TokenElevationHandler
"""
