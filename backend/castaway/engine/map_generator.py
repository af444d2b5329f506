"""
Island map generation.

The island is a square grid that starts as all land. A few edge tiles are
turned into water, and the layout is kept only if the land stays in one
cardinally connected piece where every land tile has at least two land
neighbours. Resources are then scattered over beach and grass tiles.
"""

import logging
import random
from collections import deque

from castaway.engine.tiles import CARDINAL_DIRECTIONS, parse_tile, tile_key
from castaway.models.room import MapState, ResourceTiles

logger = logging.getLogger(__name__)


MAP_SIZE = 5
WATER_EDGE_TILES = 3
MAX_ATTEMPTS = 100
NEARBY_RADIUS = 2


def is_beach_tile(tile: str, water_tiles: set[str], map_size: int = MAP_SIZE) -> bool:
    """A land tile is beach if any cardinal neighbour is water or off the map."""
    row, col = parse_tile(tile)
    for dr, dc in CARDINAL_DIRECTIONS:
        n_row, n_col = row + dr, col + dc
        if n_row < 0 or n_row >= map_size or n_col < 0 or n_col >= map_size:
            return True
        if tile_key(n_row, n_col) in water_tiles:
            return True
    return False


def is_connected(land_tiles: set[str]) -> bool:
    """Flood fill from any land tile; all land must be reached."""
    if not land_tiles:
        return False

    start = next(iter(land_tiles))
    visited = {start}
    queue = deque([start])
    while queue:
        row, col = parse_tile(queue.popleft())
        for dr, dc in CARDINAL_DIRECTIONS:
            neighbor = tile_key(row + dr, col + dc)
            if neighbor in land_tiles and neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)

    return len(visited) == len(land_tiles)


def all_tiles_have_two_neighbors(land_tiles: set[str]) -> bool:
    for tile in land_tiles:
        row, col = parse_tile(tile)
        count = sum(
            1 for dr, dc in CARDINAL_DIRECTIONS
            if tile_key(row + dr, col + dc) in land_tiles
        )
        if count < 2:
            return False
    return True


def _edge_tiles(map_size: int) -> list[str]:
    return [
        tile_key(row, col)
        for row in range(map_size)
        for col in range(map_size)
        if row in (0, map_size - 1) or col in (0, map_size - 1)
    ]


def _pick(rng: random.Random, candidates: list[str], used: set[str]) -> str | None:
    available = [t for t in candidates if t not in used]
    if not available:
        return None
    choice = rng.choice(available)
    used.add(choice)
    return choice


def _place_resources(
    rng: random.Random,
    starting_tile: str,
    beach_tiles: list[str],
    grass_tiles: list[str],
) -> ResourceTiles:
    """Scatter resources, never stacking two on one tile or on the start."""
    used = {starting_tile}
    resources = ResourceTiles()

    resources.herbs = _pick(rng, grass_tiles, used)
    resources.deer = _pick(rng, grass_tiles, used)

    # The bottle washes up right next to the survivors (diagonals count)
    start_row, start_col = parse_tile(starting_tile)
    near_start = []
    for tile in beach_tiles:
        row, col = parse_tile(tile)
        if tile != starting_tile and abs(row - start_row) <= 1 and abs(col - start_col) <= 1:
            near_start.append(tile)
    resources.bottle = _pick(rng, near_start, used)

    resources.coconut = _pick(rng, beach_tiles, used)
    resources.spring = _pick(rng, grass_tiles, used)

    for _ in range(2):
        clam = _pick(rng, beach_tiles, used)
        if clam:
            resources.clams.append(clam)

    return resources


def generate_map(rng: random.Random | None = None, map_size: int = MAP_SIZE) -> MapState:
    """
    Generate a fresh island.

    Args:
        rng: Random source (module random if None)
        map_size: Width and height of the square grid

    Returns:
        MapState with only the starting tile explored
    """
    rng = rng or random.Random()
    all_tiles = [tile_key(r, c) for r in range(map_size) for c in range(map_size)]
    edges = _edge_tiles(map_size)

    for attempt in range(1, MAX_ATTEMPTS + 1):
        water_tiles = set(rng.sample(edges, WATER_EDGE_TILES))
        land_tiles = set(all_tiles) - water_tiles

        if not (is_connected(land_tiles) and all_tiles_have_two_neighbors(land_tiles)):
            continue

        beach_tiles = sorted(t for t in land_tiles if is_beach_tile(t, water_tiles, map_size))
        grass_tiles = sorted(t for t in land_tiles if t not in beach_tiles)

        starting_tile = rng.choice(beach_tiles) if beach_tiles else sorted(land_tiles)[0]
        resource_tiles = _place_resources(rng, starting_tile, beach_tiles, grass_tiles)

        logger.debug(f"Island generated after {attempt} attempt(s), start at {starting_tile}")
        return MapState(
            land_tiles=sorted(land_tiles),
            water_tiles=sorted(water_tiles),
            starting_tile=starting_tile,
            explored_tiles=[starting_tile],
            resource_tiles=resource_tiles,
        )

    logger.warning(f"No valid island after {MAX_ATTEMPTS} attempts, using all-land fallback")
    starting_tile = tile_key(0, 0)
    return MapState(
        land_tiles=all_tiles,
        water_tiles=[],
        starting_tile=starting_tile,
        explored_tiles=[starting_tile],
        resource_tiles=ResourceTiles(),
    )


def summarize_map(map_state: MapState | None, depletion: dict[str, bool]) -> dict | None:
    """
    Condense the map into what narration needs to know.

    Returns:
        Dict with explored/total counts, the starting tile, whether unexplored
        tiles remain near the start, and every revealed resource with its
        collected flag. None if there is no map yet.
    """
    if map_state is None:
        return None

    explored = set(map_state.explored_tiles)
    universe = map_state.all_tiles()

    start_row, start_col = parse_tile(map_state.starting_tile)
    nearby_unexplored = any(
        tile_key(start_row + dr, start_col + dc) in universe
        and tile_key(start_row + dr, start_col + dc) not in explored
        for dr in range(-NEARBY_RADIUS, NEARBY_RADIUS + 1)
        for dc in range(-NEARBY_RADIUS, NEARBY_RADIUS + 1)
    )

    revealed = [
        {"type": name, "tile": tile, "collected": depletion.get(key, False)}
        for name, tile, key in map_state.resource_tiles.located()
        if tile in explored
    ]

    return {
        "explored_tiles": len(explored),
        "total_tiles": len(universe),
        "starting_tile": map_state.starting_tile,
        "nearby_unexplored": nearby_unexplored,
        "revealed_resources": revealed,
    }
