"""
Tile helpers for the island grid.

Tiles are addressed by "row,col" string keys, the same form used on the
wire. Adjacency is cardinal only (up, down, left, right).
"""

from collections.abc import Iterable


CARDINAL_DIRECTIONS = ((-1, 0), (1, 0), (0, -1), (0, 1))


def tile_key(row: int, col: int) -> str:
    return f"{row},{col}"


def parse_tile(key: str) -> tuple[int, int]:
    """Split a "row,col" key into integers.

    Raises:
        ValueError: If the key is not two comma separated integers
    """
    row, col = key.split(",")
    return int(row), int(col)


def cardinal_neighbors(key: str) -> list[str]:
    row, col = parse_tile(key)
    return [tile_key(row + dr, col + dc) for dr, dc in CARDINAL_DIRECTIONS]


def adjacent_tiles(
    explored_tiles: Iterable[str],
    land_tiles: Iterable[str],
    water_tiles: Iterable[str],
) -> set[str]:
    """
    Tiles that may legally be revealed this turn.

    A tile qualifies when it cardinally borders an explored tile, exists in
    the land or water set, and is not explored yet.

    Example:
        >>> adjacent_tiles(["1,1"], ["1,1", "1,2", "2,2"], ["0,1"])
        {'0,1', '1,2'}
    """
    explored = set(explored_tiles)
    universe = set(land_tiles) | set(water_tiles)

    adjacent = set()
    for tile in explored:
        for neighbor in cardinal_neighbors(tile):
            if neighbor in universe and neighbor not in explored:
                adjacent.add(neighbor)
    return adjacent

