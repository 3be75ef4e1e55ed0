import numpy as np
import logging
from typing import Dict, List, Tuple, Optional, Any
from dataclasses import dataclass
from scipy.ndimage import binary_dilation, binary_erosion, generate_binary_structure

FREE = 0
OCCUPIED = 1
DILATED = 2


@dataclass
class VolumeInfo:
    """Summary of the occupancy volume contents."""
    dimensions: Tuple[int, int, int]
    voxel_width: float
    origin: Tuple[float, float, float]
    corner: Tuple[float, float, float]
    dilation_steps: int
    occupied_cells: int
    dilated_cells: int
    free_cells: int
    initialized: bool


class OccupancyVolume:
    """
    Voxelized free/occupied classification of an axis-aligned box.

    The volume is filled exactly once from a point cloud and dilated once by
    the configured safety radius; afterwards the underlying array is
    write-protected.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.map_bound = [float(v) for v in config.get('map_bound', [-25.0, 25.0, -25.0, 25.0, 0.0, 5.0])]
        if len(self.map_bound) != 6:
            raise ValueError(f"map_bound needs 6 values, got {len(self.map_bound)}")

        self.voxel_width = float(config.get('voxel_width', 0.25))
        self.dilate_radius = float(config.get('dilate_radius', 0.5))

        self._origin = np.array([self.map_bound[0], self.map_bound[2], self.map_bound[4]])
        spans = np.array([
            self.map_bound[1] - self.map_bound[0],
            self.map_bound[3] - self.map_bound[2],
            self.map_bound[5] - self.map_bound[4]
        ])

        # small epsilon keeps exact multiples of the voxel width from losing a cell
        self.dimensions = tuple(int(np.floor(s / self.voxel_width + 1e-9)) for s in spans)
        if min(self.dimensions) <= 0:
            raise ValueError(f"Map bound {self.map_bound} is smaller than one voxel")

        self._corner = self._origin + np.array(self.dimensions) * self.voxel_width

        self.grid = np.zeros(self.dimensions, dtype=np.int8)
        self.dilation_steps = int(np.ceil(self.dilate_radius / self.voxel_width))
        self.initialized = False

        self.logger.info(f"Occupancy volume: {self.dimensions} voxels, {self.voxel_width}m resolution")
        self.logger.info(f"Dilation: {self.dilate_radius}m ({self.dilation_steps} voxels)")

    @property
    def origin(self) -> np.ndarray:
        return self._origin.copy()

    @property
    def corner(self) -> np.ndarray:
        return self._corner.copy()

    @property
    def scale(self) -> float:
        return self.voxel_width

    def build(self, points: Any) -> bool:
        """
        Fill the volume from a point cloud and dilate it.

        Args:
            points: Array-like of shape (N, 3); rows with NaN/Inf are dropped

        Returns:
            True if this call initialized the volume, False if it was already built
            or the input is malformed
        """
        if self.initialized:
            self.logger.debug("Occupancy volume already initialized, ignoring input")
            return False

        try:
            cloud = np.asarray(points, dtype=float)
        except (TypeError, ValueError) as e:
            self.logger.warning(f"Occupancy input is not numeric, ignoring: {e}")
            return False

        if cloud.ndim != 2 or cloud.shape[1] != 3:
            if cloud.size == 0:
                cloud = cloud.reshape(0, 3)
            else:
                self.logger.warning(f"Occupancy input must have shape (N, 3), got {cloud.shape}; ignoring")
                return False

        finite = np.all(np.isfinite(cloud), axis=1)
        dropped = int(np.count_nonzero(~finite))
        cloud = cloud[finite]

        indices = np.floor((cloud - self._origin) / self.voxel_width).astype(int)
        inside = np.all((indices >= 0) & (indices < np.array(self.dimensions)), axis=1)
        indices = indices[inside]

        self.grid[indices[:, 0], indices[:, 1], indices[:, 2]] = OCCUPIED

        self._dilate(self.dilation_steps)

        self.grid.setflags(write=False)
        self.initialized = True

        info = self.get_info()
        self.logger.info(f"Occupancy volume built from {len(cloud)} points "
                         f"({dropped} non-finite dropped, {len(cloud) - len(indices)} out of bound)")
        self.logger.info(f"Occupied: {info.occupied_cells}, dilated: {info.dilated_cells}, free: {info.free_cells}")
        return True

    def _dilate(self, steps: int):
        if steps <= 0:
            return

        occupied = self.grid == OCCUPIED
        structure = generate_binary_structure(3, 3)
        grown = binary_dilation(occupied, structure=structure, iterations=steps)

        self.grid[grown & ~occupied] = DILATED

    def world_to_grid(self, world_pos: Any) -> Tuple[int, int, int]:
        idx = np.floor((np.asarray(world_pos, dtype=float) - self._origin) / self.voxel_width).astype(int)
        return (int(idx[0]), int(idx[1]), int(idx[2]))

    def grid_to_world(self, grid_pos: Tuple[int, int, int]) -> np.ndarray:
        return self._origin + (np.asarray(grid_pos, dtype=float) + 0.5) * self.voxel_width

    def in_bounds(self, grid_pos: Tuple[int, int, int]) -> bool:
        x, y, z = grid_pos
        return (0 <= x < self.dimensions[0] and
                0 <= y < self.dimensions[1] and
                0 <= z < self.dimensions[2])

    def query_index(self, grid_pos: Tuple[int, int, int]) -> int:
        if not self.in_bounds(grid_pos):
            return OCCUPIED
        return int(self.grid[grid_pos])

    def query(self, world_pos: Any) -> int:
        """
        Classify a world point.

        Returns:
            0 for free, 1 for occupied (or outside the bound), 2 for dilated
        """
        pos = np.asarray(world_pos, dtype=float)
        if not np.all(np.isfinite(pos)):
            return OCCUPIED
        return self.query_index(self.world_to_grid(pos))

    def is_free(self, world_pos: Any) -> bool:
        return self.query(world_pos) == FREE

    def is_free_index(self, grid_pos: Tuple[int, int, int]) -> bool:
        return self.query_index(grid_pos) == FREE

    def are_free(self, world_points: np.ndarray) -> np.ndarray:
        """Vectorized free test for an (N, 3) array of world points."""
        pts = np.asarray(world_points, dtype=float).reshape(-1, 3)
        idx = np.floor((pts - self._origin) / self.voxel_width).astype(int)
        inside = np.all((idx >= 0) & (idx < np.array(self.dimensions)), axis=1)

        result = np.zeros(len(pts), dtype=bool)
        if np.any(inside):
            cells = idx[inside]
            result[inside] = self.grid[cells[:, 0], cells[:, 1], cells[:, 2]] == FREE
        return result

    def surface(self) -> np.ndarray:
        """
        Centres of non-free voxels that touch a free voxel (6-neighbourhood).

        Returns:
            Array of shape (M, 3) in world coordinates
        """
        blocked = self.grid != FREE
        if not np.any(blocked):
            return np.zeros((0, 3))

        interior = binary_erosion(blocked, structure=generate_binary_structure(3, 1), border_value=1)
        cells = np.argwhere(blocked & ~interior)

        return self._origin + (cells + 0.5) * self.voxel_width

    def get_info(self) -> VolumeInfo:
        occupied_cells = int(np.sum(self.grid == OCCUPIED))
        dilated_cells = int(np.sum(self.grid == DILATED))
        free_cells = int(np.sum(self.grid == FREE))

        return VolumeInfo(
            dimensions=self.dimensions,
            voxel_width=self.voxel_width,
            origin=tuple(self._origin.tolist()),
            corner=tuple(self._corner.tolist()),
            dilation_steps=self.dilation_steps,
            occupied_cells=occupied_cells,
            dilated_cells=dilated_cells,
            free_cells=free_cells,
            initialized=self.initialized
        )
