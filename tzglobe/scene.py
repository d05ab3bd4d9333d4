# tzglobe/scene.py
"""3D scene capabilities used by the sphere renderer.

The renderer never touches a graphics library directly. It asks a
SceneBackend for groups, shapes, line loops and meshes, and attaches them
under a globe object. Two pieces live here:

- SceneBackend: the capability contract a host environment implements
- MeshSceneBackend / GlobeSurface: a headless implementation that keeps plain
  vertex buffers in memory and can serialize them for a browser client

Disposal is explicit: detaching a node from its parent does not release its
buffers, dispose() does.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import shapely
from shapely.geometry import Polygon

from tzglobe.geometry import Ring, Vec3

LonLat = Tuple[float, float]
Face = Tuple[int, int, int]

MAGENTA = 0xFF00FF


@dataclass(frozen=True)
class BorderStyle:
    """Semi-transparent magenta outline, painted above the fill."""
    color: int = MAGENTA
    opacity: float = 0.9
    linewidth: float = 2
    transparent: bool = True
    depth_test: bool = True
    depth_write: bool = False
    render_order: int = 2
    frustum_culled: bool = False


@dataclass(frozen=True)
class FillStyle:
    """Translucent magenta fill, painted behind the border."""
    color: int = MAGENTA
    opacity: float = 0.15
    transparent: bool = True
    depth_test: bool = True
    depth_write: bool = False
    blending: str = "normal"
    side: str = "front"
    polygon_offset: bool = True
    polygon_offset_factor: float = -1
    polygon_offset_units: float = -1
    render_order: int = 1


@dataclass
class Shape:
    """Flat 2D outline in (lon, lat) space with optional holes."""
    outline: Ring
    holes: List[Ring]


class SceneBackend(ABC):
    """Capabilities a host 3D environment supplies to the renderer."""

    @abstractmethod
    def create_group(self, name: str, render_order: int = 0) -> Any:
        """Empty named group node."""

    @abstractmethod
    def create_shape(self, outline: Ring, holes: Sequence[Ring]) -> Any:
        """2D shape (outline plus hole paths) in (lon, lat) space."""

    @abstractmethod
    def triangulate(self, shape: Any) -> Tuple[List[LonLat], List[Face]]:
        """Triangulate a shape with holes.

        Returns:
            (vertices, faces): vertices are the shape's own (lon, lat) points,
            faces index into them
        """

    @abstractmethod
    def create_line_loop(self, points: Sequence[Vec3], style: BorderStyle) -> Any:
        """Closed polyline through the given 3D points."""

    @abstractmethod
    def create_mesh(self, positions: Sequence[Vec3], faces: Sequence[Face], style: FillStyle) -> Any:
        """Indexed triangle mesh."""


# ---------------------------------------------------------------------------
# Headless scene graph
# ---------------------------------------------------------------------------

class BufferGeometry:
    def __init__(self, positions: Sequence[Vec3], index: Optional[Sequence[int]] = None):
        self.positions: Optional[List[Vec3]] = [tuple(p) for p in positions]
        self.index: Optional[List[int]] = list(index) if index is not None else None
        self.disposed = False

    @property
    def count(self) -> int:
        return len(self.positions) if self.positions is not None else 0

    def bounding_radius(self) -> float:
        if not self.positions:
            return 0.0
        return max((x * x + y * y + z * z) ** 0.5 for x, y, z in self.positions)

    def dispose(self):
        self.positions = None
        self.index = None
        self.disposed = True


class Material:
    def __init__(self, style):
        self.style = style
        self.disposed = False

    def dispose(self):
        self.disposed = True


class SceneNode:
    """Minimal scene-graph node: name, paint order, parent and children."""

    kind = "Object3D"

    def __init__(self, name: str = "", render_order: int = 0):
        self.name = name
        self.render_order = render_order
        self.parent: Optional["SceneNode"] = None
        self.children: List["SceneNode"] = []

    def add(self, child: "SceneNode"):
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)

    def remove(self, child: "SceneNode"):
        if child in self.children:
            self.children.remove(child)
            child.parent = None

    def get_object_by_name(self, name: str) -> Optional["SceneNode"]:
        """Depth-first search of this node and its descendants."""
        if self.name == name:
            return self
        for child in self.children:
            found = child.get_object_by_name(name)
            if found is not None:
                return found
        return None

    def dispose(self):
        pass

    def to_dict(self) -> Dict:
        return {
            "type": self.kind,
            "name": self.name,
            "render_order": self.render_order,
            "children": [child.to_dict() for child in self.children],
        }


class SceneGroup(SceneNode):
    kind = "Group"


class _Drawable(SceneNode):
    def __init__(self, geometry: BufferGeometry, material: Material, render_order: int):
        super().__init__(render_order=render_order)
        self.geometry = geometry
        self.material = material

    def dispose(self):
        """Release geometry buffers and the material."""
        self.geometry.dispose()
        self.material.dispose()

    @property
    def disposed(self) -> bool:
        return self.geometry.disposed and self.material.disposed

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["positions"] = [list(p) for p in (self.geometry.positions or [])]
        if self.geometry.index is not None:
            data["index"] = list(self.geometry.index)
        data["material"] = asdict(self.material.style)
        return data


class LineLoop(_Drawable):
    kind = "LineLoop"

    def __init__(self, geometry: BufferGeometry, material: Material, render_order: int = 0,
                 frustum_culled: bool = True):
        super().__init__(geometry, material, render_order)
        self.frustum_culled = frustum_culled


class Mesh(_Drawable):
    kind = "Mesh"


class GlobeSurface(SceneNode):
    """Headless stand-in for the globe mesh: a sphere of `radius` scaled by `scale`."""

    kind = "Globe"

    def __init__(self, radius: float = 1.0, scale: float = 1.0, name: str = "globe"):
        super().__init__(name=name)
        self.radius = radius
        self.scale = scale

    def bounding_radius(self) -> float:
        return self.radius * self.scale


class MeshSceneBackend(SceneBackend):
    """Headless backend: in-memory buffers, shapely triangulation."""

    def create_group(self, name: str, render_order: int = 0) -> SceneGroup:
        return SceneGroup(name=name, render_order=render_order)

    def create_shape(self, outline: Ring, holes: Sequence[Ring]) -> Shape:
        return Shape(outline=[list(p) for p in outline], holes=[[list(p) for p in h] for h in holes])

    def triangulate(self, shape: Shape) -> Tuple[List[LonLat], List[Face]]:
        """Constrained Delaunay triangulation of the shape (holes excluded).

        No Steiner points are added, so every output vertex is one of the
        shape's own (lon, lat) points.

        Raises:
            shapely.errors.GEOSException: for geometry GEOS cannot triangulate
        """
        polygon = Polygon(shape.outline, holes=shape.holes)
        triangles = shapely.constrained_delaunay_triangles(polygon)

        vertices: List[LonLat] = []
        lookup: Dict[LonLat, int] = {}
        faces: List[Face] = []

        for triangle in shapely.get_parts(triangles):
            corners = list(triangle.exterior.coords)[:3]
            face = []
            for lon, lat in corners:
                key = (lon, lat)
                if key not in lookup:
                    lookup[key] = len(vertices)
                    vertices.append(key)
                face.append(lookup[key])
            faces.append(tuple(face))

        return vertices, faces

    def create_line_loop(self, points: Sequence[Vec3], style: BorderStyle) -> LineLoop:
        return LineLoop(
            BufferGeometry(points),
            Material(style),
            render_order=style.render_order,
            frustum_culled=style.frustum_culled,
        )

    def create_mesh(self, positions: Sequence[Vec3], faces: Sequence[Face], style: FillStyle) -> Mesh:
        index = [i for face in faces for i in face]
        return Mesh(BufferGeometry(positions, index), Material(style), render_order=style.render_order)
