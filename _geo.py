import math
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from shapely.geometry import Point, Polygon, mapping
from shapely.ops import transform
from pyproj import CRS, Transformer

from _config import Config
from _coords import Coordinate, CoordinateType

if TYPE_CHECKING:  # pragma: no cover
    from notam import NotamRecord

logger = logging.getLogger(__name__)

NM_IN_METERS = 1852.0


# ============== Polygon normalization ==============


def _latlon(p) -> Tuple[float, float]:
    if isinstance(p, Coordinate):
        return p.lat, p.lon
    lat, lon = p
    return lat, lon


def shoelace_area(points: Sequence) -> float:
    """
    Planar polygon area in square degrees, from (lat, lon) pairs or Coordinates.
    Only meaningful for comparing polygons with each other (z-ordering,
    overlap), not as a surface area.
      [(0, 0), (1, 0), (1, 1), (0, 1)] -> 1.0
    """
    pts = [_latlon(p) for p in points]
    n = len(pts)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        lat_i, lon_i = pts[i]
        lat_j, lon_j = pts[(i + 1) % n]
        total += lat_i * lon_j - lat_j * lon_i
    return abs(total) / 2.0


def unwrap_antimeridian(group: List[Coordinate]) -> List[Coordinate]:
    """
    Shift longitudes by 360 degrees so consecutive vertices never jump more
    than 180 degrees. Polygons crossing +-180 end up with some longitudes
    outside [-180, 180], e.g. [178, -178] -> [178, 182].
    """
    out: List[Coordinate] = []
    for c in group:
        lon = c.lon
        if out:
            prev = out[-1].lon
            while lon - prev > 180:
                lon -= 360
            while lon - prev < -180:
                lon += 360
        out.append(c if lon == c.lon else replace(c, lon=lon))
    return out


def _orientation(a, b, c) -> float:
    # points are (x, y) = (lon, lat)
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def segments_cross(a, b, c, d) -> bool:
    """True if segment a-b properly crosses segment c-d (touching does not count)."""
    o1 = _orientation(a, b, c)
    o2 = _orientation(a, b, d)
    o3 = _orientation(c, d, a)
    o4 = _orientation(c, d, b)
    return o1 * o2 < 0 and o3 * o4 < 0


def has_self_intersection(group: Sequence[Coordinate]) -> bool:
    pts = [(c.lon, c.lat) for c in group]
    n = len(pts)
    for i in range(n):
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue  # the closing edge is adjacent to the first one
            if segments_cross(pts[i], pts[(i + 1) % n], pts[j], pts[(j + 1) % n]):
                return True
    return False


def repair_self_intersection(group: List[Coordinate]) -> List[Coordinate]:
    """
    Reorder the vertices of a self-intersecting ring by polar angle around
    their mean. The result is simple but may not be the shape that was meant
    for strongly concave inputs. Simple rings are returned unchanged.
    """
    if len(group) < 4 or not has_self_intersection(group):
        return list(group)
    clat = sum(c.lat for c in group) / len(group)
    clon = sum(c.lon for c in group) / len(group)
    logger.debug("Repairing self-intersecting polygon of %d vertices", len(group))
    return sorted(group, key=lambda c: math.atan2(c.lat - clat, c.lon - clon))


def normalize_polygon(group: List[Coordinate]) -> List[Coordinate]:
    """Unwrap, repair and unwrap again, so the ring is simple and contiguous."""
    ring = unwrap_antimeridian(group)
    ring = repair_self_intersection(ring)
    return unwrap_antimeridian(ring)


# ============== Geometry Builders ==============


def local_equal_area_crs(lon: float, lat: float) -> CRS:
    """
    Build a local Azimuthal Equidistant CRS centered on the given lon/lat,
    suitable for buffering distances in meters.
    """
    return CRS.from_proj4(
        f"+proj=aeqd +lat_0={lat} +lon_0={lon} +x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    )


def project_geom(geom, center: Tuple[float, float], inverse=False):
    """
    Project geometry to/from local AEQD centered at 'center' (lon,lat).
    """
    lon0, lat0 = center
    src = CRS.from_epsg(4326)
    dst = local_equal_area_crs(lon0, lat0)
    fwd = Transformer.from_crs(src, dst, always_xy=True).transform
    inv = Transformer.from_crs(dst, src, always_xy=True).transform
    return transform(inv if inverse else fwd, geom)


def build_polygon(group: Sequence[Coordinate]) -> Polygon:
    """
    Build a polygon from a coordinate ring, closing it if needed.
    """
    if len(group) < 3:
        raise ValueError("Polygon requires at least 3 points")
    ring = [(c.lon, c.lat) for c in group]
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    return Polygon(ring)


def build_circle(
    center: Tuple[float, float], radius_m: float, n_points: int = 64
) -> Polygon:
    """
    Build a circle polygon by buffering a point in local AEQD projection.
    """
    lon, lat = center
    proj = project_geom(Point(lon, lat), center=(lon, lat), inverse=False)
    circ = proj.buffer(radius_m, resolution=max(4, n_points // 4))
    return project_geom(circ, center=(lon, lat), inverse=True)


def record_geometry(
    record: "NotamRecord",
    circle_segments: Optional[int] = None,
    max_circle_radius_nm: Optional[float] = None,
):
    """Shapely geometry of a record: ring, circle or point."""
    if record.is_polygon:
        return build_polygon(record.coordinates)
    circle_segments = circle_segments or Config.CIRCLE_SEGMENTS
    if max_circle_radius_nm is None:
        max_circle_radius_nm = Config.MAX_CIRCLE_RADIUS_NM
    c = record.coordinates[0]
    radius_nm = c.radius_nm
    if radius_nm and radius_nm <= max_circle_radius_nm:
        return build_circle((c.lon, c.lat), radius_nm * NM_IN_METERS, circle_segments)
    return Point(c.lon, c.lat)


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def records_to_geojson(
    records: Sequence["NotamRecord"],
    circle_segments: Optional[int] = None,
    max_circle_radius_nm: Optional[float] = None,
) -> Dict[str, Any]:
    fc: Dict[str, Any] = {"type": "FeatureCollection", "features": []}
    for r in records:
        c = r.coordinates[0]
        props = {
            "id": r.id,
            "icao_codes": list(r.icao_codes),
            "is_polygon": r.is_polygon,
            "coordinate_type": c.type.value,
            "radius": None if r.is_polygon else c.radius,
            "radius_unit": None if r.is_polygon else c.radius_unit,
            "area": r.area,
            "start_date": _iso(r.start_date),
            "end_date": _iso(r.end_date),
            "permanent": r.permanent,
            "estimated": r.estimated,
            "text": r.full_content,
        }
        geom = record_geometry(r, circle_segments, max_circle_radius_nm)
        fc["features"].append(
            {"type": "Feature", "geometry": mapping(geom), "properties": props}
        )
    return fc


# ============== Grouping for map consumers ==============


def location_key(lat: float, lon: float, precision: Optional[int] = None) -> str:
    """Rounded location key; 4 decimals is roughly 10 m."""
    if precision is None:
        precision = Config.LOCATION_PRECISION
    return f"{lat:.{precision}f}_{lon:.{precision}f}"


@dataclass
class LocationGroup:
    lat: float
    lon: float
    location_key: str
    icao_codes: List[str]
    records: List["NotamRecord"] = field(default_factory=list)
    has_qualifier_line: bool = False
    radius_nm: Optional[float] = None


def group_by_location(
    records: Sequence["NotamRecord"],
    show_all: bool = False,
    precision: Optional[int] = None,
) -> Dict[str, LocationGroup]:
    """
    Group point records sharing a rounded location and the same set of ICAO
    locations, one marker per group. Q) line centres are coarse and only
    included with ``show_all``.
    """
    groups: Dict[str, LocationGroup] = {}
    for r in records:
        if r.is_polygon:
            continue
        for c in r.coordinates:
            if c.type is CoordinateType.QUALIFIER_LINE and not show_all:
                continue
            loc = location_key(c.lat, c.lon, precision)
            key = f"{loc}_{','.join(sorted(r.icao_codes))}"
            group = groups.get(key)
            if group is None:
                group = groups[key] = LocationGroup(
                    lat=c.lat, lon=c.lon, location_key=loc, icao_codes=list(r.icao_codes)
                )
            group.records.append(r)
            if c.type is CoordinateType.QUALIFIER_LINE:
                group.has_qualifier_line = True
            if c.radius_nm:
                group.radius_nm = c.radius_nm
    return groups


def group_polygons_by_centroid(
    records: Sequence["NotamRecord"], precision: Optional[int] = None
) -> Dict[str, List["NotamRecord"]]:
    """
    Polygon records keyed by their rounded centroid. Within a key the largest
    area comes first so smaller overlapping areas can be drawn on top.
    """
    groups: Dict[str, List["NotamRecord"]] = {}
    for r in records:
        if not r.is_polygon:
            continue
        centroid = build_polygon(r.coordinates).centroid
        groups.setdefault(location_key(centroid.y, centroid.x, precision), []).append(r)
    for members in groups.values():
        members.sort(key=lambda r: r.area, reverse=True)
    return groups
