"""
Body Catalog
============

Static orbital-element dataset for the solar system, plus loaders for
externally supplied body trees (nested dicts or JSON files).

Elements are heliocentric J2000-style mean elements for planets and
parent-relative elements for moons. Moons of bodies with `ecliptic=False`
are referenced to the parent's equatorial plane.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .celestial import CelestialBody, OrbitalElements

logger = logging.getLogger(__name__)


def _body(name, mass, parent, a=None, e=0.0, i=0.0, omega=0.0, w=0.0, M0=0.0,
          radius_scale=1.0, axial_tilt_deg=0.0, ecliptic=False) -> CelestialBody:
    elements = None
    if a is not None:
        elements = OrbitalElements(a, e, i, omega, w, M0)
    return CelestialBody(
        name=name,
        mass=mass,
        elements=elements,
        parent=parent,
        radius_scale=radius_scale,
        axial_tilt_deg=axial_tilt_deg,
        ecliptic=ecliptic,
    )


SOLAR_SYSTEM = (
    _body('Sun', 1.0, None, radius_scale=1.0, axial_tilt_deg=7.25, ecliptic=True),
    
    _body('Mercury', 1.66013e-7, 'Sun', 0.387098, 0.205630, 7.005, 48.331, 29.124, 174.796,
          radius_scale=0.00350366313, axial_tilt_deg=0.034),
    _body('Venus', 2.44783e-6, 'Sun', 0.723332, 0.006772, 3.395, 76.680, 54.884, 50.115,
          radius_scale=0.00869074857, axial_tilt_deg=177.4),
    _body('Earth', 3.00348e-6, 'Sun', 1.000001, 0.016709, 0.000, 0.000, 114.208, 357.529,
          radius_scale=0.00915921329, axial_tilt_deg=23.44, ecliptic=True),
    _body('Moon', 3.69396e-8, 'Earth', 0.00257, 0.0549, 5.1, 125.0, 318.0, 135.0,
          radius_scale=0.274, axial_tilt_deg=1.54),
    _body('Mars', 3.22715e-7, 'Sun', 1.523679, 0.093401, 1.850, 49.558, 286.502, 19.373,
          radius_scale=0.00486745707, axial_tilt_deg=25.19),
    
    _body('Jupiter', 9.54265e-4, 'Sun', 5.204267, 0.048498, 1.303, 100.464, 273.867, 20.020,
          radius_scale=0.10039681989, axial_tilt_deg=3.13),
    _body('Io', 4.704e-9, 'Jupiter', 0.002819, 0.0041, 0.05, 43.977, 84.129, 0.0,
          radius_scale=0.026, axial_tilt_deg=0.05),
    _body('Europa', 2.528e-9, 'Jupiter', 0.004486, 0.009, 0.47, 219.106, 88.970, 90.0,
          radius_scale=0.022, axial_tilt_deg=0.1),
    _body('Ganymede', 7.805e-9, 'Jupiter', 0.007155, 0.0013, 0.20, 63.552, 192.417, 180.0,
          radius_scale=0.038, axial_tilt_deg=0.33),
    _body('Callisto', 5.670e-9, 'Jupiter', 0.01258, 0.0074, 0.51, 298.848, 52.643, 270.0,
          radius_scale=0.034, axial_tilt_deg=0.51),
    
    _body('Saturn', 2.85885e-4, 'Sun', 9.582017, 0.055723, 2.485, 113.665, 339.392, 317.020,
          radius_scale=0.08362569044, axial_tilt_deg=26.73),
    _body('Mimas', 1.972e-12, 'Saturn', 0.001241, 0.0196, 0.02, 139.1, 342.2, 0.0,
          radius_scale=0.0034, axial_tilt_deg=0.02),
    _body('Enceladus', 5.655e-12, 'Saturn', 0.001593, 0.0047, 0.02, 6.2, 211.9, 90.0,
          radius_scale=0.0043),
    _body('Tethys', 3.09e-11, 'Saturn', 0.001975, 0.0001, 0.02, 158.3, 262.2, 180.0,
          radius_scale=0.0091, axial_tilt_deg=0.02),
    _body('Dione', 5.48e-11, 'Saturn', 0.002523, 0.0022, 0.02, 168.8, 91.1, 270.0,
          radius_scale=0.0096, axial_tilt_deg=0.02),
    _body('Titan', 6.741e-9, 'Saturn', 0.008168, 0.0288, 0.02, 28.1, 180.5, 0.0,
          radius_scale=0.044, axial_tilt_deg=0.02),
    _body('Iapetus', 9.09e-11, 'Saturn', 0.0238, 0.0286, 8.13, 75.8, 271.6, 90.0,
          radius_scale=0.0126, axial_tilt_deg=8.13),
    
    _body('Uranus', 4.36625e-5, 'Sun', 19.18917, 0.047168, 0.773, 74.006, 96.998, 142.238,
          radius_scale=0.03642099424, axial_tilt_deg=97.77),
    _body('Neptune', 5.15138e-5, 'Sun', 30.06896, 0.008606, 1.770, 131.784, 276.336, 256.228,
          radius_scale=0.03535880191, axial_tilt_deg=28.32),
    _body('Pluto', 6.58719e-9, 'Sun', 39.48211, 0.248808, 17.140, 110.299, 113.834, 0.0,
          radius_scale=0.00170648732, axial_tilt_deg=122.53),
    _body('Charon', 8.08e-10, 'Pluto', 0.000131, 0.0002, 0.08, 223.0, 102.0, 180.0,
          radius_scale=0.511, axial_tilt_deg=0.08),
)


def body_from_dict(data: dict, parent: Optional[str] = None) -> CelestialBody:
    """
    Create a body from a record.
    
    Args:
        data: Record with name, mass, parent and the short element keys
            (a, e, i, omega, w, M0); radiusScale/axialTilt/ecliptic optional
        parent: Parent name used when the record does not carry one
    
    Returns:
        CelestialBody
    """
    parent_name = data.get('parent', parent)
    elements = OrbitalElements.from_dict(data) if data.get('a') is not None else None
    return CelestialBody(
        name=data.get('name', ''),
        mass=float(data.get('mass', 0.0)),
        elements=elements,
        parent=parent_name,
        radius_scale=float(data.get('radiusScale', data.get('radius_scale', 1.0))),
        axial_tilt_deg=float(data.get('axialTilt', data.get('axial_tilt_deg', 0.0))),
        ecliptic=bool(data.get('ecliptic', False)),
    )


def bodies_from_records(records: Iterable[dict]) -> List[CelestialBody]:
    """
    Flatten a (possibly nested) list of body records.
    
    Nested records list their moons under `children`; a child without an
    explicit `parent` key inherits its enclosing record's name. A record
    with unreadable values is skipped and logged; its children are still
    returned and left for the hierarchy builder to exclude as orphans.
    """
    bodies = []
    
    def _walk(items, parent_name):
        for record in items:
            try:
                body = body_from_dict(record, parent=parent_name)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping body record '%s': %s", record.get('name', ''), exc)
            else:
                bodies.append(body)
            _walk(record.get('children', ()), record.get('name', ''))
    
    _walk(records, None)
    return bodies


def load_catalog(path: Union[str, Path]) -> List[CelestialBody]:
    """Load a body tree from a JSON file (a list of records or {"bodies": [...]})."""
    data = json.loads(Path(path).read_text(encoding='utf-8'))
    if isinstance(data, dict):
        data = data.get('bodies', [])
    return bodies_from_records(data)


def solar_system() -> List[CelestialBody]:
    """Return the built-in solar-system catalog."""
    return list(SOLAR_SYSTEM)


def sun_earth_moon() -> List[CelestialBody]:
    """Return the Sun, Earth and Moon from the built-in catalog."""
    return [body for body in SOLAR_SYSTEM if body.name in ('Sun', 'Earth', 'Moon')]
