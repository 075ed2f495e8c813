import json
import logging

from orrery.bodies.catalog import bodies_from_records, body_from_dict, load_catalog, solar_system
from orrery.bodies.hierarchy import build_hierarchy


def test_body_from_dict_reads_short_element_keys():
    body = body_from_dict({'name': 'Moon', 'mass': 3.7e-8, 'parent': 'Earth',
                           'a': 0.00257, 'e': 0.0549, 'i': 5.1, 'omega': 125.0, 'w': 318.0, 'M0': 135.0,
                           'radiusScale': 0.274, 'axialTilt': 1.54})

    assert body.parent == 'Earth'
    assert body.elements.semi_major_axis_au == 0.00257
    assert body.elements.longitude_of_ascending_node_deg == 125.0
    assert body.elements.argument_of_periapsis_deg == 318.0
    assert body.radius_scale == 0.274
    assert body.axial_tilt_deg == 1.54
    assert body.ecliptic is False


def test_nested_children_inherit_parent_name():
    records = [{
        'name': 'Sun', 'mass': 1.0, 'ecliptic': True,
        'children': [{
            'name': 'Earth', 'mass': 3e-6, 'a': 1.0,
            'children': [{'name': 'Moon', 'mass': 3.7e-8, 'a': 0.00257}],
        }],
    }]

    bodies = bodies_from_records(records)

    assert [(b.name, b.parent) for b in bodies] == [('Sun', None), ('Earth', 'Sun'), ('Moon', 'Earth')]
    assert build_hierarchy(bodies).names == ['Sun', 'Earth', 'Moon']


def test_load_catalog_accepts_bodies_key(tmp_path):
    path = tmp_path / "system.json"
    path.write_text(json.dumps({'bodies': [
        {'name': 'Star', 'mass': 2.0},
        {'name': 'World', 'mass': 1e-6, 'parent': 'Star', 'a': 3.0, 'e': 0.1},
    ]}))

    bodies = load_catalog(path)

    assert [b.name for b in bodies] == ['Star', 'World']
    assert bodies[1].elements.eccentricity == 0.1


def test_builtin_catalog_reference_planes():
    bodies = {b.name: b for b in solar_system()}

    assert bodies['Sun'].ecliptic and bodies['Earth'].ecliptic
    assert not bodies['Jupiter'].ecliptic
    assert all(b.problems() == [] for b in bodies.values())


def test_unreadable_record_is_skipped_and_logged(tmp_path, caplog):
    path = tmp_path / "system.json"
    path.write_text(json.dumps([
        {'name': 'Sun', 'mass': 1.0},
        {'name': 'Broken', 'mass': 1e-6, 'parent': 'Sun', 'a': 2.0, 'e': None,
         'children': [{'name': 'Shard', 'mass': 1e-9, 'a': 0.01}]},
        {'name': 'Earth', 'mass': 3e-6, 'parent': 'Sun', 'a': 1.0, 'i': 'steep'},
        {'name': 'Mars', 'mass': 3.2e-7, 'parent': 'Sun', 'a': 1.52},
    ]))

    with caplog.at_level(logging.WARNING, logger="orrery.bodies.catalog"):
        bodies = load_catalog(path)

    assert [b.name for b in bodies] == ['Sun', 'Shard', 'Mars']
    assert "Broken" in caplog.text and "Earth" in caplog.text

    hierarchy = build_hierarchy(bodies)
    assert hierarchy.names == ['Sun', 'Mars']
    assert ('Shard', "parent 'Broken' not found") in hierarchy.excluded
