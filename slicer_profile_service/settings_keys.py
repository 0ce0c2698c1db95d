"""
Settings Schema
===============

Known printer setting keys and their global defaults. A key is part of the
schema when it appears in DEFAULT_SETTINGS; legacy imports only copy schema
keys.
"""


class SettingsKey:
    """Setting key names used directly by the service."""

    printer_name = 'printer_name'
    make = 'make'
    model = 'model'
    device_token = 'device_token'
    com_port = 'com_port'
    baud_rate = 'baud_rate'
    active_quality_key = 'active_quality_key'
    active_material_key = 'active_material_key'

    # Per-machine state
    print_leveling_data = 'print_leveling_data'
    print_leveling_enabled = 'print_leveling_enabled'
    probe_has_been_calibrated = 'probe_has_been_calibrated'
    filament_has_been_loaded = 'filament_has_been_loaded'
    spiral_vase = 'spiral_vase'
    layer_to_pause = 'layer_to_pause'


# =============================================================================
# Global Defaults
# =============================================================================

DEFAULT_SETTINGS = {
    # Identity
    'printer_name': '',
    'make': 'Other',
    'model': 'Other',
    'device_token': '',
    'active_quality_key': '',
    'active_material_key': '',

    # Connection
    'com_port': '',
    'baud_rate': '250000',
    'auto_connect': '0',

    # Machine
    'bed_size': '200,200',
    'print_center': '100,100',
    'build_height': '200',
    'bed_shape': 'rectangular',
    'has_heated_bed': '1',
    'extruder_count': '1',
    'nozzle_diameter': '0.4',
    'z_offset': '0',

    # Quality
    'layer_height': '0.2',
    'first_layer_height': '0.3',
    'perimeters': '3',
    'top_solid_layers': '4',
    'bottom_solid_layers': '4',
    'fill_density': '0.3',
    'fill_pattern': 'triangles',
    'perimeter_speed': '30',
    'infill_speed': '60',
    'travel_speed': '130',
    'first_layer_speed': '30',
    'support_material': '0',
    'create_raft': '0',
    'skirts': '1',

    # Material
    'filament_diameter': '1.75',
    'temperature': '200',
    'first_layer_temperature': '205',
    'bed_temperature': '60',
    'first_layer_bed_temperature': '65',
    'retract_length': '1',
    'retract_speed': '30',
    'min_fan_speed': '35',
    'max_fan_speed': '100',

    # G-code
    'start_gcode': 'G28 ; home all axes',
    'end_gcode': 'M104 S0 ; turn off temperature',

    # Per-machine state
    'print_leveling_data': '',
    'print_leveling_enabled': '0',
    'probe_has_been_calibrated': '0',
    'filament_has_been_loaded': '0',
    'spiral_vase': '0',
    'layer_to_pause': '',
}

# State tied to one physical machine; never persisted and never resolved
DEFAULT_BLACK_LIST = frozenset({
    SettingsKey.print_leveling_data,
    SettingsKey.print_leveling_enabled,
    SettingsKey.probe_has_been_calibrated,
    SettingsKey.filament_has_been_loaded,
    SettingsKey.spiral_vase,
    SettingsKey.layer_to_pause,
})


def is_known_setting(key: str) -> bool:
    """Check whether a key belongs to the schema."""
    return key in DEFAULT_SETTINGS
