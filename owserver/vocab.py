"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Vocabulary of the OWServer binding.

All knowledge about EDS OWServer naming lives in these tables. Supporting a
new sensor type means adding a row here, the node parser does not change.
"""

# std libraries
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import MappingProxyType
from typing import Mapping, NamedTuple, Tuple

# Device types
DEVICE_TYPE_GATEWAY = 'gateway'
DEVICE_TYPE_THERMOMETER = 'thermometer'
DEVICE_TYPE_MULTISENSOR = 'multisensor'
DEVICE_TYPE_SERVICE = 'service'
DEVICE_TYPE_UNKNOWN = 'unknown'

# Canonical property names
PROP_NAME_LATENCY = 'latency'
PROP_NAME_GATEWAY_ADDRESS = 'gatewayAddress'

# Data types
DATA_TYPE_NUMBER = 'number'
DATA_TYPE_BOOL = 'boolean'
DATA_TYPE_STRING = 'string'

GATEWAY_DESCRIPTION = 'EDS OWServer Gateway'


class SensorInfo(NamedTuple):
    name: str
    data_type: str
    decimals: int


# 1-wire family code to device type
# See also: http://owfs.sourceforge.net/simple_family.html
FAMILY_DEVICE_TYPES: Mapping[str, str] = MappingProxyType({
    '10': DEVICE_TYPE_THERMOMETER,
    '28': DEVICE_TYPE_THERMOMETER,
    '7E': DEVICE_TYPE_MULTISENSOR,
})

# OWServer attribute names. An empty name drops the chatty attributes.
ATTR_VOCAB: Mapping[str, str] = MappingProxyType({
    'MACAddress': 'mac',
    'DeviceName': 'name',
    'HostName': 'hostname',
    'DateTime': '',
    'RawData': '',
    'Counter1': '',
    'Counter2': '',
    'PollCount': '',
    'PrimaryValue': '',
})

# OWServer sensor names with the number of decimals to keep
SENSOR_VOCAB: Mapping[str, SensorInfo] = MappingProxyType({
    'BarometricPressureMb': SensorInfo('atmosphericpressure', DATA_TYPE_NUMBER, 0),
    'DewPoint': SensorInfo('dewpoint', DATA_TYPE_NUMBER, 1),
    'HeatIndex': SensorInfo('heatindex', DATA_TYPE_NUMBER, 1),
    'Humidity': SensorInfo('humidity', DATA_TYPE_NUMBER, 0),
    'Humidex': SensorInfo('humidex', DATA_TYPE_NUMBER, 1),
    'Light': SensorInfo('luminance', DATA_TYPE_NUMBER, 0),
    'RelayState': SensorInfo('relay', DATA_TYPE_BOOL, 0),
    'Temperature': SensorInfo('temperature', DATA_TYPE_NUMBER, 1),
})

UNIT_VOCAB: Mapping[str, str] = MappingProxyType({
    'PercentRelativeHumidity': '%',
    'Millibars': 'mbar',
    'Centigrade': 'C',
    'Fahrenheit': 'F',
    'InchesOfMercury': 'inHg',
    'Lux': 'lux',
    '#': 'count',
    'Volt': 'V',
})


def apply_vocabulary(name: str, vocab: Mapping[str, str]) -> Tuple[str, bool]:
    """Translate a name, returning it unchanged when it is not in the vocabulary."""
    if name in vocab:
        return vocab[name], True
    return name, False


def lookup_eds_name(name: str) -> str:
    """Return the OWServer variable name for a canonical property name.

    Used when writing to the gateway. Names that are not part of the
    vocabulary are returned unchanged.
    """
    for eds_name, info in SENSOR_VOCAB.items():
        if info.name == name:
            return eds_name
    for eds_name, vocab_name in ATTR_VOCAB.items():
        if vocab_name and vocab_name == name:
            return eds_name
    return name


def device_type_for_family(family: str) -> str:
    return FAMILY_DEVICE_TYPES.get(family, DEVICE_TYPE_UNKNOWN)


def round_value(value: str, decimals: int) -> str:
    """Round a numeric text value to a fixed number of decimals.

    Halves round away from zero, 44.5 becomes 45. Text that does not parse as
    a finite number is returned as is.
    """
    try:
        number = Decimal(value)
        rounded = number.quantize(Decimal(10) ** -decimals, rounding=ROUND_HALF_UP)
    except (TypeError, InvalidOperation):
        return value
    if not rounded.is_finite():
        return value
    return f"{rounded:f}"
