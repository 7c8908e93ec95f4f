"""
Configuration document parsers

Parsing is split in two steps. A format parser turns document text into a
list of entries (mappings keyed by the camelCase document field names) and
build_configurations turns those entries into named HmacConfiguration
instances, applying defaults and checking name uniqueness. Parsers for JSON,
XML and YAML are registered by default; more can be added with
register_parser.
"""

import codecs
import json
import logging
import math
import xml.etree.ElementTree as ET
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import yaml

from ..exceptions import ConfigurationParseError, HmacConfigurationError
from .hmac_configuration import (
    DEFAULT_CONFIGURATION_NAME,
    HmacConfiguration,
    resolve_hash_algorithm,
)

logger = logging.getLogger(__name__)

ConfigurationEntry = Mapping[str, Any]
ConfigurationParser = Callable[[str], List[ConfigurationEntry]]

# Document field name -> HmacConfiguration attribute
FIELD_NAMES: Dict[str, str] = {
    'name': 'name',
    'userHeaderName': 'user_header_name',
    'authorizationScheme': 'authorization_scheme',
    'signatureDataSeparator': 'signature_data_separator',
    'characterEncoding': 'character_encoding',
    'hmacAlgorithm': 'hmac_algorithm',
    'maxRequestAge': 'max_request_age',
    'signRequestUri': 'sign_request_uri',
    'validateContentMd5': 'validate_content_md5',
    'headers': 'headers',
}

_BOOLEAN_FIELDS = ('signRequestUri', 'validateContentMd5')
_STRING_FIELDS = (
    'name',
    'userHeaderName',
    'authorizationScheme',
    'signatureDataSeparator',
    'characterEncoding',
    'hmacAlgorithm',
)

# Value of the XML maxRequestAge attribute that disables the date check
XML_NO_MAX_REQUEST_AGE = 'none'

# File suffix -> format name
FORMAT_SUFFIXES: Dict[str, str] = {
    '.json': 'json',
    '.xml': 'xml',
    '.yaml': 'yaml',
    '.yml': 'yaml',
}


def parse_json(text: str) -> List[ConfigurationEntry]:
    """Parse a JSON document of the form {"configurations": [...]}."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationParseError(
            f"Invalid JSON configuration document: {e.msg}",
            details={"format": "json", "line": e.lineno, "column": e.colno}
        ) from e

    return extract_entries(document, 'json')


def parse_yaml(text: str) -> List[ConfigurationEntry]:
    """Parse a YAML document with the same structure as the JSON format."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationParseError(
            f"Invalid YAML configuration document: {e}",
            details={"format": "yaml"}
        ) from e

    return extract_entries(document, 'yaml')


def parse_xml(text: str) -> List[ConfigurationEntry]:
    """
    Parse an XML document.

    The root element may have any name; it must contain a configurations
    element holding configuration elements. Settings are attributes, the
    header names are add elements below a headers element:

        <hmac>
          <configurations>
            <configuration name="default" hmacAlgorithm="HMACSHA256">
              <headers><add name="X-Custom"/></headers>
            </configuration>
          </configurations>
        </hmac>
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        line, column = e.position
        raise ConfigurationParseError(
            f"Invalid XML configuration document: {e}",
            details={"format": "xml", "line": line, "column": column}
        ) from e

    container = root.find('configurations')
    if container is None:
        raise ConfigurationParseError(
            f"The XML root element <{root.tag}> has no <configurations> element",
            details={"format": "xml"}
        )

    entries = []
    for element in container:
        if element.tag != 'configuration':
            raise ConfigurationParseError(
                f"Unexpected element <{element.tag}> in <configurations>",
                details={"format": "xml"}
            )
        entries.append(_xml_entry(element))
    return entries


def _xml_entry(element: ET.Element) -> Dict[str, Any]:
    entry: Dict[str, Any] = {}
    for attribute, value in element.attrib.items():
        if value == '':
            continue
        entry[attribute] = _convert_xml_value(attribute, value)

    headers_element = element.find('headers')
    if headers_element is not None:
        headers = []
        for child in headers_element:
            if child.tag != 'add':
                raise ConfigurationParseError(
                    f"Unexpected element <{child.tag}> in <headers>",
                    details={"format": "xml"}
                )
            headers.append(child.get('name', ''))
        entry['headers'] = headers

    return entry


def _convert_xml_value(attribute: str, value: str) -> Any:
    if attribute in _BOOLEAN_FIELDS:
        lowered = value.strip().lower()
        if lowered not in ('true', 'false'):
            raise ConfigurationParseError(
                f"The attribute '{attribute}' must be 'true' or 'false', got '{value}'",
                details={"format": "xml", "field": attribute}
            )
        return lowered == 'true'

    if attribute == 'maxRequestAge':
        if value.strip().lower() == XML_NO_MAX_REQUEST_AGE:
            return None
        try:
            return int(value.strip())
        except ValueError as e:
            raise ConfigurationParseError(
                f"The attribute 'maxRequestAge' must be a number of seconds or 'none', got '{value}'",
                details={"format": "xml", "field": attribute}
            ) from e

    if attribute == 'signatureDataSeparator':
        try:
            return unescape_separator(value)
        except UnicodeDecodeError as e:
            raise ConfigurationParseError(
                f"The attribute 'signatureDataSeparator' has an invalid escape sequence: '{value}'",
                details={"format": "xml", "field": attribute}
            ) from e

    return value


def unescape_separator(value: str) -> str:
    """
    Resolve backslash escapes such as \\n and \\t in a separator value.

    Characters outside Latin-1 are preserved.
    """
    return value.encode('latin-1', 'backslashreplace').decode('unicode_escape')


def extract_entries(document: Any, source: str = 'section') -> List[ConfigurationEntry]:
    """
    Get the configuration entries of a decoded document.

    Args:
        document: Decoded document, expected to be a mapping with a
            "configurations" list
        source: Format name used in error messages

    Returns:
        list: Configuration entries
    """
    if not isinstance(document, Mapping):
        raise ConfigurationParseError(
            f"The {source} configuration document must be a mapping with a 'configurations' list",
            details={"format": source}
        )

    if 'configurations' not in document:
        raise ConfigurationParseError(
            f"The {source} configuration document has no 'configurations' entry",
            details={"format": source}
        )

    entries = document['configurations']
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationParseError(
            f"'configurations' must be a list in the {source} configuration document",
            details={"format": source}
        )

    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ConfigurationParseError(
                f"Configuration entry {index} must be a mapping",
                details={"format": source, "index": index}
            )
    return entries


def build_configuration(entry: ConfigurationEntry, default_name: str = DEFAULT_CONFIGURATION_NAME) -> HmacConfiguration:
    """
    Build a configuration from one document entry.

    Absent fields take the built-in defaults and an absent or empty name
    takes default_name. Unknown fields are ignored.

    Args:
        entry: Document entry keyed by camelCase field names
        default_name: Name given to an entry without a name

    Returns:
        HmacConfiguration: The configuration

    Raises:
        ConfigurationParseError: If a value is invalid
    """
    values: Dict[str, Any] = {}

    for key, value in entry.items():
        attribute = FIELD_NAMES.get(key)
        if attribute is None:
            logger.debug(f"Ignoring unknown configuration field '{key}'")
            continue
        values[attribute] = _convert_value(key, value)

    if not values.get('name'):
        values['name'] = default_name

    if 'user_header_name' in values and not values['user_header_name']:
        values['user_header_name'] = None

    _check_encoding(values)
    _check_algorithm(values)

    try:
        return HmacConfiguration(**values)
    except (TypeError, ValueError) as e:
        raise ConfigurationParseError(
            f"Invalid configuration '{values['name']}': {e}",
            details={"name": values['name']}
        ) from e


def _convert_value(key: str, value: Any) -> Any:
    if key in _STRING_FIELDS:
        if value is not None and not isinstance(value, str):
            raise ConfigurationParseError(
                f"The field '{key}' must be a string",
                details={"field": key}
            )
        return value

    if key in _BOOLEAN_FIELDS:
        if not isinstance(value, bool):
            raise ConfigurationParseError(
                f"The field '{key}' must be a boolean",
                details={"field": key}
            )
        return value

    if key == 'maxRequestAge':
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationParseError(
                "The field 'maxRequestAge' must be a number of seconds or null",
                details={"field": key}
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise ConfigurationParseError(
                "The field 'maxRequestAge' must be a finite number of seconds",
                details={"field": key, "value": str(value)}
            )
        if value < 0:
            raise ConfigurationParseError(
                "The field 'maxRequestAge' cannot be negative",
                details={"field": key, "value": value}
            )
        try:
            return timedelta(seconds=value)
        except (OverflowError, ValueError) as e:
            raise ConfigurationParseError(
                f"The field 'maxRequestAge' is out of range: {value}",
                details={"field": key}
            ) from e

    if key == 'headers':
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(name, str) for name in value):
            raise ConfigurationParseError(
                "The field 'headers' must be a list of header names",
                details={"field": key}
            )
        return value

    return value


def _check_encoding(values: Dict[str, Any]) -> None:
    encoding = values.get('character_encoding')
    if encoding is None:
        return
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ConfigurationParseError(
            f"Unknown character encoding '{encoding}'",
            details={"field": "characterEncoding", "value": encoding}
        ) from e


def _check_algorithm(values: Dict[str, Any]) -> None:
    algorithm = values.get('hmac_algorithm')
    if algorithm is None:
        return
    if resolve_hash_algorithm(algorithm) is None:
        raise ConfigurationParseError(
            f"Unknown HMAC algorithm '{algorithm}'",
            details={"field": "hmacAlgorithm", "value": algorithm}
        )


def build_configurations(
    entries: List[ConfigurationEntry],
    default_name: str = DEFAULT_CONFIGURATION_NAME
) -> Dict[str, HmacConfiguration]:
    """
    Build the complete name to configuration map of one source.

    At most one entry may use the default name and all names must be
    unique. When no entry uses the default name, a configuration with the
    built-in defaults is added under it.

    Args:
        entries: Document entries
        default_name: Name of the default configuration

    Returns:
        dict: Configurations keyed by name

    Raises:
        ConfigurationParseError: If an entry is invalid or a name is repeated
    """
    configurations: Dict[str, HmacConfiguration] = {}

    for entry in entries:
        configuration = build_configuration(entry, default_name)
        if configuration.name in configurations:
            if configuration.name == default_name:
                message = f"More than one configuration claims the default name '{default_name}'"
            else:
                message = f"Duplicate configuration name '{configuration.name}'"
            raise ConfigurationParseError(message, details={"name": configuration.name})
        configurations[configuration.name] = configuration

    if default_name not in configurations:
        configurations[default_name] = HmacConfiguration(name=default_name)

    return configurations


_PARSERS: Dict[str, ConfigurationParser] = {
    'json': parse_json,
    'xml': parse_xml,
    'yaml': parse_yaml,
}


def register_parser(format_name: str, parser: ConfigurationParser) -> None:
    """
    Register or replace the parser of a document format.

    Args:
        format_name: Format name, case-insensitive
        parser: Callable turning document text into configuration entries
    """
    if not format_name:
        raise ValueError("The format name cannot be empty")
    if not callable(parser):
        raise TypeError("The parser must be callable")
    _PARSERS[format_name.lower()] = parser


def get_parser(format_name: str) -> ConfigurationParser:
    """
    Get the parser of a document format.

    Raises:
        HmacConfigurationError: If no parser is registered for the format
    """
    parser = _PARSERS.get((format_name or '').lower())
    if parser is None:
        raise HmacConfigurationError(
            f"Unsupported configuration format '{format_name}'",
            "UNSUPPORTED_FORMAT",
            {"format": format_name, "supported": sorted(_PARSERS)}
        )
    return parser


def format_from_path(path: Union[str, Path]) -> str:
    """
    Infer the document format from a file suffix.

    Raises:
        HmacConfigurationError: If the suffix is not recognized
    """
    suffix = Path(path).suffix.lower()
    format_name = FORMAT_SUFFIXES.get(suffix)
    if format_name is None:
        raise HmacConfigurationError(
            f"Cannot infer the configuration format of '{path}'",
            "UNSUPPORTED_FORMAT",
            {"path": str(path), "suffix": suffix}
        )
    return format_name


def parse_configurations(
    text: str,
    format_name: str,
    default_name: str = DEFAULT_CONFIGURATION_NAME
) -> Dict[str, HmacConfiguration]:
    """
    Parse document text into the name to configuration map.

    Args:
        text: Document text
        format_name: Registered format name ("json", "xml", "yaml", ...)
        default_name: Name of the default configuration

    Returns:
        dict: Configurations keyed by name
    """
    if text is None:
        raise TypeError("The configuration text cannot be None")

    parser = get_parser(format_name)
    return build_configurations(parser(text), default_name)


def parse_section(
    section: Optional[Mapping[str, Any]],
    default_name: str = DEFAULT_CONFIGURATION_NAME
) -> Dict[str, HmacConfiguration]:
    """
    Build the name to configuration map from an already decoded mapping.

    Args:
        section: Mapping with a "configurations" list, e.g. a section of a
            host application's own settings
        default_name: Name of the default configuration

    Returns:
        dict: Configurations keyed by name
    """
    if section is None:
        raise TypeError("The configuration section cannot be None")

    return build_configurations(extract_entries(section), default_name)
