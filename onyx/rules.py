"""Rule catalog: symbolic ingress rule types and the port each one opens."""

from onyx.errors import InvalidPortError, InvalidTypeError

ALLOWED_RULES = {
    'ssh': 22,
    'redis': 6379,
    'mongo': 27017,
    'mysql': 3306,
    'timescale': 5432,
    'pgbouncer': 6432,
}


def lookup_type(name):
    """Return the port for a rule type, or None when the type is unknown."""
    return ALLOWED_RULES.get(name.strip().lower())


def resolve_type(name):
    """Resolve a rule type name to its port.

    Args:
        name (str): Rule type name, case-insensitive (e.g. 'SSH')

    Returns:
        int: Port of the rule type

    Raises:
        InvalidTypeError: If the name is not in the catalog
    """
    port = lookup_type(name)
    if port is None:
        raise InvalidTypeError(f"Invalid type '{name}'. Allowed values: {'|'.join(ALLOWED_RULES)}")
    return port


def resolve_types(names):
    """Resolve rule type names to a set of ports, failing on the first unknown name."""
    ports = set()
    for name in names:
        ports.add(resolve_type(name))
    return ports


def validate_port(port):
    """Return port as an int if it is a valid TCP port.

    Raises:
        InvalidPortError: If the port is not an integer between 0 and 65535
    """
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise InvalidPortError(f"Invalid port '{port}'. Allowed values 0-65535")

    if not 0 <= value <= 65535:
        raise InvalidPortError(f"Invalid port '{port}'. Allowed values 0-65535")

    return value


def split_list(text):
    """Split comma separated input (e.g. 'ssh, mysql') into trimmed, non-empty items."""
    if not text:
        return []
    return [item.strip() for item in text.split(',') if item.strip()]


def parse_ports(text):
    return [validate_port(port) for port in split_list(text)]
