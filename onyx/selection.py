"""
Operator selection of security groups.

When a target is an environment name rather than a security group id, the
matching groups are listed with an index and the operator picks the ones to
change. Two input styles are accepted on a line:

    0,2           indices, each using the ports requested on the command line
    0:ssh 2:redis indices with their own rule types

A ':' anywhere on the line selects the second style for the whole line.
"""

from tabulate import tabulate

from onyx import output
from onyx.errors import InteractiveInputInvalidError, NoRulesToApplyError
from onyx.models import SecurityGroupSelection
from onyx.rules import lookup_type
from onyx.security_groups import apply_filters, looks_like_group_id

CHOICE_PROMPT = 'Enter Choice: '


def _parse_index(text, count):
    """Return the index in text if it is a valid position in a list of count items, else None."""
    try:
        index = int(text.strip())
    except ValueError:
        return None

    if 0 <= index < count:
        return index
    return None


def parse_index_selection(choices, security_groups, default_ports):
    """Parse comma separated indices; every chosen group gets the default ports.

    Args:
        choices (str): Operator input, e.g. '0,2'
        security_groups (list): Candidate SecurityGroup objects, in displayed order
        default_ports (iterable): Ports applied to each chosen group

    Returns:
        dict: Mapping of group id to SecurityGroupSelection
    """
    selections = {}
    for token in choices.split(','):
        index = _parse_index(token, len(security_groups))
        if index is None:
            continue

        security_group = security_groups[index]
        selection = selections.setdefault(security_group.id, SecurityGroupSelection(security_group))
        selection.ports.update(default_ports)

    return selections


def parse_typed_selection(choices, security_groups):
    """Parse space separated 'index:type,type' tokens.

    Tokens that are not index:types pairs, indices out of range and unknown
    rule types are skipped. A group chosen more than once gets the union of
    its ports.

    Args:
        choices (str): Operator input, e.g. '0:ssh 2:redis,mongo'
        security_groups (list): Candidate SecurityGroup objects, in displayed order

    Returns:
        dict: Mapping of group id to SecurityGroupSelection
    """
    selections = {}
    for token in choices.split():
        parts = token.split(':')
        if len(parts) != 2:
            continue

        index = _parse_index(parts[0], len(security_groups))
        if index is None:
            continue

        security_group = security_groups[index]
        selection = selections.setdefault(security_group.id, SecurityGroupSelection(security_group))
        for rule_type in parts[1].split(','):
            port = lookup_type(rule_type)
            if port is not None:
                selection.ports.add(port)

    return selections


def parse_selection(choices, security_groups, default_ports):
    if ':' in choices:
        return parse_typed_selection(choices, security_groups)
    return parse_index_selection(choices, security_groups, default_ports)


def display_choices(security_groups):
    output.info('Select security groups:')
    table_data = []
    for i, sg in enumerate(security_groups):
        table_data.append([output.bold(i), sg.id, output.italic(sg.name)])
    print(tabulate(table_data, headers=['#', 'Group ID', 'Name'], tablefmt='grid'))


def select_security_groups(manager, env_or_id, filters=None, skip_choice=False, default_ports=None,
                           prompt=input, require_ports=True):
    """Resolve a target into the security groups to change and their ports.

    Args:
        manager (SecurityGroupManager): Source of security groups
        env_or_id (str): Environment name or a security group id
        filters (list): Filter objects narrowing discovered groups
        skip_choice (bool): Select a single remaining candidate without asking
        default_ports (iterable): Ports requested on the command line
        prompt (callable): Reads the operator's choice
        require_ports (bool): Fail when no chosen group has a port

    Returns:
        dict: Mapping of group id to SecurityGroupSelection; empty if nothing matched

    Raises:
        NotFoundError: If a security group id cannot be described
        InteractiveInputInvalidError: If the operator enters nothing
        NoRulesToApplyError: If the chosen groups have no ports
    """
    default_ports = set(default_ports or [])

    if looks_like_group_id(env_or_id):
        security_group = manager.get_by_id(env_or_id)
        output.success('Detected security group: %s (%s)', output.bold(security_group.id),
                       output.italic(security_group.name))
        return {security_group.id: SecurityGroupSelection(security_group, set(default_ports))}

    security_groups = apply_filters(manager.list_by_environment(env_or_id), filters)
    if not security_groups:
        return {}

    if len(security_groups) == 1 and skip_choice:
        if require_ports and not default_ports:
            raise NoRulesToApplyError('No rules to authorize')
        security_group = security_groups[0]
        return {security_group.id: SecurityGroupSelection(security_group, set(default_ports))}

    display_choices(security_groups)

    choices = prompt(CHOICE_PROMPT).strip()
    if not choices:
        raise InteractiveInputInvalidError('Invalid choice')

    selections = parse_selection(choices, security_groups, default_ports)

    if not require_ports:
        if not selections:
            raise InteractiveInputInvalidError(f"Invalid choice: {choices}")
        return selections

    selections = {group_id: selection for group_id, selection in selections.items() if selection.ports}
    if not selections:
        raise NoRulesToApplyError('No rules to authorize')

    return selections
