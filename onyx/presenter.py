"""Text rendering of a security group's ingress rules, with changed rules highlighted."""

from colorama import Fore, Style

from onyx.output import bold, green, red

REMOVAL_MARKER = '    <------- This rule will be removed/updated'
OUTER_BORDER = '|-----------------------------------------------------'
INNER_BORDER = '|  |------------------------------------------'


def rule_key(description, port):
    return f"{description}_{port}"


def format_rule(rule):
    return f"|  | {rule.port} -> {rule.port} ({rule.protocol}): {rule.cidr} - {rule.description}"


def format_security_group(security_group, changed_rules=None, marked_for_removal=False):
    """Render a security group and its rules.

    Args:
        security_group (SecurityGroup): Group to render
        changed_rules (list): IngressRule or RuleRequest objects to highlight
        marked_for_removal (bool): Highlight changed rules as pending removal
            instead of as just added

    Returns:
        str: The rendered text
    """
    changed = {rule_key(rule.description, rule.port) for rule in changed_rules or []}

    if marked_for_removal:
        header = f"{Fore.YELLOW}[WARNING] | {Style.RESET_ALL}Proposed changes to security group: {bold(security_group.id)}"
    else:
        header = f"{Fore.BLUE}[INFO]    | {Style.RESET_ALL}Current state of security group: {bold(security_group.id)}"

    lines = [
        header,
        OUTER_BORDER,
        f"| {bold(security_group.name)} ({security_group.id})",
        f"| Description: {security_group.description}",
        '| Rules:',
        INNER_BORDER,
    ]

    for rule in security_group.rules:
        line = format_rule(rule)
        if rule_key(rule.description, rule.port) in changed:
            if marked_for_removal:
                line = red(line) + bold(REMOVAL_MARKER)
            else:
                line = green(line)
        lines.append(line)

    lines.append(INNER_BORDER)
    lines.append(OUTER_BORDER)

    return '\n'.join(lines)


def display_security_group(security_group, changed_rules=None, marked_for_removal=False):
    print(format_security_group(security_group, changed_rules, marked_for_removal))
