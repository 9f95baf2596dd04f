"""
Security group rule reconciliation.

Opening access for a user replaces the rules that user was granted before
instead of adding to them: rules owned by the user on the requested ports are
revoked first, then fresh rules bound to the user's current public IP are
authorized. Revoking alone closes the access.

A rule is owned by a user when its description is the tag onyx writes
('[Onyx approved] User: <user>') or, for rules created before that tag
existed, when the description contains the user name.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from onyx import output
from onyx.errors import InvalidUserError, NoPortsToAuthorizeError, OnyxError
from onyx.models import RuleRequest
from onyx.presenter import display_security_group
from onyx.public_ip import get_public_cidr
from onyx.rules import resolve_types, validate_port
from onyx.security_groups import extract_filters
from onyx.selection import select_security_groups

MIN_USER_LENGTH = 3


@dataclass
class RuleChangeRequest:
    env_or_id: str
    types: List[str] = field(default_factory=list)
    ports: List[int] = field(default_factory=list)
    filters: List[str] = field(default_factory=list)
    authorize: bool = True


@dataclass
class ReconcileReport:
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self):
        return not self.failed

    def record_failure(self, group_id, message):
        self.failed.setdefault(group_id, []).append(message)


def rule_is_owned(rule, request):
    """Check whether an existing rule was granted to the requesting user on the same port."""
    if rule.port != request.port:
        return False

    # Exact tag first, then the looser match kept for rules from before the tag format
    return rule.description == request.description or request.user in rule.description


def find_owned_rules(security_group, rule_requests):
    owned = []
    for rule in security_group.rules:
        if any(rule_is_owned(rule, request) for request in rule_requests):
            owned.append(rule)
    return owned


def resolve_ports(types, ports):
    """Union the ports of the rule types with the explicit ports.

    Raises:
        InvalidTypeError: On the first unknown rule type
        InvalidPortError: If an explicit port is out of range
        NoPortsToAuthorizeError: If nothing was requested
    """
    ports_to_update = resolve_types(types or [])
    for port in ports or []:
        ports_to_update.add(validate_port(port))

    if not ports_to_update:
        raise NoPortsToAuthorizeError('No ports to authorize')

    return ports_to_update


def resolve_user(identity):
    user = identity.whoami()
    if not user or len(user) < MIN_USER_LENGTH:
        raise InvalidUserError('Invalid user')
    return user


def revoke_rules(manager, security_group, rules):
    """Revoke rules from a group, showing the group before and after.

    Returns:
        SecurityGroup: The group as re-read after the revoke

    Raises:
        RevokeFailedError: After the re-read group has been shown
    """
    display_security_group(security_group, rules, marked_for_removal=True)

    output.info('Revoking old rules for %s', output.bold(security_group.id))
    try:
        manager.revoke_ingress(security_group.id, rules)
        output.success('Revoked old rules for %s', output.bold(security_group.id))
    finally:
        # Show the group as the provider left it, even when the revoke failed
        refreshed = manager.get_by_id(security_group.id)
        display_security_group(refreshed)

    return refreshed


def authorize_rules(manager, security_group, rule_requests, cidr):
    """Authorize rules for a CIDR, showing the group with the new rules highlighted.

    Returns:
        SecurityGroup: The group as re-read after the authorize
    """
    output.info('Authorizing new rules for %s', output.bold(security_group.id))

    new_rules = [request.with_cidr(cidr) for request in rule_requests]
    manager.authorize_ingress(security_group.id, new_rules)
    output.success('Authorized new rules for %s', output.bold(security_group.id))

    refreshed = manager.get_by_id(security_group.id)
    display_security_group(refreshed, new_rules)
    return refreshed


def reconcile_security_group(manager, selection, user, cidr, authorize, report, abort_on_failure=False):
    """Revoke the user's old rules on one group and, when authorizing, add the new ones."""
    security_group = selection.security_group
    ports = sorted(selection.ports)

    output.info('Processing %s ports for %s (%s)', output.bold(ports),
                output.underline(security_group.name), security_group.id)

    rule_requests = [RuleRequest(port=port, user=user) for port in ports]
    failed = False

    owned_rules = find_owned_rules(security_group, rule_requests)
    if owned_rules:
        try:
            revoke_rules(manager, security_group, owned_rules)
        except OnyxError as e:
            if abort_on_failure:
                raise
            output.error('Error on revoking rules for %s (%s). Error: %s', security_group.name, security_group.id, e)
            report.record_failure(security_group.id, str(e))
            failed = True

    if authorize:
        try:
            authorize_rules(manager, security_group, rule_requests, cidr)
        except OnyxError as e:
            if abort_on_failure:
                raise
            output.error('Error on authorizing rules for %s (%s). Error: %s', security_group.name, security_group.id, e)
            report.record_failure(security_group.id, str(e))
            failed = True

    if not failed:
        report.succeeded.append(security_group.id)


def authorize_or_revoke(config, change, manager, identity, ip_resolver=None, prompt=input):
    """Authorize or revoke the caller's ingress rules on the targeted security groups.

    Args:
        config (OnyxConfig): Configuration of this invocation
        change (RuleChangeRequest): Target, rule types, ports, filters and direction
        manager (SecurityGroupManager): Security group provider
        identity (IdentityProvider): Resolves the calling user
        ip_resolver (callable): Returns the caller's public CIDR
        prompt (callable): Reads the operator's security group choice

    Returns:
        ReconcileReport: Groups changed and groups that failed

    Raises:
        OnyxError: On invalid input, before anything is changed, or on the
            first group failure when config.abort_on_failure is set
    """
    ports_to_update = resolve_ports(change.types, change.ports)
    user = resolve_user(identity)

    selections = select_security_groups(
        manager,
        change.env_or_id,
        filters=extract_filters(change.filters),
        skip_choice=config.skip_choice,
        default_ports=ports_to_update,
        prompt=prompt
    )

    report = ReconcileReport()
    if not selections:
        output.warn('No security group matched. Exiting')
        return report

    # One address for every group so all rules of this run share it
    if ip_resolver is None:
        cidr = get_public_cidr(timeout=config.ip_timeout)
    else:
        cidr = ip_resolver()

    for selection in selections.values():
        reconcile_security_group(manager, selection, user, cidr, change.authorize, report,
                                 abort_on_failure=config.abort_on_failure)

    if report.ok:
        output.success('Updated %d security group(s)', len(report.succeeded))
    else:
        output.error('%d security group(s) failed: %s', len(report.failed), ', '.join(report.failed))

    return report
