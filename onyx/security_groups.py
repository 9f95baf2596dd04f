"""
Security group discovery and ingress changes.

Converts the EC2 API's security group records into onyx models, narrows them
by environment tag and name filters, and applies authorize/revoke calls.
"""

import boto3
from botocore.exceptions import ClientError

from onyx import output
from onyx.errors import AuthorizeFailedError, AWSRequestError, NotFoundError, RevokeFailedError
from onyx.models import ALLOWED_RULES_TAG, Filter, IngressRule, SecurityGroup

GROUP_ID_PREFIX = 'sg-'
ENVIRONMENT_TAG = 'Environment'


def looks_like_group_id(value):
    return value.startswith(GROUP_ID_PREFIX)


def normalize_environment(env):
    """Title-case an environment name the way the Environment tag stores it ('staging' -> 'Staging')."""
    return env.strip().lower().title()


def extract_filter(filter_str):
    """Parse a key=value filter.

    Args:
        filter_str (str): Filter text, e.g. 'name=api'

    Returns:
        Filter: Lower-cased filter, or None if the text is not a single key=value pair
    """
    parts = filter_str.split('=')
    if len(parts) != 2:
        return None

    key, value = parts[0].strip().lower(), parts[1].strip().lower()
    if not key or not value:
        return None

    return Filter(key=key, value=value)


def extract_filters(filter_strs):
    filters = []
    for filter_str in filter_strs or []:
        parsed = extract_filter(filter_str)
        if parsed:
            filters.append(parsed)
    return filters


def apply_filters(security_groups, filters):
    """Keep the security groups matching every filter.

    Only the 'name' key is understood: it keeps groups whose name contains the
    value. Filters with any other key do not narrow the list.

    Args:
        security_groups (list): SecurityGroup objects to narrow
        filters (list): Filter objects

    Returns:
        list: Matching security groups, in their original order
    """
    if not filters:
        return security_groups

    filtered = security_groups
    for group_filter in filters:
        if group_filter.key == 'name':
            filtered = [sg for sg in filtered if group_filter.value in sg.name.lower()]

    return filtered


def convert_security_group(raw):
    """Convert a describe_security_groups record into a SecurityGroup.

    Args:
        raw (dict): One entry of the 'SecurityGroups' list

    Returns:
        SecurityGroup: The converted security group
    """
    rules = []
    for permission in raw.get('IpPermissions', []):
        port = permission.get('FromPort')
        protocol = permission.get('IpProtocol', '')

        for ip_range in permission.get('IpRanges', []):
            rules.append(IngressRule(
                port=port,
                cidr=ip_range.get('CidrIp', ''),
                protocol=protocol,
                description=ip_range.get('Description', '')
            ))

        for pair in permission.get('UserIdGroupPairs', []):
            rules.append(IngressRule(
                port=port,
                cidr=pair.get('GroupId', ''),
                protocol=protocol,
                description=pair.get('Description', '')
            ))

    tags = {tag['Key']: tag.get('Value', '') for tag in raw.get('Tags', [])}

    allowed_rule_types = set()
    if tags.get(ALLOWED_RULES_TAG):
        allowed_rule_types = {rt.strip() for rt in tags[ALLOWED_RULES_TAG].split(',') if rt.strip()}

    return SecurityGroup(
        id=raw['GroupId'],
        name=raw.get('GroupName', ''),
        description=raw.get('Description', ''),
        tags=tags,
        rules=rules,
        allowed_rule_types=allowed_rule_types
    )


class SecurityGroupManager:
    """Reads and changes security groups in one AWS region."""

    def __init__(self, region=None, profile=None):
        """Initialize the security group manager.

        Args:
            region (str): AWS region name (e.g., 'us-east-1')
            profile (str): AWS profile name to use
        """
        self.region = region
        self.profile = profile
        self.session = self._create_session()
        self.ec2_client = self.session.client('ec2', region_name=self.region)

    def _create_session(self):
        """Create a boto3 session with the specified profile if provided."""
        if self.profile:
            return boto3.Session(profile_name=self.profile, region_name=self.region)
        return boto3.Session(region_name=self.region)

    def list_by_environment(self, env):
        """List security groups tagged with an environment.

        Args:
            env (str): Environment name; empty lists every security group

        Returns:
            list: List of SecurityGroup objects
        """
        params = {}
        if env:
            params['Filters'] = [{'Name': f'tag:{ENVIRONMENT_TAG}', 'Values': [normalize_environment(env)]}]
        else:
            output.warn('Please use `--env` to narrow down search.')

        try:
            security_groups = []
            paginator = self.ec2_client.get_paginator('describe_security_groups')
            for page in paginator.paginate(**params):
                security_groups.extend(convert_security_group(sg) for sg in page['SecurityGroups'])

            return security_groups
        except ClientError as e:
            raise AWSRequestError(f"Error getting security groups: {e}") from e

    def get_by_id(self, group_id):
        """Describe a single security group.

        Raises:
            NotFoundError: If the id is unknown or cannot be described
        """
        try:
            response = self.ec2_client.describe_security_groups(GroupIds=[group_id])
        except ClientError as e:
            raise NotFoundError(f"Invalid security group id {group_id}. Error: {e}") from e

        if not response.get('SecurityGroups'):
            raise NotFoundError(f"Security group {group_id} not found")

        return convert_security_group(response['SecurityGroups'][0])

    def authorize_ingress(self, group_id, rule_requests):
        """Authorize ingress rules in a single call.

        Args:
            group_id (str): Security group ID
            rule_requests (list): RuleRequest objects with their CIDR attached

        Raises:
            AuthorizeFailedError: If the provider rejects the call
        """
        ip_permissions = []
        for request in rule_requests:
            ip_permissions.append({
                'IpProtocol': 'tcp',
                'FromPort': request.port,
                'ToPort': request.port,
                'IpRanges': [{'CidrIp': request.cidr, 'Description': request.description}]
            })

        try:
            self.ec2_client.authorize_security_group_ingress(GroupId=group_id, IpPermissions=ip_permissions)
        except ClientError as e:
            raise AuthorizeFailedError(f"Unable to authorize new rules for {group_id}. Error: {e}") from e

    def revoke_ingress(self, group_id, rules):
        """Revoke existing ingress rules in a single call.

        Args:
            group_id (str): Security group ID
            rules (list): IngressRule objects as discovered on the group

        Raises:
            RevokeFailedError: If the provider rejects the call or reports it was not applied
        """
        permissions = {}
        for rule in rules:
            permission = permissions.setdefault((rule.port, rule.protocol), {
                'IpProtocol': rule.protocol,
                'FromPort': rule.port,
                'ToPort': rule.port,
            })

            if looks_like_group_id(rule.cidr):
                permission.setdefault('UserIdGroupPairs', []).append(
                    {'GroupId': rule.cidr, 'Description': rule.description})
            else:
                permission.setdefault('IpRanges', []).append(
                    {'CidrIp': rule.cidr, 'Description': rule.description})

        try:
            response = self.ec2_client.revoke_security_group_ingress(
                GroupId=group_id, IpPermissions=list(permissions.values()))
        except ClientError as e:
            raise RevokeFailedError(f"Unable to revoke old rules for {group_id}. Error: {e}") from e

        if not response.get('Return', False):
            raise RevokeFailedError(f"Unable to revoke old rules for {group_id}")
