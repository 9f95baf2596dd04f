import copy
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from onyx.security_groups import SecurityGroupManager


def raw_group(group_id, name, env=None, rules=None, allowed_rules=None, description='test group'):
    """Build a describe_security_groups record.

    rules is a list of (port, cidr, description) tuples.
    """
    tags = []
    if env:
        tags.append({'Key': 'Environment', 'Value': env})
    if allowed_rules:
        tags.append({'Key': 'onyx:rules', 'Value': allowed_rules})

    permissions = {}
    for port, cidr, rule_description in rules or []:
        permission = permissions.setdefault(port, {
            'IpProtocol': 'tcp',
            'FromPort': port,
            'ToPort': port,
            'IpRanges': [],
            'UserIdGroupPairs': []
        })
        if cidr.startswith('sg-'):
            permission['UserIdGroupPairs'].append({'GroupId': cidr, 'Description': rule_description})
        else:
            permission['IpRanges'].append({'CidrIp': cidr, 'Description': rule_description})

    return {
        'GroupId': group_id,
        'GroupName': name,
        'Description': description,
        'Tags': tags,
        'IpPermissions': list(permissions.values())
    }


def client_error(code, operation):
    return ClientError({'Error': {'Code': code, 'Message': f'{code} raised'}}, operation)


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, Filters=None):
        groups = list(self.client.groups.values())
        for group_filter in Filters or []:
            tag_key = group_filter['Name'].split(':', 1)[1]
            groups = [g for g in groups
                      if any(t['Key'] == tag_key and t['Value'] in group_filter['Values'] for t in g['Tags'])]
        yield {'SecurityGroups': copy.deepcopy(groups)}


class FakeEC2Client:
    """In-memory stand-in for the EC2 security group API."""

    def __init__(self, groups):
        self.groups = {g['GroupId']: copy.deepcopy(g) for g in groups}
        self.authorize_calls = []
        self.revoke_calls = []
        self.fail_authorize = set()
        self.fail_revoke = set()

    def get_paginator(self, name):
        assert name == 'describe_security_groups'
        return FakePaginator(self)

    def describe_security_groups(self, GroupIds):
        missing = [group_id for group_id in GroupIds if group_id not in self.groups]
        if missing:
            raise client_error('InvalidGroup.NotFound', 'DescribeSecurityGroups')
        return {'SecurityGroups': [copy.deepcopy(self.groups[group_id]) for group_id in GroupIds]}

    def _permission(self, group, port, protocol):
        for permission in group['IpPermissions']:
            if permission['FromPort'] == port and permission['IpProtocol'] == protocol:
                return permission
        permission = {'IpProtocol': protocol, 'FromPort': port, 'ToPort': port,
                      'IpRanges': [], 'UserIdGroupPairs': []}
        group['IpPermissions'].append(permission)
        return permission

    def authorize_security_group_ingress(self, GroupId, IpPermissions):
        self.authorize_calls.append((GroupId, copy.deepcopy(IpPermissions)))
        if GroupId in self.fail_authorize:
            raise client_error('UnauthorizedOperation', 'AuthorizeSecurityGroupIngress')

        group = self.groups[GroupId]
        for requested in IpPermissions:
            permission = self._permission(group, requested['FromPort'], requested['IpProtocol'])
            for ip_range in requested.get('IpRanges', []):
                if any(r['CidrIp'] == ip_range['CidrIp'] for r in permission['IpRanges']):
                    raise client_error('InvalidPermission.Duplicate', 'AuthorizeSecurityGroupIngress')
                permission['IpRanges'].append(dict(ip_range))
        return {'Return': True}

    def revoke_security_group_ingress(self, GroupId, IpPermissions):
        self.revoke_calls.append((GroupId, copy.deepcopy(IpPermissions)))
        if GroupId in self.fail_revoke:
            raise client_error('UnauthorizedOperation', 'RevokeSecurityGroupIngress')

        group = self.groups[GroupId]
        removed = False
        for requested in IpPermissions:
            permission = self._permission(group, requested['FromPort'], requested['IpProtocol'])
            cidrs = {r['CidrIp'] for r in requested.get('IpRanges', [])}
            peers = {p['GroupId'] for p in requested.get('UserIdGroupPairs', [])}

            kept_ranges = [r for r in permission['IpRanges'] if r['CidrIp'] not in cidrs]
            kept_pairs = [p for p in permission['UserIdGroupPairs'] if p['GroupId'] not in peers]
            removed = removed or len(kept_ranges) != len(permission['IpRanges']) \
                or len(kept_pairs) != len(permission['UserIdGroupPairs'])
            permission['IpRanges'] = kept_ranges
            permission['UserIdGroupPairs'] = kept_pairs

        return {'Return': removed}


def make_manager(client):
    with patch("boto3.Session") as mock_session:
        mock_session.return_value.client.return_value = MagicMock()
        manager = SecurityGroupManager(region="us-east-1")
    manager.ec2_client = client
    return manager


@pytest.fixture
def staging_groups():
    """Three staging groups and one production group."""
    return [
        raw_group('sg-0001', 'staging-api', env='Staging', allowed_rules='ssh,redis'),
        raw_group('sg-0002', 'staging-worker', env='Staging'),
        raw_group('sg-0003', 'staging-db', env='Staging', rules=[(27017, '10.0.0.0/16', 'vpc')]),
        raw_group('sg-0004', 'production-api', env='Production'),
    ]


@pytest.fixture
def fake_client(staging_groups):
    return FakeEC2Client(staging_groups)


@pytest.fixture
def manager(fake_client):
    return make_manager(fake_client)
