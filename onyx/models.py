"""
Models of security groups, their ingress rules and the rules onyx grants.

Rules onyx creates carry the description '[Onyx approved] User: <user>', which
is how later runs recognise them.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set

RULE_DESCRIPTION_TEMPLATE = '[Onyx approved] User: {user}'
ALLOWED_RULES_TAG = 'onyx:rules'


@dataclass(frozen=True)
class IngressRule:
    port: int
    cidr: str
    protocol: str = 'tcp'
    description: str = ''


@dataclass(frozen=True)
class SecurityGroup:
    id: str
    name: str
    description: str
    tags: Dict[str, str] = field(default_factory=dict)
    rules: List[IngressRule] = field(default_factory=list)
    allowed_rule_types: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class RuleRequest:
    """An ingress rule onyx is about to create for a user."""
    port: int
    user: str
    cidr: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'user', self.user.lower())

    @property
    def description(self):
        return RULE_DESCRIPTION_TEMPLATE.format(user=self.user)

    def with_cidr(self, cidr):
        return replace(self, cidr=cidr)


@dataclass(frozen=True)
class Filter:
    key: str
    value: str


@dataclass
class SecurityGroupSelection:
    security_group: SecurityGroup
    ports: Set[int] = field(default_factory=set)
