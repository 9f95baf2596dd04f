"""CloudWatch Events rule switches."""

import boto3
from botocore.exceptions import ClientError

from onyx import output
from onyx.errors import AWSRequestError


class CloudWatchRuleManager:
    """Enables and disables CloudWatch Events rules."""

    def __init__(self, region=None, profile=None):
        self.region = region
        self.profile = profile
        self.session = self._create_session()
        self.events_client = self.session.client('events', region_name=self.region)

    def _create_session(self):
        """Create a boto3 session with the specified profile if provided."""
        if self.profile:
            return boto3.Session(profile_name=self.profile, region_name=self.region)
        return boto3.Session(region_name=self.region)

    def enable_rule(self, name):
        try:
            self.events_client.enable_rule(Name=name)
        except ClientError as e:
            raise AWSRequestError(f"Error enabling rule {name}: {e}") from e

        output.success('Enabled rule %s', output.bold(name))

    def disable_rule(self, name):
        try:
            self.events_client.disable_rule(Name=name)
        except ClientError as e:
            raise AWSRequestError(f"Error disabling rule {name}: {e}") from e

        output.success('Disabled rule %s', output.bold(name))
