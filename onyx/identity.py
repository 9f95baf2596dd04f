"""Caller identity: the IAM user name rules are tagged with."""

import boto3
from botocore.exceptions import ClientError

from onyx.errors import InvalidUserError


class IdentityProvider:
    """Looks up the IAM user behind the current credentials."""

    def __init__(self, profile=None):
        self.profile = profile
        self.session = self._create_session()
        self.iam_client = self.session.client('iam')

    def _create_session(self):
        """Create a boto3 session with the specified profile if provided."""
        if self.profile:
            return boto3.Session(profile_name=self.profile)
        return boto3.Session()

    def whoami(self):
        """Return the IAM user name of the caller.

        Raises:
            InvalidUserError: If the user cannot be looked up
        """
        try:
            response = self.iam_client.get_user()
        except ClientError as e:
            raise InvalidUserError(f"Unable to derive username. Error: {e}") from e

        return response['User']['UserName']
