"""
EC2 instance helpers: look up the addresses of instances and start or stop them.
"""

from dataclasses import dataclass

import boto3
from botocore.exceptions import ClientError
from colorama import Fore, Style
from tabulate import tabulate

from onyx import output
from onyx.errors import AWSRequestError


@dataclass(frozen=True)
class Instance:
    id: str
    private_ipv4: str = ''
    public_ipv4: str = ''
    state: str = ''
    name: str = ''


def convert_instance(raw):
    return Instance(
        id=raw['InstanceId'],
        private_ipv4=raw.get('PrivateIpAddress', ''),
        public_ipv4=raw.get('PublicIpAddress', ''),
        state=raw.get('State', {}).get('Name', ''),
        name=next((tag['Value'] for tag in raw.get('Tags', []) if tag['Key'] == 'Name'), '')
    )


class EC2InstanceManager:
    """Describes, starts and stops EC2 instances."""

    def __init__(self, region=None, profile=None):
        """Initialize the EC2 instance manager.

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

    def describe_instances(self, instance_ids):
        """Get the addresses and state of EC2 instances.

        Args:
            instance_ids (list): List of instance IDs

        Returns:
            list: List of Instance objects
        """
        if not instance_ids:
            return []

        try:
            response = self.ec2_client.describe_instances(InstanceIds=list(instance_ids))
        except ClientError as e:
            raise AWSRequestError(f"Error getting instance information: {e}") from e

        instances = []
        for reservation in response['Reservations']:
            for instance in reservation['Instances']:
                instances.append(convert_instance(instance))

        return instances

    def start_instance(self, instance_id):
        try:
            self.ec2_client.start_instances(InstanceIds=[instance_id])
        except ClientError as e:
            raise AWSRequestError(f"Error starting instance {instance_id}: {e}") from e

        output.success('Started instance %s', instance_id)

    def stop_instance(self, instance_id):
        try:
            self.ec2_client.stop_instances(InstanceIds=[instance_id])
        except ClientError as e:
            raise AWSRequestError(f"Error stopping instance {instance_id}: {e}") from e

        output.success('Stopped instance %s', instance_id)

    def display_instances(self, instance_ids):
        """Display information about EC2 instances.

        Args:
            instance_ids (list): List of instance IDs to display
        """
        instances = self.describe_instances(instance_ids)
        if not instances:
            print(f"{Fore.YELLOW}No instances found matching the criteria{Style.RESET_ALL}")
            return

        headers = ["Instance ID", "Name", "State", "Public IP", "Private IP"]
        table_data = []

        for instance in instances:
            # Color code the state
            state = instance.state
            if state == 'running':
                state = f"{Fore.GREEN}{state}{Style.RESET_ALL}"
            elif state == 'stopped':
                state = f"{Fore.RED}{state}{Style.RESET_ALL}"
            elif state in ('pending', 'stopping'):
                state = f"{Fore.YELLOW}{state}{Style.RESET_ALL}"

            table_data.append([
                instance.id,
                instance.name or 'N/A',
                state,
                instance.public_ipv4 or 'N/A',
                instance.private_ipv4 or 'N/A'
            ])

        print(tabulate(table_data, headers=headers, tablefmt="grid"))
