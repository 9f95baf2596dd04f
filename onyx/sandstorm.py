"""
Sandstorm: scale an environment's ECS services to zero and back.

'init' suspends scale-out and scheduled scaling, drops the minimum capacity
to 0 and sets the desired count to 0. 'revert' restores each service's
minimum and desired counts with scaling resumed, walking the services in
reverse order.

The services of each environment come from a JSON plan file:

    {
        "staging": [
            {"name": "api", "cluster": "staging-cluster",
             "desired_count": 2, "min_count": 1, "max_count": 4}
        ]
    }
"""

import json
from dataclasses import dataclass

import boto3
from botocore.exceptions import ClientError

from onyx import output
from onyx.errors import InvalidArgumentError

EVENTS = ('init', 'revert')


@dataclass(frozen=True)
class SandstormService:
    name: str
    cluster: str
    desired_count: int
    min_count: int
    max_count: int

    @property
    def resource_id(self):
        return f"service/{self.cluster}/{self.name}"


def load_plan(plan_file):
    """Load the services of every environment from a JSON plan file.

    Args:
        plan_file (str): Path to the JSON plan

    Returns:
        dict: Mapping of environment name to a list of SandstormService

    Raises:
        InvalidArgumentError: If the file cannot be read or an entry is incomplete
    """
    try:
        with open(plan_file, 'r') as f:
            raw_plan = json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidArgumentError(f"Error reading plan file {plan_file}: {e}") from e

    plan = {}
    for env, services in raw_plan.items():
        try:
            plan[env.lower()] = [
                SandstormService(
                    name=service['name'],
                    cluster=service['cluster'],
                    desired_count=int(service['desired_count']),
                    min_count=int(service['min_count']),
                    max_count=int(service['max_count'])
                )
                for service in services
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Invalid service entry for {env} in {plan_file}: {e}") from e

    return plan


class Sandstorm:
    """Pauses and resumes the autoscaling of ECS services."""

    def __init__(self, plan, region=None, profile=None):
        self.plan = plan
        self.region = region
        self.profile = profile
        self.session = self._create_session()
        self.ecs_client = self.session.client('ecs', region_name=self.region)
        self.autoscaling_client = self.session.client('application-autoscaling', region_name=self.region)

    def _create_session(self):
        """Create a boto3 session with the specified profile if provided."""
        if self.profile:
            return boto3.Session(profile_name=self.profile, region_name=self.region)
        return boto3.Session(region_name=self.region)

    def run(self, env, event):
        """Run a sandstorm event on an environment.

        Args:
            env (str): Environment in the plan (e.g. 'staging')
            event (str): 'init' to scale down, 'revert' to scale back up

        Returns:
            list: Names of the services that could not be updated

        Raises:
            InvalidArgumentError: If the environment or event is unknown
        """
        env = env.lower()
        if env not in self.plan:
            raise InvalidArgumentError(f"Invalid env: {env}")
        if event not in EVENTS:
            raise InvalidArgumentError(f"Invalid type: {event}")

        output.info('Running sandstorm %s on %s', output.bold(event), output.bold(env))

        services = list(self.plan[env])
        if event == 'revert':
            services.reverse()

        failed = []
        for service in services:
            if not self.update_service(service, event):
                failed.append(service.name)

        return failed

    def update_service(self, service, event):
        """Apply one sandstorm event to a service; returns False when it failed."""
        paused = event == 'init'
        desired_count = 0 if paused else service.desired_count
        min_count = 0 if paused else service.min_count

        try:
            self.autoscaling_client.register_scalable_target(
                ServiceNamespace='ecs',
                ResourceId=service.resource_id,
                ScalableDimension='ecs:service:DesiredCount',
                MinCapacity=min_count,
                MaxCapacity=service.max_count,
                SuspendedState={
                    'DynamicScalingInSuspended': False,
                    'DynamicScalingOutSuspended': paused,
                    'ScheduledScalingSuspended': paused
                }
            )
        except ClientError as e:
            output.error('%s (%d) -> %s (%s) | autoscaling error: %s', output.bold(event), desired_count,
                         output.red(output.underline(service.name)), service.cluster, e)
            return False

        try:
            self.ecs_client.update_service(cluster=service.cluster, service=service.name, desiredCount=desired_count)
        except ClientError as e:
            output.error('%s (%d) -> %s (%s) | Error: %s', output.bold(event), desired_count,
                         output.red(output.underline(service.name)), service.cluster, e)
            return False

        output.success('%s (%d) -> %s (%s)', output.bold(event), desired_count,
                       output.underline(service.name), service.cluster)
        return True
