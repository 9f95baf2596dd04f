"""
ECS helpers: find where a cluster's tasks run and force new deployments of
its services.
"""

from dataclasses import dataclass, field
from typing import List

import boto3
from botocore.exceptions import ClientError
from tabulate import tabulate

from onyx import output
from onyx.ec2_instances import EC2InstanceManager
from onyx.errors import AWSRequestError, InteractiveInputInvalidError, NoServicesError

DESCRIBE_SERVICES_LIMIT = 10
DESCRIBE_TASKS_LIMIT = 100


@dataclass
class Task:
    arn: str
    task_definition_arn: str
    container_instance_arn: str
    private_ip: str = ''


@dataclass
class Service:
    arn: str
    name: str
    task_definition_arn: str
    tasks: List[Task] = field(default_factory=list)


def chunks(items, size):
    """Split a list into consecutive lists of at most size items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class ECSServiceManager:
    """Reads and redeploys the services of ECS clusters."""

    def __init__(self, region=None, profile=None, ec2_manager=None):
        """Initialize the ECS service manager.

        Args:
            region (str): AWS region name (e.g., 'us-east-1')
            profile (str): AWS profile name to use
            ec2_manager (EC2InstanceManager): Used to look up container instance addresses
        """
        self.region = region
        self.profile = profile
        self.session = self._create_session()
        self.ecs_client = self.session.client('ecs', region_name=self.region)
        self.ec2_manager = ec2_manager or EC2InstanceManager(region=region, profile=profile)

    def _create_session(self):
        """Create a boto3 session with the specified profile if provided."""
        if self.profile:
            return boto3.Session(profile_name=self.profile, region_name=self.region)
        return boto3.Session(region_name=self.region)

    def get_services(self, cluster, name_filter=''):
        """Get the replica services of a cluster.

        Args:
            cluster (str): Cluster name or ARN
            name_filter (str): Keep only services whose ARN contains this text

        Returns:
            list: List of Service objects
        """
        try:
            service_arns = []
            paginator = self.ecs_client.get_paginator('list_services')
            for page in paginator.paginate(cluster=cluster, schedulingStrategy='REPLICA'):
                service_arns.extend(page['serviceArns'])

            if name_filter:
                service_arns = [arn for arn in service_arns if name_filter in arn]

            services = []
            for chunk in chunks(service_arns, DESCRIBE_SERVICES_LIMIT):
                response = self.ecs_client.describe_services(cluster=cluster, services=chunk)
                for service in response['services']:
                    services.append(Service(
                        arn=service['serviceArn'],
                        name=service['serviceName'],
                        task_definition_arn=service.get('taskDefinition', '')
                    ))

            return services
        except ClientError as e:
            raise AWSRequestError(f"Error getting services of cluster {cluster}: {e}") from e

    def get_tasks(self, cluster, service_name):
        """Get the tasks of a service that run on container instances."""
        try:
            task_arns = []
            paginator = self.ecs_client.get_paginator('list_tasks')
            for page in paginator.paginate(cluster=cluster, serviceName=service_name):
                task_arns.extend(page['taskArns'])

            tasks = []
            for chunk in chunks(task_arns, DESCRIBE_TASKS_LIMIT):
                response = self.ecs_client.describe_tasks(cluster=cluster, tasks=chunk)
                for task in response['tasks']:
                    # Fargate tasks have no container instance
                    if not task.get('containerInstanceArn'):
                        continue
                    tasks.append(Task(
                        arn=task['taskArn'],
                        task_definition_arn=task['taskDefinitionArn'],
                        container_instance_arn=task['containerInstanceArn']
                    ))

            return tasks
        except ClientError as e:
            raise AWSRequestError(f"Error getting tasks of service {service_name}: {e}") from e

    def get_container_instance_hosts(self, cluster, container_instance_arns):
        """Map container instance ARNs to the EC2 instance IDs hosting them."""
        hosts = {}
        try:
            for chunk in chunks(list(container_instance_arns), DESCRIBE_TASKS_LIMIT):
                response = self.ecs_client.describe_container_instances(cluster=cluster, containerInstances=chunk)
                for container_instance in response['containerInstances']:
                    hosts[container_instance['containerInstanceArn']] = container_instance['ec2InstanceId']
        except ClientError as e:
            raise AWSRequestError(f"Error describing container instances of cluster {cluster}: {e}") from e

        return hosts

    def describe_cluster(self, cluster, service_name=''):
        """Get the services of a cluster with the private IPs their tasks run on.

        Args:
            cluster (str): Cluster name or ARN
            service_name (str): Only describe services whose ARN contains this text

        Returns:
            list: List of Service objects with their tasks filled in
        """
        if not service_name:
            output.warn('Service name is not provided. This results in large query, please consider narrowing your search.')

        services = self.get_services(cluster, service_name)
        for service in services:
            service.tasks = self.get_tasks(cluster, service.name)

        container_instance_arns = {task.container_instance_arn for service in services for task in service.tasks}
        if not container_instance_arns:
            return services

        hosts = self.get_container_instance_hosts(cluster, container_instance_arns)
        instances = {instance.id: instance for instance in self.ec2_manager.describe_instances(sorted(set(hosts.values())))}

        for service in services:
            for task in service.tasks:
                instance = instances.get(hosts.get(task.container_instance_arn))
                if instance:
                    task.private_ip = instance.private_ipv4

        return services

    def display_cluster(self, cluster, services):
        print(f"Cluster name: {output.bold(cluster)}")

        headers = ["Service", "Task", "Private IP"]
        table_data = []
        for service in services:
            if not service.tasks:
                table_data.append([service.name, 'N/A', 'N/A'])
            for task in service.tasks:
                table_data.append([service.name, task.arn.split('/')[-1], task.private_ip or 'N/A'])

        print(tabulate(table_data, headers=headers, tablefmt="grid"))

    def choose_services(self, cluster, prompt=input):
        """Ask the operator which services of a cluster to restart.

        Returns:
            list: Chosen service names

        Raises:
            InteractiveInputInvalidError: If the operator enters nothing
        """
        services = self.get_services(cluster)

        print(f"Cluster Name: {output.bold(cluster)}")
        print("Select service(s) to restart:")
        for i, service in enumerate(services):
            print(f"{output.bold(i)} : {service.name}")

        choices = prompt('Enter choice: ').strip()
        if not choices:
            raise InteractiveInputInvalidError('Invalid choice')

        chosen = []
        for token in choices.split(','):
            try:
                index = int(token.strip())
            except ValueError:
                continue
            if 0 <= index < len(services) and services[index].name not in chosen:
                chosen.append(services[index].name)

        return chosen

    def restart_services(self, cluster, service_name=None, prompt=input):
        """Force a new deployment of services of a cluster.

        Args:
            cluster (str): Cluster name or ARN
            service_name (str): Exact service to restart; asks the operator when empty
            prompt (callable): Reads the operator's choice

        Returns:
            tuple: (restarted service names, failed service names)

        Raises:
            NoServicesError: If no service was selected
        """
        if service_name:
            service_names = [service_name]
        else:
            service_names = self.choose_services(cluster, prompt)

        if not service_names:
            raise NoServicesError('No services to restart.')

        restarted = []
        failed = []
        for name in service_names:
            try:
                self.ecs_client.update_service(cluster=cluster, service=name, forceNewDeployment=True)
            except ClientError as e:
                output.error('Unable to restart %s. Error: %s', name, e)
                failed.append(name)
                continue

            output.success('Restarted %s', name)
            restarted.append(name)

        return restarted, failed
