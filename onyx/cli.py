"""
Onyx command line.

Examples:
    onyx ec2 sg authorize staging -t ssh
    onyx ec2 sg authorize sg-0a1b2c3d -t ssh,mongo,redis
    onyx ec2 sg revoke staging -t redis -f name=api -s
    onyx ecs restart --cluster staging-api-cluster
    onyx cw disable SomeRule
"""

import argparse
import sys

from tabulate import tabulate

from onyx import output
from onyx.cloudwatch_rules import CloudWatchRuleManager
from onyx.config import OnyxConfig
from onyx.ec2_instances import EC2InstanceManager
from onyx.ecs_services import ECSServiceManager
from onyx.errors import InvalidArgumentError, OnyxError
from onyx.identity import IdentityProvider
from onyx.presenter import display_security_group
from onyx.reconciler import RuleChangeRequest, authorize_or_revoke
from onyx.rules import ALLOWED_RULES, parse_ports, split_list
from onyx.sandstorm import EVENTS, Sandstorm, load_plan
from onyx.security_groups import SecurityGroupManager, extract_filters, normalize_environment
from onyx.selection import select_security_groups


def add_rule_change_arguments(parser):
    allowed = '|'.join(ALLOWED_RULES)
    parser.add_argument('target', help='Environment (e.g. staging) or security group ID (sg-...)')
    parser.add_argument('-t', '--types', default='',
                        help=f'Comma separated rule types ({allowed}), e.g. ssh,mysql')
    parser.add_argument('-p', '--ports', default='', help='Comma separated ports (0-65535), e.g. 22,1331')
    parser.add_argument('-f', '--filter', action='append', default=[], dest='filters',
                        help='Filter security groups (key=value, e.g. name=api). Can be used multiple times')
    parser.add_argument('-s', '--skip-choice', action='store_true',
                        help='Proceed without asking when only one security group matches')
    parser.add_argument('--abort-on-failure', action='store_true',
                        help='Stop at the first security group that fails instead of continuing')


def build_parser():
    parser = argparse.ArgumentParser(prog='onyx', description='Lightweight helpers over the AWS SDK')

    # Global options
    parser.add_argument('--region', help='AWS region (default: ONYX_REGION, AWS_REGION or us-east-1)')
    parser.add_argument('--profile', help='AWS profile to use')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # whoami
    subparsers.add_parser('whoami', help='Show the IAM user making requests')

    # ec2
    ec2_parser = subparsers.add_parser('ec2', help='Actions on the EC2 namespace')
    ec2_subparsers = ec2_parser.add_subparsers(dest='ec2_command')

    sg_parser = ec2_subparsers.add_parser('sg', help='List, describe, authorize or revoke security group rules')
    sg_subparsers = sg_parser.add_subparsers(dest='sg_action')

    sg_list_parser = sg_subparsers.add_parser('list', help='List security groups')
    sg_list_parser.add_argument('-e', '--env', default='', help='Environment to list (e.g. production, staging)')

    sg_describe_parser = sg_subparsers.add_parser('describe', help='Describe security groups by ID or environment')
    sg_describe_parser.add_argument('-e', '--env', default='', help='Environment to choose security groups from')
    sg_describe_parser.add_argument('-i', '--id', default='', dest='group_id', help='Security group ID to describe')
    sg_describe_parser.add_argument('-f', '--filter', action='append', default=[], dest='filters',
                                    help='Filter security groups (key=value). Can be used multiple times')
    sg_describe_parser.add_argument('-s', '--skip-choice', action='store_true',
                                    help='Proceed without asking when only one security group matches')

    add_rule_change_arguments(sg_subparsers.add_parser(
        'authorize', help='Revoke your old rules and authorize new ones for your public IP'))
    add_rule_change_arguments(sg_subparsers.add_parser(
        'revoke', help='Revoke your rules'))

    instance_parser = ec2_subparsers.add_parser('instance', help='Actions on EC2 instances')
    instance_subparsers = instance_parser.add_subparsers(dest='instance_action')

    instance_describe_parser = instance_subparsers.add_parser('describe', help='Describe instances')
    instance_describe_parser.add_argument('instance_ids', nargs='+', help='Instance ID(s)')

    instance_start_parser = instance_subparsers.add_parser('start', help='Start an instance')
    instance_start_parser.add_argument('instance_id', help='Instance ID')

    instance_stop_parser = instance_subparsers.add_parser('stop', help='Stop an instance')
    instance_stop_parser.add_argument('instance_id', help='Instance ID')

    # ecs
    ecs_parser = subparsers.add_parser('ecs', help='Actions on ECS clusters')
    ecs_subparsers = ecs_parser.add_subparsers(dest='ecs_command')

    ecs_describe_parser = ecs_subparsers.add_parser('describe', help='Show private IPs of the hosts running a cluster\'s tasks')
    ecs_describe_parser.add_argument('-c', '--cluster', required=True, help='Cluster name')
    ecs_describe_parser.add_argument('-s', '--service', default='', help='Only services whose name contains this text')

    ecs_restart_parser = ecs_subparsers.add_parser('restart', help='Force new deployment of services')
    ecs_restart_parser.add_argument('-c', '--cluster', required=True, help='Cluster name')
    ecs_restart_parser.add_argument('-s', '--service', default='', help='Exact service name (asks when omitted)')

    # cw
    cw_parser = subparsers.add_parser('cw', help='Actions on CloudWatch Events rules')
    cw_subparsers = cw_parser.add_subparsers(dest='cw_command')

    cw_enable_parser = cw_subparsers.add_parser('enable', help='Enable a rule')
    cw_enable_parser.add_argument('name', help='Rule name')

    cw_disable_parser = cw_subparsers.add_parser('disable', help='Disable a rule')
    cw_disable_parser.add_argument('name', help='Rule name')

    # sandstorm
    sandstorm_parser = subparsers.add_parser('sandstorm', help='Scale an environment\'s ECS services down or back up')
    sandstorm_parser.add_argument('env', help='Environment in the plan (e.g. staging)')
    sandstorm_parser.add_argument('event', choices=EVENTS, help='init scales down, revert scales back up')
    sandstorm_parser.add_argument('--plan', required=True, help='JSON file listing the services of each environment')

    return parser


def list_security_groups(config, env):
    manager = SecurityGroupManager(region=config.region, profile=config.profile)
    security_groups = manager.list_by_environment(env)

    if env:
        print(f"Security groups: (Environment: {output.bold(normalize_environment(env))})")

    if not security_groups:
        output.warn('No security groups found')
        return 0

    table_data = [[sg.id, output.italic(sg.name), ','.join(sorted(sg.allowed_rule_types))] for sg in security_groups]
    print(tabulate(table_data, headers=['Group ID', 'Name', 'Onyx rules'], tablefmt='grid'))
    return 0


def describe_security_groups(config, args, prompt=input):
    manager = SecurityGroupManager(region=config.region, profile=config.profile)

    if args.env:
        selections = select_security_groups(
            manager,
            args.env,
            filters=extract_filters(args.filters),
            skip_choice=config.skip_choice,
            prompt=prompt,
            require_ports=False
        )
        if not selections:
            output.warn('No security group matched')
        for selection in selections.values():
            display_security_group(selection.security_group)
        return 0

    if args.group_id:
        display_security_group(manager.get_by_id(args.group_id))
        return 0

    raise InvalidArgumentError('Either `--id` or `--env` is required')


def change_rules(config, args, authorize, prompt=input):
    change = RuleChangeRequest(
        env_or_id=args.target,
        types=split_list(args.types),
        ports=parse_ports(args.ports),
        filters=args.filters,
        authorize=authorize
    )

    report = authorize_or_revoke(
        config,
        change,
        manager=SecurityGroupManager(region=config.region, profile=config.profile),
        identity=IdentityProvider(profile=config.profile),
        prompt=prompt
    )
    return 0 if report.ok else 1


def run(args, parser, prompt=input):
    """Execute the parsed command.

    Returns:
        int: Process exit code
    """
    config = OnyxConfig.from_args(args)

    if args.command == 'whoami':
        output.info(IdentityProvider(profile=config.profile).whoami())
        return 0

    if args.command == 'ec2' and args.ec2_command == 'sg':
        if args.sg_action == 'list':
            return list_security_groups(config, args.env)
        if args.sg_action == 'describe':
            return describe_security_groups(config, args, prompt)
        if args.sg_action in ('authorize', 'revoke'):
            return change_rules(config, args, args.sg_action == 'authorize', prompt)

    elif args.command == 'ec2' and args.ec2_command == 'instance':
        manager = EC2InstanceManager(region=config.region, profile=config.profile)
        if args.instance_action == 'describe':
            manager.display_instances(args.instance_ids)
            return 0
        if args.instance_action == 'start':
            manager.start_instance(args.instance_id)
            return 0
        if args.instance_action == 'stop':
            manager.stop_instance(args.instance_id)
            return 0

    elif args.command == 'ecs' and args.ecs_command:
        manager = ECSServiceManager(region=config.region, profile=config.profile)
        if args.ecs_command == 'describe':
            services = manager.describe_cluster(args.cluster, args.service)
            manager.display_cluster(args.cluster, services)
            return 0
        if args.ecs_command == 'restart':
            _, failed = manager.restart_services(args.cluster, args.service, prompt)
            return 1 if failed else 0

    elif args.command == 'cw' and args.cw_command:
        manager = CloudWatchRuleManager(region=config.region, profile=config.profile)
        if args.cw_command == 'enable':
            manager.enable_rule(args.name)
        else:
            manager.disable_rule(args.name)
        return 0

    elif args.command == 'sandstorm':
        sandstorm = Sandstorm(load_plan(args.plan), region=config.region, profile=config.profile)
        failed = sandstorm.run(args.env, args.event)
        return 1 if failed else 0

    parser.print_help()
    return 1


def main(argv=None):
    """Main function to parse arguments and execute commands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Check if a command was provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = run(args, parser)
    except OnyxError as e:
        output.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        output.warn('Aborted.')
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
