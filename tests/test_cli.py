import argparse
from unittest.mock import patch

import pytest

from conftest import client_error
from onyx.cli import build_parser, main, run
from onyx.config import OnyxConfig
from onyx.errors import InvalidArgumentError, InvalidTypeError
from onyx.reconciler import ReconcileReport


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestParser:
    """Test cases for the command line."""

    def test_authorize_arguments(self):
        args = parse('ec2', 'sg', 'authorize', 'staging', '-t', 'ssh,redis', '-p', '8080',
                     '-f', 'name=api', '-f', 'name=public', '-s')

        assert args.sg_action == 'authorize'
        assert args.target == 'staging'
        assert args.types == 'ssh,redis'
        assert args.ports == '8080'
        assert args.filters == ['name=api', 'name=public']
        assert args.skip_choice is True
        assert args.abort_on_failure is False

    def test_global_options(self):
        args = parse('--region', 'eu-west-1', '--profile', 'ops', 'whoami')

        assert args.region == 'eu-west-1'
        assert args.profile == 'ops'

    def test_ecs_requires_cluster(self):
        with pytest.raises(SystemExit):
            parse('ecs', 'restart')

    def test_sandstorm_rejects_unknown_event(self):
        with pytest.raises(SystemExit):
            parse('sandstorm', 'staging', 'pause', '--plan', 'plan.json')


class TestConfig:

    def test_arguments_win(self):
        args = argparse.Namespace(region='eu-west-1', profile='ops', skip_choice=True)

        config = OnyxConfig.from_args(args, environ={'ONYX_REGION': 'us-west-2', 'AWS_PROFILE': 'other'})

        assert config == OnyxConfig(region='eu-west-1', profile='ops', skip_choice=True)

    def test_environment_fallbacks(self):
        args = argparse.Namespace(region=None, profile=None)

        config = OnyxConfig.from_args(args, environ={'AWS_REGION': 'ap-south-1', 'AWS_PROFILE': 'ops',
                                                     'ONYX_IP_TIMEOUT': '3'})

        assert config.region == 'ap-south-1'
        assert config.profile == 'ops'
        assert config.ip_timeout == 3.0
        assert config.skip_choice is False

    def test_onyx_region_before_aws_region(self):
        args = argparse.Namespace(region=None, profile=None)

        config = OnyxConfig.from_args(args, environ={'ONYX_REGION': 'us-west-2', 'AWS_REGION': 'ap-south-1'})

        assert config.region == 'us-west-2'

    def test_defaults(self):
        config = OnyxConfig.from_args(argparse.Namespace(region=None, profile=None), environ={})

        assert config.region == 'us-east-1'
        assert config.profile is None

    def test_invalid_ip_timeout(self):
        with pytest.raises(InvalidArgumentError, match='ONYX_IP_TIMEOUT'):
            OnyxConfig.from_args(argparse.Namespace(region=None, profile=None), environ={'ONYX_IP_TIMEOUT': 'soon'})


class TestRun:

    @patch('onyx.cli.authorize_or_revoke')
    @patch('onyx.cli.IdentityProvider')
    @patch('onyx.cli.SecurityGroupManager')
    def test_authorize(self, mock_manager, mock_identity, mock_reconcile):
        mock_reconcile.return_value = ReconcileReport(succeeded=['sg-1'])
        parser = build_parser()
        args = parser.parse_args(['--profile', 'ops', 'ec2', 'sg', 'authorize', 'sg-1', '-t', 'ssh', '-p', '22,8080'])

        assert run(args, parser) == 0

        config, change = mock_reconcile.call_args.args
        assert config.profile == 'ops'
        assert change.env_or_id == 'sg-1'
        assert change.types == ['ssh']
        assert change.ports == [22, 8080]
        assert change.authorize is True
        mock_identity.assert_called_once_with(profile='ops')

    @patch('onyx.cli.authorize_or_revoke')
    @patch('onyx.cli.IdentityProvider')
    @patch('onyx.cli.SecurityGroupManager')
    def test_revoke_with_failures(self, mock_manager, mock_identity, mock_reconcile):
        mock_reconcile.return_value = ReconcileReport(failed={'sg-1': ['boom']})
        parser = build_parser()
        args = parser.parse_args(['ec2', 'sg', 'revoke', 'staging', '-t', 'ssh'])

        assert run(args, parser) == 1
        assert mock_reconcile.call_args.args[1].authorize is False

    @patch('onyx.cli.SecurityGroupManager')
    def test_describe_requires_id_or_env(self, mock_manager):
        with pytest.raises(SystemExit) as exc_info:
            main(['ec2', 'sg', 'describe'])

        assert exc_info.value.code == 1

    @patch('onyx.cli.CloudWatchRuleManager')
    def test_cw_disable(self, mock_manager):
        with pytest.raises(SystemExit) as exc_info:
            main(['cw', 'disable', 'NightlyReport'])

        assert exc_info.value.code == 0
        mock_manager.return_value.disable_rule.assert_called_once_with('NightlyReport')

    @patch('onyx.cli.ECSServiceManager')
    def test_ecs_restart_failure_exit_code(self, mock_manager):
        mock_manager.return_value.restart_services.return_value = ([], ['api'])

        with pytest.raises(SystemExit) as exc_info:
            main(['ecs', 'restart', '-c', 'staging-cluster', '-s', 'api'])

        assert exc_info.value.code == 1

    @patch('onyx.cli.IdentityProvider')
    def test_whoami(self, mock_identity, capsys):
        mock_identity.return_value.whoami.return_value = 'alice'

        with pytest.raises(SystemExit) as exc_info:
            main(['whoami'])

        assert exc_info.value.code == 0
        assert 'alice' in capsys.readouterr().out


class TestMain:

    @patch("boto3.Session")
    def test_provider_error_during_discovery(self, mock_session, capsys):
        paginator = mock_session.return_value.client.return_value.get_paginator.return_value
        paginator.paginate.side_effect = client_error('UnauthorizedOperation', 'DescribeSecurityGroups')

        with pytest.raises(SystemExit) as exc_info:
            main(['ec2', 'sg', 'list', '-e', 'staging'])

        assert exc_info.value.code == 1
        assert '[ERROR]' in capsys.readouterr().out

    @patch.dict('os.environ', {'ONYX_IP_TIMEOUT': 'soon'})
    def test_invalid_environment_is_reported(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(['whoami'])

        assert exc_info.value.code == 1
        assert 'ONYX_IP_TIMEOUT' in capsys.readouterr().out

    def test_no_command(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1

    @patch('onyx.cli.run')
    def test_onyx_error_exits_with_one(self, mock_run, capsys):
        mock_run.side_effect = InvalidTypeError("Invalid type 'ftp'")

        with pytest.raises(SystemExit) as exc_info:
            main(['whoami'])

        assert exc_info.value.code == 1
        assert "Invalid type 'ftp'" in capsys.readouterr().out

    @patch('onyx.cli.run')
    def test_keyboard_interrupt(self, mock_run):
        mock_run.side_effect = KeyboardInterrupt

        with pytest.raises(SystemExit) as exc_info:
            main(['whoami'])

        assert exc_info.value.code == 130

    @patch('onyx.cli.ECSServiceManager')
    def test_incomplete_subcommand_prints_help(self, mock_manager, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(['ecs'])

        assert exc_info.value.code == 1
        assert 'usage' in capsys.readouterr().out
