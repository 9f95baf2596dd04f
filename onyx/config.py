"""
Runtime configuration.

Every command receives one OnyxConfig built from the parsed command line, with
the region and profile falling back to the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from onyx.errors import InvalidArgumentError

DEFAULT_REGION = 'us-east-1'
DEFAULT_IP_TIMEOUT = 10


@dataclass(frozen=True)
class OnyxConfig:
    region: str = DEFAULT_REGION
    profile: Optional[str] = None
    skip_choice: bool = False
    abort_on_failure: bool = False
    ip_timeout: float = DEFAULT_IP_TIMEOUT

    @classmethod
    def from_args(cls, args, environ=None):
        """Build the configuration from parsed arguments.

        Args:
            args (argparse.Namespace): Parsed command line arguments
            environ (dict): Environment to read fallbacks from (default: os.environ)

        Returns:
            OnyxConfig: The configuration for this invocation

        Raises:
            InvalidArgumentError: If ONYX_IP_TIMEOUT is not a number
        """
        environ = os.environ if environ is None else environ

        region = (getattr(args, 'region', None)
                  or environ.get('ONYX_REGION')
                  or environ.get('AWS_REGION')
                  or DEFAULT_REGION)
        profile = getattr(args, 'profile', None) or environ.get('AWS_PROFILE') or None

        ip_timeout = environ.get('ONYX_IP_TIMEOUT', DEFAULT_IP_TIMEOUT)
        try:
            ip_timeout = float(ip_timeout)
        except ValueError:
            raise InvalidArgumentError(f"Invalid ONYX_IP_TIMEOUT '{ip_timeout}', expected seconds") from None

        return cls(
            region=region,
            profile=profile,
            skip_choice=bool(getattr(args, 'skip_choice', False)),
            abort_on_failure=bool(getattr(args, 'abort_on_failure', False)),
            ip_timeout=ip_timeout,
        )
