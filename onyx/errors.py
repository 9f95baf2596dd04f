"""Exceptions raised by onyx commands."""


class OnyxError(Exception):
    """Base class for every error reported to the operator."""


class InvalidTypeError(OnyxError):
    """A rule type name is not in the rule catalog."""


class InvalidPortError(OnyxError):
    """A port is not an integer between 0 and 65535."""


class InvalidUserError(OnyxError):
    """The caller identity is missing or too short to tag rules with."""


class NoPortsToAuthorizeError(OnyxError):
    """Neither types nor ports resolved to anything."""


class NoRulesToApplyError(OnyxError):
    """The selected security groups ended up without any port."""


class NotFoundError(OnyxError):
    """A security group id could not be described."""


class RevokeFailedError(OnyxError):
    """The provider rejected or did not apply a revoke."""


class AuthorizeFailedError(OnyxError):
    """The provider rejected an authorize."""


class InteractiveInputInvalidError(OnyxError):
    """The operator entered an empty or unusable choice."""


class PublicIPError(OnyxError):
    """None of the public IP sources answered."""


class NoServicesError(OnyxError):
    """No ECS service was selected."""


class InvalidArgumentError(OnyxError):
    """A command argument is outside its allowed values."""


class AWSRequestError(OnyxError):
    """An AWS API call failed."""
