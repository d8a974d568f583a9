"""
Exception classes for the reconciliation pass.

The coordinator distinguishes conditions that are expected while a
cluster converges (retried after a delay) from conditions that indicate
drift between the declared topology and reality (surfaced to the caller):

- PodNotScheduledError: a member has no address yet (retried)
- RegionNotReadyError: a cross-region call failed or was unusable (retried)
- DecommissionUnconfirmedError: a decommission target is unreachable and its
  peers do not yet agree it is gone (retried)
- ConflictError: a compare-and-set update lost a race (retried)
- ConfigurationInvariantError: declared state contradicts the live cluster (fatal)

Per project patterns:
- Inherit from a common base exception
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class OperatorError(Exception):
    """Base class for all coordinator errors."""


class PodNotScheduledError(OperatorError):
    """
    Raised when a member has no assigned address yet.

    No configuration can be produced for a member without an address, so
    the whole pass is abandoned and retried later.

    Attributes:
        member_name: The member that is not scheduled
    """

    def __init__(self, member_name: str) -> None:
        self.member_name = member_name
        super().__init__(f"Member {member_name} is not scheduled yet")


class RegionNotReadyError(OperatorError):
    """
    Raised when a cooperating region cannot be queried or returns an
    unusable result.

    Attributes:
        region: Region host the call was made for (local region for publishes)
        reason: Why the region is considered not ready
    """

    def __init__(self, region: str, reason: str) -> None:
        self.region = region
        self.reason = reason
        super().__init__(f"Region {region} is not ready: {reason}")


class ConfigurationInvariantError(OperatorError):
    """Raised when the declared topology contradicts the live cluster."""


class DecommissionUnconfirmedError(OperatorError):
    """
    Raised when a decommission target cannot be queried and the remaining
    members do not all agree it has left.

    Attributes:
        member_name: The member being removed
        cause: The original error from the operation-mode query
        not_live: Number of peers that no longer see the member as live
        peers: Number of peers asked
    """

    def __init__(
        self,
        member_name: str,
        cause: BaseException,
        not_live: int = 0,
        peers: int = 0,
    ) -> None:
        self.member_name = member_name
        self.cause = cause
        self.not_live = not_live
        self.peers = peers
        super().__init__(
            f"Failed to get operation mode of {member_name} ({cause}), "
            f"but {peers - not_live} of {peers} peer(s) still see it as live"
        )


class ConflictError(OperatorError):
    """
    Raised when a compare-and-set update finds a different value than expected.

    Attributes:
        resource: What was being updated (e.g. "datacenter dc1 replicas")
        expected: The value the caller based its update on
        actual: The value found in the store (None if unknown)
    """

    def __init__(self, resource: str, expected: object, actual: object = None) -> None:
        self.resource = resource
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Conflict updating {resource}: expected {expected!r}, found {actual!r}"
        )


class GatewayError(OperatorError):
    """Raised by cross-region gateway clients on transport or decoding failure."""


class NodeControlError(OperatorError):
    """Raised by node-control clients on transport, JMX or decoding failure."""


class JobAlreadyRunningError(OperatorError):
    """
    Raised when a job is started while another job with the same name runs.

    Attributes:
        name: The job name
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Job {name} already exists and is running")


class JobStillRunningError(OperatorError):
    """
    Raised when removal of a running job is attempted.

    Attributes:
        name: The job name
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Job {name} is still running, removing running jobs is not allowed"
        )
