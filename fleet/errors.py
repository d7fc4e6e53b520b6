"""Exception types raised by the alert engine."""


class FleetAlertError(Exception):
    """Base class for all alert engine errors."""


class ConfigError(FleetAlertError):
    """Configuration file is missing, unreadable or fails validation."""


class VehicleNotFoundError(FleetAlertError, KeyError):
    """No vehicle record exists for the given id."""

    def __init__(self, vehicle_id: str):
        super().__init__(vehicle_id)
        self.vehicle_id = vehicle_id

    def __str__(self) -> str:
        return f"Vehicle '{self.vehicle_id}' not found"


class StoreLockTimeoutError(FleetAlertError):
    """Another writer held a vehicle or log file lock past the lock timeout."""


# =============================================================================
# Notification channel
# =============================================================================


class ChannelError(FleetAlertError):
    """A notification channel call failed."""


class ChannelAuthError(ChannelError):
    """Channel credentials are missing or refused. Fatal for the whole pass."""


class RecipientRejectedError(ChannelError):
    """The channel refused delivery to one recipient."""


class ChannelTransportError(ChannelError):
    """Network failure, timeout or server error talking to the channel."""


# =============================================================================
# Clearance workflow
# =============================================================================


class ClearanceError(FleetAlertError):
    """An alert dismissal did not take effect."""


class InvalidJustificationError(ClearanceError, ValueError):
    """Dismissal attempted without a written justification."""


class AccountabilityWriteError(ClearanceError):
    """
    The accountability record could not be written.

    The clearance was rolled back, so the alert is still active.
    """


class UnaccountableClearanceError(ClearanceError):
    """
    The accountability record could not be written and the clearance could
    not be rolled back either. The alert is suppressed without a record and
    needs manual attention.
    """
