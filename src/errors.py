"""
Exceptions raised while detecting available updates.

Every error derives from UpdaterError so the CLI can report any failure of a
detection pass with a single handler.
"""


class UpdaterError(RuntimeError):
    """Base class for all updater failures."""


class InventoryError(UpdaterError):
    """Listing or describing cluster hosts failed."""


class DispatchError(UpdaterError):
    """The update-check command could not be submitted."""


class CompletionError(UpdaterError):
    """Waiting for the update-check command to finish failed or was cancelled."""


class ResultError(UpdaterError):
    """The output of a single host's invocation is missing or malformed."""


class UpdateCheckParseError(UpdaterError):
    """The update-check command printed something that is not valid update JSON."""


class MissingChosenUpdateError(UpdaterError):
    """An update is reported as available but no chosen update was given."""

    def __init__(self, instance_id: str):
        super().__init__(
            f"Update is available but chosen update is missing for instance {instance_id}"
        )
        self.instance_id = instance_id
