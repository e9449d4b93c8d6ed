"""Exception types raised by the campaign store and the pack generator."""


class CampaignError(Exception):
    """Base exception for campaign-level errors."""


class DuplicateNameError(CampaignError):
    """Raised when a card or pack name is already taken in a campaign."""


class DuplicateEntryError(CampaignError):
    """Raised when a card is added to a pack pool that already holds it."""


class PlayerNotFoundError(CampaignError):
    """Raised when an existing player is updated under an unknown id."""


class EmptyPoolError(CampaignError, ValueError):
    """Raised when a draw has no eligible card or no positive weight."""
