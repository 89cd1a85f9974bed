"""Community Events: approved-event feed, organizer submissions and moderation."""

__version__ = "0.1.0"
