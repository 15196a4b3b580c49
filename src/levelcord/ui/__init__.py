"""Discord embeds for the member-facing commands."""
