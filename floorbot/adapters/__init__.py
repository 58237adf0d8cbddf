"""Discord, marketplace and web implementations of the ports."""
