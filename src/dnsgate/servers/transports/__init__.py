"""Outbound resolver transports used for whitelisted names."""
