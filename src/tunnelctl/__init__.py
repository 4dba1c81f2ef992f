"""tunnelctl — VPN client session controller."""

__version__ = "0.1.0"
