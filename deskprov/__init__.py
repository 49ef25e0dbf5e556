"""deskprov — idempotent provisioning for a minimal X11 desktop."""

__version__ = "0.1.0"
