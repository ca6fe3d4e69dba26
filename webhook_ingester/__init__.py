"""VeilMail webhook ingester: verify, normalize and store webhook events."""
__version__ = "0.1.0"
