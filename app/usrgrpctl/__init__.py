"""usrgrpctl - inspect and modify local UNIX users and groups."""

__version__ = "0.1.0"
