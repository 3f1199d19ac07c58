"""Utility helpers for usrgrpctl."""
