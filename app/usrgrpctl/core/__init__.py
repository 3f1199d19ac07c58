"""Core logic: search, validation, action state machine and reconciliation."""
