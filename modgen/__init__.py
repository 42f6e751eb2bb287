"""Generate go_mod BUILD rules that group go_library targets by governing go.mod."""

__version__ = "0.1.0"
