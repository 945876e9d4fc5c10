"""Exception types for oms-tui.

The render path itself never raises; these are only used at the edges
(strict configuration loading and the headless CLI).
"""


class OmsTuiError(Exception):
    """Base class for all oms-tui errors."""


class ConfigError(OmsTuiError):
    """Raised when a configuration file is rejected in strict mode."""


class EventLogError(OmsTuiError):
    """Raised when an event log file cannot be read."""
