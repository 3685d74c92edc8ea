"""
Host integration layer
"""

from .host import InMemoryHost
from .operations import command_to_dict, parse_command
from .settings import Scenario, load_scenario, load_settings, settings_path_from_env

__all__ = [
    "InMemoryHost",
    "command_to_dict",
    "parse_command",
    "Scenario",
    "load_scenario",
    "load_settings",
    "settings_path_from_env",
]
