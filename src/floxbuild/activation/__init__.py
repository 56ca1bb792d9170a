"""Login-file sourcing that survives nested activations."""

from .restore import (
    SAVED_VARIABLES,
    SavedVariables,
    ShellSourcer,
    Sourcer,
    SourceStep,
    dotfile_overrides,
    login_steps,
    render_login_fragment,
    restore_login,
)

__all__ = [
    "SAVED_VARIABLES",
    "SavedVariables",
    "ShellSourcer",
    "SourceStep",
    "Sourcer",
    "dotfile_overrides",
    "login_steps",
    "render_login_fragment",
    "restore_login",
]
