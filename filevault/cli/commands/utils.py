"""
Shared helpers for CLI commands.
"""
import typer


def confirm_action(message: str, default: bool = False) -> bool:
    """Ask the user to confirm an action. Returns False when input is aborted."""
    try:
        return typer.confirm(message, default=default)
    except typer.Abort:
        return False
