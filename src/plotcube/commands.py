"""
Typed dispatcher for interactive chart controls.

Renderers route control clicks (auto-rotate, reset view, save, download) through a
`ChartCommands` handle instead of reaching into global state.
"""

import logging
import typing

import attrs

from plotcube.errors import ValidationError
from plotcube.types import ChartCommand

__all__ = ["ChartCommands", "CommandHandler"]

logger = logging.getLogger(__name__)

CommandHandler = typing.Callable[[], None]
"""A zero-argument callback run when a control is triggered."""


@attrs.frozen
class ChartCommands:
    """Callbacks for the interactive controls of a 3D chart. Unset controls are not offered."""

    on_rotate_toggle: typing.Optional[CommandHandler] = None
    """Toggle camera auto-rotation."""
    on_reset: typing.Optional[CommandHandler] = None
    """Reset the camera to its initial pose."""
    on_save: typing.Optional[CommandHandler] = None
    """Save the chart to the user's history."""
    on_download: typing.Optional[CommandHandler] = None
    """Download the chart as an image."""

    def handler(self, command: ChartCommand) -> typing.Optional[CommandHandler]:
        return {
            ChartCommand.ROTATE_TOGGLE: self.on_rotate_toggle,
            ChartCommand.RESET: self.on_reset,
            ChartCommand.SAVE: self.on_save,
            ChartCommand.DOWNLOAD: self.on_download,
        }[command]

    @property
    def available(self) -> typing.List[ChartCommand]:
        """Commands that have a handler, in display order."""
        return [command for command in ChartCommand if self.handler(command) is not None]

    def dispatch(self, command: typing.Union[ChartCommand, str]) -> None:
        """
        Run the handler registered for a command.

        :param command: The command, or its string value (e.g. "reset")
        :raises ValidationError: If the command is unknown or has no handler
        """
        try:
            command = ChartCommand(command)
        except ValueError as exc:
            raise ValidationError(f"Unknown chart command {command!r}") from exc

        handler = self.handler(command)
        if handler is None:
            raise ValidationError(f"No handler registered for '{command}'")
        logger.debug(f"Dispatching chart command '{command}'")
        handler()
