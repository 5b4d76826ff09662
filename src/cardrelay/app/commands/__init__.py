from cardrelay.app.commands import monitor

COMMAND_MODULES = [monitor]

__all__ = ["COMMAND_MODULES", "monitor"]
