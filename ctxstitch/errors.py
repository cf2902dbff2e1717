"""Exceptions raised by the compile pipeline."""


class CtxStitchError(Exception):
    """Base class for pipeline failures with a short message and optional detail."""

    def __init__(self, short_message: str, detail: str = ""):
        self.short_message = short_message
        self.detail = detail
        super().__init__(f"{short_message}: {detail}" if detail else short_message)


class ConfigurationError(CtxStitchError):
    """Invalid setup: unknown target, sync/async hook mismatch, bad budget.

    Never retried; aborts the compile call.
    """


class ToolArgumentsError(CtxStitchError, ValueError):
    """A tool call carries arguments that are not valid JSON text."""

    def __init__(self, tool_call_id: str, detail: str = ""):
        self.tool_call_id = tool_call_id
        super().__init__(f"malformed arguments in tool call '{tool_call_id}'", detail)
