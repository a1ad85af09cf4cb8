"""Logging configuration for cloud-resources using stdlib logging with rich."""

import logging
from collections.abc import MutableMapping
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Standard library logging kwargs that should not be treated as context
_STDLIB_KWARGS = {"exc_info", "stack_info", "stacklevel", "extra"}


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that renders keyword arguments as structured context.

    Context can be bound once with ``bind`` (e.g. the provider name) and is
    merged with any keyword arguments passed to an individual call.

    Example:
        logger = get_logger(__name__).bind(provider="aws_s3")
        logger.info("Creating bucket", bucket="ns1-files")
        # Output: Creating bucket [bucket=ns1-files provider=aws_s3]
    """

    def bind(self, **context: Any) -> "StructuredLoggerAdapter":
        """Return a new adapter with additional bound context.

        Args:
            **context: Context data to attach to every message

        Returns:
            Logger adapter carrying the merged context
        """
        merged = dict(self.extra or {})
        merged.update(context)
        return StructuredLoggerAdapter(self.logger, merged)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        """Move non-stdlib kwargs into a ``[key=value]`` suffix.

        Args:
            msg: Log message
            kwargs: Keyword arguments including context data

        Returns:
            Tuple of (formatted_message, cleaned_kwargs)
        """
        context = dict(self.extra or {})
        context.update({k: v for k, v in kwargs.items() if k not in _STDLIB_KWARGS})
        clean_kwargs = {k: v for k, v in kwargs.items() if k in _STDLIB_KWARGS}

        if context:
            context_str = " ".join(f"{k}={v}" for k, v in sorted(context.items()))
            msg = f"{msg} [dim][[/dim]{context_str}[dim]][/dim]"

        return msg, clean_kwargs


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger with a rich handler on stderr.

    Args:
        verbose: Enable debug logging and local variables in tracebacks
    """
    console = Console(stderr=True)

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=verbose,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    # botocore is very chatty at debug level
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str = "") -> StructuredLoggerAdapter:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger adapter with structured context support
    """
    logger = logging.getLogger(name) if name else logging.getLogger("cloud_resources")

    return StructuredLoggerAdapter(logger, {})
