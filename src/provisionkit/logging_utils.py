import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, log_path: str | None = None) -> str | None:
    """Configure logging for the CLI.

    Console output goes to stderr through rich, at INFO (DEBUG with
    verbose). When log_path is given every record, including each command
    run on the host, is also written there at DEBUG. If the file cannot be
    opened the run continues with console logging only.

    Returns the log file actually in use, or None.
    """
    root = logging.getLogger()

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(root, "_provisionkit_configured", False):
        return getattr(root, "_provisionkit_log_path", None)

    level = logging.DEBUG if verbose else logging.INFO
    root.setLevel(logging.DEBUG if log_path else level)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    chosen_path: str | None = None
    if log_path:
        try:
            Path(log_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
        except OSError as e:
            logging.getLogger(__name__).warning("Not logging to %s: %s", log_path, e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                    datefmt="%Y-%m-%dT%H:%M:%S%z",
                )
            )
            root.addHandler(file_handler)
            chosen_path = log_path

    setattr(root, "_provisionkit_configured", True)
    setattr(root, "_provisionkit_log_path", chosen_path)
    return chosen_path
