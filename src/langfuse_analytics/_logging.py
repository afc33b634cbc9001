import logging


def get_logger(name: str) -> logging.Logger:
    """Return a named logger.

    Handlers are configured once by the entry point (``logging.basicConfig``
    in ``cli.main``); this helper never attaches its own, so repeated calls
    do not duplicate output.
    """
    return logging.getLogger(name)
