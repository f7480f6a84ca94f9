# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the mail queue view.

Handlers, level and format are configured once by the entry point through
``logging.basicConfig()``; modules only ask for named loggers.

Example:
    Typical usage in a module::

        from mail_queue_view.logger import get_logger

        logger = get_logger("QueueBrowser")
        logger.info("Browse completed")
"""

import logging


def get_logger(name: str = "MailQueueView") -> logging.Logger:
    """Retrieve a logger instance bound to ``name``.

    No handler is attached here; that responsibility lies with the
    application entry point.

    Args:
        name: The logger name. Defaults to "MailQueueView".

    Returns:
        A ``logging.Logger`` instance.
    """
    return logging.getLogger(name)
