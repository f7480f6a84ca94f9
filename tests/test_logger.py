# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
from mail_queue_view.logger import get_logger


def test_get_logger_reuses_existing_logger():
    logger = get_logger("TestLogger")
    handler_count = len(logger.handlers)

    same_logger = get_logger("TestLogger")
    assert logger is same_logger
    assert len(same_logger.handlers) == handler_count


def test_default_logger_name():
    assert get_logger().name == "MailQueueView"
