# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Browsable view of a broker-delivered mail queue.

A message broker queue cannot be listed, peeked or selectively purged. This
package keeps a secondary, eventually consistent index of every mail enqueued
so that operators can:

- Browse a queue in enqueue-time order
- Count the mails still pending
- Delete mails by sender, recipient or name (logical tombstones)

Index rows are partitioned by queue, time slice and hash bucket. Message
content lives in a content-addressed blob store and is reloaded on demand.

Example:
    Wiring a view over a SQLite database::

        from mail_queue_view.core import MailQueueViewCore

        core = MailQueueViewCore(db_path="/data/queue_view.db")
        await core.init()

        view = await core.create_queue("spool")
        await view.store_mail(mail)
        async for item in await view.browse():
            print(item.mail_key, item.enqueued_time)
"""

__version__ = "0.3.0"
