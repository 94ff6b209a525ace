"""Transactional email — verification links, reset links, confirmations.

Learn: Mail is a best-effort side effect. The credential service hands a
message to the NotificationDispatcher and moves on; delivery runs in a
background task and a failed send is logged, never raised back into the
operation that triggered it.
"""
