"""
Client-side helpers: dual-path chat client and timeline reconciliation.
"""

from collegebuddy.client.chat_client import ChatClient, ChatClientError
from collegebuddy.client.reconciler import merge_timeline

__all__ = ["ChatClient", "ChatClientError", "merge_timeline"]
