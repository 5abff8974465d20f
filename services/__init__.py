"""
Services Module

This module contains the application-facing coordinators for intentflow:
- Chat service: Main coordinator for user interactions, one conversation
  context per session, progress collection and follow-up suggestions

Services sit between the UI and the kernel.
"""

from .chat_service import (
    ChatService,
    ChatResponse,
    build_kernel,
    process_user_message,
)

__all__ = [
    "ChatService",
    "ChatResponse",
    "build_kernel",
    "process_user_message",
]
