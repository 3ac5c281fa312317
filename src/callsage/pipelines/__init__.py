"""Pipeline entry points for Call Sage.

Currently exposed:

- :func:`generate_review` / :func:`review_call`: request → review.
- :func:`chat_about_review`: one question about a review, with an amended
  preview when the model proposes a correction.
"""

from __future__ import annotations

from .call_review import ChatAnswer, ChatContext, chat_about_review, generate_review, review_call

__all__ = ["ChatAnswer", "ChatContext", "chat_about_review", "generate_review", "review_call"]
