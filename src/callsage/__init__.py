"""Call Sage: LLM-backed quality reviews of service-desk calls.

The package turns a call transcript (or audio recording) and a weighted
scoring matrix into a structured :class:`~callsage.core.contracts.review.Review`,
then lets a reviewer challenge and amend that review through a chat session.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.3.0"
