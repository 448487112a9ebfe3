"""Server-Sent Events encoder for batch progress.

Each method returns a ready-to-yield SSE string: ``"data: {json}\\n\\n"``.
Termination marker: ``data: [DONE]\\n\\n``.
"""

from __future__ import annotations

import json
from typing import Any

from models.batch import BatchJobState, BatchSummary


class ProgressStreamEncoder:
    """Encode batch progress snapshots as SSE events (camelCase payloads)."""

    @staticmethod
    def _sse(payload: dict[str, Any]) -> str:
        return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"

    def progress(self, state: BatchJobState) -> str:
        return self._sse({"type": "progress", **state.model_dump(mode="json", by_alias=True)})

    def summary(self, summary: BatchSummary) -> str:
        payload = summary.model_dump(mode="json", by_alias=True)
        payload["message"] = summary.message
        return self._sse({"type": "summary", **payload})

    def keepalive(self) -> str:
        return ": keepalive\n\n"

    def finish(self) -> str:
        return "data: [DONE]\n\n"
