"""
This module defines the result object a workflow run produces for the editor.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ResultType = Literal["ml", "quantum", "clustering", "error", "info"]


class AggregatedResult(BaseModel):
    """
    Reportable summary of a workflow run.
    """

    type: ResultType
    """Kind of result, decides how the editor renders it."""

    summary: dict[str, str | int | float] = Field(default_factory=dict)
    """Headline numbers, formatted for display."""

    rawData: dict[str, Any] = Field(default_factory=dict)
    """Full JSON-serialisable data backing the summary."""

    message: str | None = None
    """Explanation for ``error`` and ``info`` results."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    @property
    def is_error(self) -> bool:
        return self.type == "error"
