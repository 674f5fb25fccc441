"""Common data models for timecodes and silence analysis.

This module defines pydantic models that are shared across timestamp
remapping, segmentation and formatting utilities.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Timestamp",
    "SilenceInterval",
]


class Timestamp(BaseModel):
    """A timecode split into its clock fields."""

    model_config = ConfigDict(frozen=True)

    hours: int = Field(0, description="Whole hours.")
    minutes: int = Field(0, description="Whole minutes (normally 0-59).")
    seconds: int = Field(0, description="Whole seconds (normally 0-59).")
    milliseconds: int = Field(0, description="Milliseconds (normally 0-999).")

    def total_seconds(self) -> float:
        """Return the timecode as fractional seconds."""
        return (
            self.hours * 3600
            + self.minutes * 60
            + self.seconds
            + self.milliseconds / 1000.0
        )


class SilenceInterval(BaseModel):
    """A detected quiet span.

    Times are relative to whatever time base produced the interval; the
    transcoder reports them in the local time of the analysed window.
    """

    start: float = Field(..., description="Start of the silence in seconds.")
    end: float = Field(..., description="End of the silence in seconds.")
    duration: float = Field(..., description="Length of the silence in seconds.")

    @property
    def midpoint(self) -> float:
        """Return the centre of the interval in seconds."""
        return (self.start + self.end) / 2.0

    def shifted(self, offset: float) -> SilenceInterval:
        """Return a copy translated by ``offset`` seconds."""
        return SilenceInterval(
            start=self.start + offset,
            end=self.end + offset,
            duration=self.duration,
        )
