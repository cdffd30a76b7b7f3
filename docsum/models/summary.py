"""Section summary result models."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class WellFormedSummary(BaseModel):
    """Summary whose every line is a bullet and whose count matches the request.

    `text` is the trimmed model output as returned; `bullets` is the parsed view.
    """

    kind: Literal["well_formed"] = "well_formed"
    text: str
    bullets: list[str]

    def as_text(self) -> str:
        """Return the model output unchanged."""
        return self.text


class RawTextSummary(BaseModel):
    """Best-effort model output that did not match the bullet shape."""

    kind: Literal["raw_text"] = "raw_text"
    text: str

    def as_text(self) -> str:
        """Return the text unchanged."""
        return self.text


Summary = Annotated[WellFormedSummary | RawTextSummary, Field(discriminator="kind")]
