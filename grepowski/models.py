"""Shared data models for the fragment review pipeline."""

from __future__ import annotations

import math
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class Line(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    number: int = Field(..., ge=1, description="1-based line number within the file.")
    text: str


class Block(BaseModel):
    """Contiguous lines of one file; only a file's last block may be short."""

    model_config = ConfigDict(frozen=True)

    file: str
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    lines: tuple[Line, ...]

    @model_validator(mode="after")
    def _check_contiguous(self) -> Block:
        if not self.lines:
            raise ValueError("A block needs at least one line.")
        if self.end_line - self.start_line + 1 != len(self.lines):
            raise ValueError(
                f"Block {self.start_line}-{self.end_line} does not match {len(self.lines)} lines."
            )
        for offset, line in enumerate(self.lines):
            if line.file != self.file or line.number != self.start_line + offset:
                raise ValueError(f"Line {line.file}:{line.number} breaks block contiguity.")
        return self


class Fragment(BaseModel):
    """Contiguous blocks of one file; the unit sent to the model."""

    model_config = ConfigDict(frozen=True)

    file: str
    position: int = Field(..., ge=0, description="0-based fragment index within the file.")
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    blocks: tuple[Block, ...]

    @model_validator(mode="after")
    def _check_contiguous(self) -> Fragment:
        if not self.blocks:
            raise ValueError("A fragment needs at least one block.")
        if self.blocks[0].start_line != self.start_line or self.blocks[-1].end_line != self.end_line:
            raise ValueError("Fragment line range must match its first and last block.")
        for prev, block in zip(self.blocks, self.blocks[1:]):
            if block.file != self.file or block.start_line != prev.end_line + 1:
                raise ValueError(f"Block {block.file}:{block.start_line} breaks fragment contiguity.")
        if self.blocks[0].file != self.file:
            raise ValueError("Fragment blocks must belong to the fragment's file.")
        return self

    @property
    def lines(self) -> list[Line]:
        return [line for block in self.blocks for line in block.lines]

    @computed_field
    @property
    def location(self) -> str:
        return f"{self.file}:{self.start_line}"

    @computed_field
    @property
    def line_range(self) -> str:
        return f"{self.start_line}-{self.end_line}"

    @computed_field
    @property
    def text(self) -> str:
        """Line-numbered payload, numbers right-aligned to the widest one."""
        width = len(str(self.end_line))
        return "\n".join(f"{line.number:>{width}}: {line.text}" for line in self.lines)


class Query(BaseModel):
    model_config = ConfigDict(frozen=True)

    fragment: Fragment
    question: str


class Answered(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["answered"] = "answered"
    text: str

    @computed_field
    @property
    def score(self) -> float | None:
        """The answer as a number, when the model replied with just a number."""
        try:
            value = float(self.text.strip())
        except ValueError:
            return None
        return value if math.isfinite(value) else None


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    reason: str = Field("error", description="connection/timeout/status/malformed/empty/error")
    error: str


Outcome = Annotated[Union[Answered, Failed], Field(discriminator="kind")]


class ReviewItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position in the run's canonical order.")
    fragment: Fragment
    outcome: Outcome


class ReviewSummary(BaseModel):
    fragments: int
    answered: int
    failed: int
    files: int
    mean_score: float | None = None
