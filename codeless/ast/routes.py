"""AST nodes for ``route`` blocks and their pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class StepKind(Enum):
    AUTH = "auth"
    VALIDATE = "validate"
    ACTION = "action"

    def __str__(self) -> str:
        return self.value


@dataclass
class PipelineStep:
    kind: StepKind
    target: Optional[str] = None

    @classmethod
    def auth(cls) -> "PipelineStep":
        return cls(StepKind.AUTH)

    @classmethod
    def validate(cls, schema_name: str) -> "PipelineStep":
        return cls(StepKind.VALIDATE, schema_name)

    @classmethod
    def action(cls, name: str) -> "PipelineStep":
        return cls(StepKind.ACTION, name)


@dataclass
class RouteDecl:
    method: str
    path: str
    steps: List[PipelineStep] = field(default_factory=list)
    line: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.path)

    @property
    def action_names(self) -> List[str]:
        return [step.target for step in self.steps if step.kind is StepKind.ACTION]

    @property
    def path_params(self) -> List[str]:
        return [segment[1:] for segment in self.path.split("/") if segment.startswith(":")]


__all__ = ["StepKind", "PipelineStep", "RouteDecl"]
