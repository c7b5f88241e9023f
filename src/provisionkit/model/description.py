"""ActionDescription - Human-facing summary of what an action does."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ActionDescription:
    """A synopsis line plus optional explanation lines.

    Descriptions are derived purely from an action's parameters. They are
    shown to the operator before confirmation and are never persisted.

    Attributes:
        description: One-line synopsis.
        explanation: Ordered detail lines (commands run, paths touched).
    """

    description: str
    explanation: list[str] = field(default_factory=list)

    def render(self, explain: bool = False) -> str:
        """Format as a bullet, with indented explanation lines if requested."""
        lines = [f"* {self.description}"]
        if explain:
            lines.extend(f"  {line}" for line in self.explanation)
        return "\n".join(lines)
