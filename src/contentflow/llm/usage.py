"""Per-node usage accounting for generation runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict

__all__ = [
    "NodeUsage",
    "UsageSnapshot",
    "UsageTracker",
]


@dataclass(slots=True)
class NodeUsage:
    """Mutable tally used internally by :class:`UsageTracker`."""

    calls: int = 0
    failures: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    seconds: float = 0.0

    def add(self, prompt: int, completion: int, seconds: float, *, failed: bool) -> None:
        self.calls += 1
        self.failures += int(failed)
        self.prompt_tokens += prompt
        self.completion_tokens += completion
        self.seconds += seconds

    def to_dict(self) -> dict[str, float | int]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.prompt_tokens + self.completion_tokens,
            "seconds": round(self.seconds, 3),
        }


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    """Immutable record of a single step execution."""

    node_id: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    seconds: float
    failed: bool = False

    def to_dict(self) -> dict[str, float | int | str | bool]:
        return {
            "node_id": self.node_id,
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.prompt_tokens + self.completion_tokens,
            "seconds": round(self.seconds, 3),
            "failed": self.failed,
        }


@dataclass(slots=True)
class UsageTracker:
    """Running tally of step executions, grouped by node."""

    _usage: Dict[str, NodeUsage] = field(default_factory=dict, init=False, repr=False)
    _history: list[UsageSnapshot] = field(default_factory=list, init=False, repr=False)

    def record(
        self,
        node_id: str,
        *,
        model: str = "",
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        seconds: float = 0.0,
        failed: bool = False,
    ) -> UsageSnapshot:
        usage = self._usage.setdefault(node_id, NodeUsage())
        usage.add(prompt_tokens, completion_tokens, seconds, failed=failed)
        snapshot = UsageSnapshot(
            node_id=node_id,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            seconds=seconds,
            failed=failed,
        )
        self._history.append(snapshot)
        return snapshot

    @property
    def history(self) -> tuple[UsageSnapshot, ...]:
        return tuple(self._history)

    @property
    def total_tokens(self) -> int:
        return sum(usage.prompt_tokens + usage.completion_tokens for usage in self._usage.values())

    def usage_for(self, node_id: str) -> NodeUsage | None:
        return self._usage.get(node_id)

    def reset(self) -> None:
        self._usage.clear()
        self._history.clear()

    def to_dict(self) -> dict[str, object]:
        return {
            "calls": len(self._history),
            "failures": sum(1 for snapshot in self._history if snapshot.failed),
            "total_tokens": self.total_tokens,
            "by_node": {node_id: usage.to_dict() for node_id, usage in sorted(self._usage.items())},
        }

    def to_json(self, *, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)
