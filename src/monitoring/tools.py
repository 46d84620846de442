#src/monitoring/tools.py
"""
Human-facing utilities for reading monitoring logs.

Provides:

- Instruction summary:
    - Load events from a monitoring JSONL log.
    - Count runs per module.instruction: started / finished / failed /
      interrupted, plus the last error seen.

- Event tail:
    - Print the last N events, optionally filtered by event type or
      source module.

- Monitoring CLI:
    - argparse front-end for the above:
        - summarize
        - tail
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .events import EventType, MonitoringEvent


log = logging.getLogger(__name__)

JsonDict = Dict[str, Any]


# ============================================================
# Log loading
# ============================================================

def load_events(path: Path) -> List[MonitoringEvent]:
    """
    Load MonitoringEvents from a JSONL file produced by JsonFileLogger.

    Malformed lines and unknown event types are skipped with a warning.
    """
    if not path.exists():
        return []

    events: List[MonitoringEvent] = []
    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                etype = EventType[data["event_type"]]
            except (json.JSONDecodeError, KeyError, TypeError):
                log.warning("Skipping malformed event at %s:%d", path, lineno)
                continue

            events.append(
                MonitoringEvent(
                    ts=data.get("ts", 0.0),
                    module=data.get("module", ""),
                    event_type=etype,
                    message=data.get("message", ""),
                    payload=data.get("payload") or {},
                    correlation_id=data.get("correlation_id"),
                )
            )
    return events


# ============================================================
# Instruction summary
# ============================================================

@dataclass
class InstructionSummary:
    """Run counts for one module.instruction reconstructed from the log."""
    label: str
    started: int = 0
    finished: int = 0
    failed: int = 0
    interrupted: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> JsonDict:
        return asdict(self)


_COUNTERS = {
    EventType.INSTRUCTION_STARTED: "started",
    EventType.INSTRUCTION_FINISHED: "finished",
    EventType.INSTRUCTION_FAILED: "failed",
    EventType.INSTRUCTION_INTERRUPTED: "interrupted",
}


def summarize_instructions(events: Iterable[MonitoringEvent]) -> List[InstructionSummary]:
    """Aggregate instruction lifecycle events, most-run first."""
    summaries: Dict[str, InstructionSummary] = {}
    for evt in events:
        counter = _COUNTERS.get(evt.event_type)
        if counter is None:
            continue
        payload = evt.payload or {}
        label = f"{payload.get('module', '?')}.{payload.get('instruction', '?')}"
        summary = summaries.setdefault(label, InstructionSummary(label=label))
        setattr(summary, counter, getattr(summary, counter) + 1)
        if evt.event_type in (EventType.INSTRUCTION_FAILED, EventType.INSTRUCTION_INTERRUPTED):
            summary.last_error = payload.get("exception") or evt.message

    return sorted(summaries.values(), key=lambda s: (-s.started, s.label))


def filter_events(
    events: Iterable[MonitoringEvent],
    *,
    event_type: Optional[str] = None,
    module: Optional[str] = None,
) -> List[MonitoringEvent]:
    out = []
    for evt in events:
        if event_type is not None and evt.event_type.name != event_type.upper():
            continue
        if module is not None and not evt.module.startswith(module):
            continue
        out.append(evt)
    return out


# ============================================================
# CLI commands
# ============================================================

def _cmd_summarize(args: argparse.Namespace) -> None:
    events = load_events(Path(args.log_path))
    out = [s.to_dict() for s in summarize_instructions(events)]
    json.dump(out, sys.stdout, indent=2, sort_keys=True)
    print()


def _cmd_tail(args: argparse.Namespace) -> None:
    events = filter_events(
        load_events(Path(args.log_path)),
        event_type=args.type,
        module=args.module,
    )
    out = [evt.to_dict() for evt in events[-args.n:]] if args.n > 0 else []
    json.dump(out, sys.stdout, indent=2, sort_keys=True)
    print()


def build_arg_parser() -> argparse.ArgumentParser:
    """
    Build the monitoring CLI argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="mbot-monitor",
        description="Inspect mbot monitoring event logs.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_sum = sub.add_parser("summarize", help="Per-instruction run counts from a monitoring log.")
    p_sum.add_argument(
        "--log-path",
        type=str,
        default="logs/monitoring/events.log",
        help="Path to monitoring JSONL log file.",
    )
    p_sum.set_defaults(func=_cmd_summarize)

    p_tail = sub.add_parser("tail", help="Show the last N events.")
    p_tail.add_argument(
        "--log-path",
        type=str,
        default="logs/monitoring/events.log",
        help="Path to monitoring JSONL log file.",
    )
    p_tail.add_argument(
        "-n",
        type=int,
        default=20,
        help="Number of events to show.",
    )
    p_tail.add_argument(
        "--type",
        type=str,
        default=None,
        help="Filter by event type (INSTRUCTION_FAILED, BOT_SPAWNED, ...).",
    )
    p_tail.add_argument(
        "--module",
        type=str,
        default=None,
        help="Filter by source module prefix (instruction.manager, modules.registry, ...).",
    )
    p_tail.set_defaults(func=_cmd_tail)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the monitoring CLI.

    Example usage:

        python -m monitoring.tools summarize
        python -m monitoring.tools tail -n 5 --type INSTRUCTION_FAILED
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        sys.exit(1)
    func(args)


if __name__ == "__main__":
    main()
