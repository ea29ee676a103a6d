from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable

from idle_require.events import Event, EventType


@dataclass(frozen=True, slots=True)
class ActionRow:
    """
    A single dispatched action: ACTION_STARTED plus the facts it produced
    before the next action started.
    """
    kind: str
    feature: str | None
    order: object
    outcome: str | None
    events: tuple[Event, ...]


@dataclass(frozen=True, slots=True)
class DrainRow:
    """
    One drain pass, DRAIN_START -> DRAIN_END.
    Drain indices come from the sink and start at 1.
    """
    drain: int
    actions: tuple[ActionRow, ...]
    flushed: bool
    rearmed: bool
    final: bool


_OUTCOMES = {
    EventType.CACHE_LOADED: "cache loaded",
    EventType.CACHE_HIT: "expanded",
    EventType.CACHE_MISS: "miss",
    EventType.FEATURE_SKIPPED: "skipped",
    EventType.FEATURE_LOADED: "loaded",
    EventType.CACHE_RECORDED: "recorded",
}


def _action_row(buffer: list[Event]) -> ActionRow:
    start = buffer[0]
    outcome = None
    for e in buffer[1:]:
        if e.type in _OUTCOMES and e.feature in (None, start.feature):
            outcome = _OUTCOMES[e.type]
    return ActionRow(
        kind=str(start.data.get("kind")),
        feature=start.feature,
        order=start.data.get("order"),
        outcome=outcome,
        events=tuple(buffer),
    )


def derive_drain_rows(events: Iterable[Event]) -> list[DrainRow]:
    """
    Derive per-pass rows from an ordered event stream.

    Rule:
      - A row begins at DRAIN_START and ends at the next DRAIN_END
      - Each ACTION_STARTED opens an ActionRow; later events up to the next
        ACTION_STARTED (or DRAIN_END) belong to it
      - Events outside a pass (scheduling, timer arming) are ignored
    """
    rows: list[DrainRow] = []
    in_pass = False
    final = False
    flushed = False
    actions: list[ActionRow] = []
    buffer: list[Event] = []

    for e in events:
        if e.type == EventType.DRAIN_START:
            in_pass = True
            final = bool(e.data.get("final", False))
            flushed = False
            actions = []
            buffer = []
            continue

        if not in_pass:
            continue

        if e.type == EventType.ACTION_STARTED:
            if buffer:
                actions.append(_action_row(buffer))
            buffer = [e]
        elif e.type == EventType.DRAIN_END:
            if buffer:
                actions.append(_action_row(buffer))
            rows.append(
                DrainRow(
                    drain=e.drain,
                    actions=tuple(actions),
                    flushed=flushed,
                    rearmed=bool(e.data.get("rearmed", False)),
                    final=final,
                )
            )
            in_pass = False
        elif e.type == EventType.CACHE_FLUSHED:
            flushed = True
        elif buffer:
            buffer.append(e)

    return rows


def _fmt_order(order: object) -> str:
    if isinstance(order, Fraction) and order.denominator != 1:
        return f"{float(order):.4f}"
    return str(order)


def render_text_report(events: Iterable[Event]) -> str:
    rows = derive_drain_rows(events)
    if not rows:
        return "(No drain passes ran.)\n"

    out: list[str] = []
    for row in rows:
        header = f"Drain #{row.drain}"
        if row.final:
            header += " (final)"
        out.append(header)

        labels = [f"{a.kind}({a.feature})" if a.feature else a.kind for a in row.actions]
        width = max((len(label) for label in labels), default=0)
        for action, label in zip(row.actions, labels):
            line = f"  {label.ljust(width)}  order={_fmt_order(action.order)}"
            if action.outcome:
                line += f"  [{action.outcome}]"
            out.append(line)

        if row.flushed:
            out.append("  cache flushed")
        if row.rearmed:
            out.append("  re-armed")
        out.append("")

    return "\n".join(out).rstrip() + "\n"
