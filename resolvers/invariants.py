"""Head/body variant invariant.

The body's colour is the single source of truth: it is resolved first and is
always required.  After resolution the head layer is forced onto the body's
variant.  This module is the only place a resolved Build is rewritten; it
returns a new Build and a new trace list instead of mutating its inputs.
"""

from models.build import Build
from models.trace import TraceEntry


def enforce_head_matches_body(
    build: Build,
    trace: list[TraceEntry],
) -> tuple[Build, list[TraceEntry]]:
    """Return *build* with ``head.variant == body.variant``, plus the trace.

    When the head is rewritten, the most recent successful ``head`` trace
    entry gains a ``head_variant_overridden_to_body:from=<old>:to=<new>``
    note.  Missing body or head makes this a no-op; the validator reports
    absence.
    """
    body = build.body_layer()
    head = build.head_layer()
    if body is None or head is None or not body.variant:
        return build, list(trace)
    if head.variant == body.variant:
        return build, list(trace)

    previous = head.variant
    layers = tuple(
        layer.model_copy(update={"variant": body.variant}) if layer is head else layer
        for layer in build.layers
    )
    new_build = build.model_copy(update={"layers": layers})

    new_trace = list(trace)
    for idx in range(len(new_trace) - 1, -1, -1):
        entry = new_trace[idx]
        if entry.category == "head" and entry.chosen_item is not None:
            note = f"head_variant_overridden_to_body:from={previous or 'null'}:to={body.variant}"
            new_trace[idx] = entry.model_copy(update={"notes": [*entry.notes, note]})
            break

    return new_build, new_trace
