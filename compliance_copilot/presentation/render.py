# compliance_copilot/presentation/render.py

from typing import Iterable, List, Optional

from compliance_copilot.domain.messages import Message, Role
from compliance_copilot.orchestration.contracts import PROVIDERS, ImplementationGuide

CONSOLES = {
    "gcp": ("GCP", "https://console.cloud.google.com/"),
    "aws": ("AWS", "https://console.aws.amazon.com/"),
    "azure": ("Azure", "https://portal.azure.com/"),
}


def box(title: str) -> str:
    """Return a single-line title in a lightweight box."""
    pad = f"  {title.strip()}  "
    return f"┌{'─' * len(pad)}┐\n│{pad}│\n└{'─' * len(pad)}┘"


def rule(text: str = "") -> str:
    """Horizontal rule with optional label."""
    label = f" {text.strip()} " if text else ""
    line = "─" * max(4, 72 - len(label))
    return f"{label}{line}"


def render_message(msg: Message) -> str:
    who = "you" if msg.role is Role.USER else "copilot"
    lines = [f"[{msg.id}] {who}"]
    lines.append(msg.content)

    if msg.role is Role.ASSISTANT and not msg.is_failure:
        hints: List[str] = []
        if msg.documentation_url:
            hints.append(f"docs: {msg.documentation_url}")
        if msg.implementation is not None:
            providers = ", ".join(CONSOLES[p][0] for p in msg.implementation.providers())
            hints.append(f":guide {msg.id} for implementation steps ({providers})")
        if msg.escalation_offer is not None:
            hints.append(f"{msg.escalation_offer.suggestion_text}  (type :imagine)")
        lines.extend(f"  → {h}" for h in hints)
    return "\n".join(lines)


def render_transcript(messages: Iterable[Message], title: Optional[str] = None) -> str:
    parts = [box(title)] if title else []
    parts.extend(render_message(m) for m in messages)
    if len(parts) == (1 if title else 0):
        parts.append("(no messages yet)")
    return "\n\n".join(parts)


def render_guide(guide: Optional[ImplementationGuide]) -> str:
    """Multi-cloud implementation guide, one section per provider."""
    if guide is None or guide.is_empty():
        return box("No implementation steps were generated for this response.")

    out = [box("Implementation Guide")]
    for provider in PROVIDERS:
        name, console = CONSOLES[provider]
        steps = guide.steps_for(provider)
        out.append(rule(name))
        if not steps:
            out.append("No implementation steps provided for this cloud.")
        for idx, step in enumerate(steps, start=1):
            out.append(f"Step {idx}: {step.title}")
            out.extend(f"    {line}" for line in step.instruction.splitlines() or [""])
            if step.best_practice:
                out.append(f"    Best practice: {step.best_practice}")
            if step.reference_url:
                out.append(f"    Reference: {step.reference_url}")
        # Footer link is shown for every provider, with or without steps.
        out.append(f"Open {name} Console: {console}")
    return "\n".join(out)
