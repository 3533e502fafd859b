"""Context-aware prompts for the deep-analysis model."""

from __future__ import annotations

from scene.types import AutonomousEvent

PROMPT_FOCUS = {
    "queue": (
        "Focus on: Queue length, wait time estimation, customer flow efficiency. "
        "Provide: Exact count of people in queue, estimated wait time per person, "
        "and service optimization suggestions."
    ),
    "crowd": (
        "Focus on: Crowd size, density, movement patterns, safety concerns. "
        "Provide: People count, crowd density assessment, potential bottlenecks, "
        "and safety recommendations."
    ),
    "inventory": (
        "Focus on: Stock levels, empty shelf spaces, product arrangement. "
        "Provide: Estimated stock percentage, specific products low/missing, restocking priorities."
    ),
    "safety": (
        "Focus on: Hazards, spills, obstacles, unsafe behaviors. "
        "Provide: Specific safety issue, risk level, immediate actions needed, prevention suggestions."
    ),
    "activity": (
        "Focus on: Customer behavior, engagement levels, service interactions. "
        "Provide: Activity description, customer count, interaction quality, improvement opportunities."
    ),
    "generic": (
        "Provide a general operational analysis including: people count, activity levels, "
        "notable events, and any concerns."
    ),
}

# Checked in order; the first keyword found in the context label wins.
PROMPT_KEYWORDS = ("queue", "crowd", "inventory", "safety", "activity")

LEARNING_HINT = "Also note any patterns that seem regular for this business type to help the system learn."
JSON_INSTRUCTION = (
    "Respond in JSON format with keys: description, metrics (object with relevant measurements), "
    "recommendations (array of strings), patterns_observed (array of strings)."
)


def prompt_kind(detected_context: str) -> str:
    """Return the prompt family for a detected-context label."""
    for keyword in PROMPT_KEYWORDS:
        if keyword in detected_context:
            return keyword
    return "generic"


def build_prompt(event: AutonomousEvent) -> str:
    business = event.business_context.replace("_", " ")
    parts = [
        f"You are analyzing a {business} business.",
        PROMPT_FOCUS[prompt_kind(event.detected_context)],
        LEARNING_HINT,
        JSON_INSTRUCTION,
    ]
    return " ".join(parts)
