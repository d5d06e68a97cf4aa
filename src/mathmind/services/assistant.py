"""
Teaching assistant texts for MathMind.

Deterministic templates that turn a class's mistake statistics into a lesson
plan, homework, a test or an explanation of common mistakes. Each generator is a
pure function of (mistake frequencies, topic); fetching the statistics is the
caller's job.
"""

from collections.abc import Sequence
from enum import Enum

from mathmind.models import MistakeFrequency


class AssistantGoal(str, Enum):
    """Kind of text the teacher asks for."""

    PLAN = "plan"
    HOMEWORK = "homework"
    TEST = "test"
    MISTAKES = "mistakes"


def mistake_lines(frequencies: Sequence[MistakeFrequency], limit: int) -> list[str]:
    """Bullet lines for the first limit mistake types."""
    return [f"- {f.mistake_type} ({f.count})" for f in frequencies[:limit]]


def generate_plan(frequencies: Sequence[MistakeFrequency], topic: str = "") -> str:
    topic = topic or "Percentages and equations"
    lines = [
        f"Lesson goal: consolidate {topic} by working through solutions step by step.",
        "Structure:",
        "1. Warm-up (5 min): oral examples linking percentages and fractions.",
        "2. Mini-explanation (10 min): show the reference solving algorithm.",
        "3. Practice (20 min): students walk 3 guided tasks choosing each step.",
        "4. Mistake review (10 min): based on the class's latest statistics.",
    ]
    if frequencies:
        lines.append("Top mistakes:")
        lines.extend(mistake_lines(frequencies, 3))
    return "\n".join(lines)


def generate_homework(frequencies: Sequence[MistakeFrequency], topic: str = "") -> str:
    topic = topic or "Percentages in everyday problems"
    lines = [
        f"Homework on: {topic}",
        "1. Find the price of an item after two consecutive discounts of 10% and 5%.",
        "2. Increase a number by 12% and explain each step in words.",
        "3. Write an equation from a word problem and solve it step by step.",
    ]
    if frequencies:
        lines.append("Hints for students:")
        lines.extend(mistake_lines(frequencies, 2))
    return "\n".join(lines)


def generate_test(frequencies: Sequence[MistakeFrequency], topic: str = "") -> str:
    topic = topic or "Percentages and linear equations"
    lines = [
        f"Test (2 variants) on: {topic}",
        "Variant A:",
        "- Find the final price of an item after a 15% discount.",
        "- Solve 3x + 12 = 42.",
        "- Describe how you check your answer.",
        "Variant B:",
        "- What percentage of 300 is 45?",
        "- Solve 2(x - 5) = 18.",
        "- Explain why the chosen steps are correct.",
    ]
    if frequencies:
        lines.append("What to watch for when marking:")
        lines.extend(mistake_lines(frequencies, 3))
    return "\n".join(lines)


def explain_mistakes(frequencies: Sequence[MistakeFrequency], topic: str = "") -> str:
    if not frequencies:
        return "No recent mistakes yet. Great progress!"
    lines = [
        f"- {f.mistake_type}: seen {f.count} time(s). Ask students to say each step out loud "
        "and check units."
        for f in frequencies
    ]
    if topic:
        lines.append(f"Topic context: {topic}")
    return "\n".join(lines)


_GENERATORS = {
    AssistantGoal.PLAN: generate_plan,
    AssistantGoal.HOMEWORK: generate_homework,
    AssistantGoal.TEST: generate_test,
    AssistantGoal.MISTAKES: explain_mistakes,
}


def generate_text(
    goal: AssistantGoal, frequencies: Sequence[MistakeFrequency], topic: str = ""
) -> str:
    """
    Produce the text for a goal.

    Args:
        goal: What to generate
        frequencies: Class mistake frequencies, most frequent first
        topic: Optional topic; each goal has its own default

    Returns:
        Plain text, one item per line
    """
    return _GENERATORS[AssistantGoal(goal)](frequencies, topic.strip())
