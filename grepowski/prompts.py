"""Prompt templates for per-fragment evaluation."""

SYSTEM_PROMPT = (
    "You are an evaluation model. Respond only with a floating point number "
    "from 0 to 1 with 3 decimal places. It should represent the probability "
    "that the question in the user prompt is true for the code that follows it."
)


def build_user_prompt(question: str, location: str, line_range: str, code: str) -> str:
    # Code is appended verbatim; stripping would alter the fragment's last line.
    header = f"""
QUESTION:
{question.strip()}

CODE ({location}, lines {line_range}):
""".lstrip()
    return header + code
