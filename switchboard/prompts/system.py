"""System prompt builder."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CUSTOM_INSTRUCTIONS_CANDIDATES = (
    Path(".switchboard") / "INSTRUCTIONS.md",
    Path("SWITCHBOARD.md"),
)


def load_custom_instructions(
    path: str | Path | None = None,
    working_dir: str | Path | None = None,
) -> str | None:
    """
    Read operator instructions from *path*, or from the first candidate
    file found under *working_dir*.  Returns ``None`` if nothing is found.
    """
    base = Path(working_dir or Path.cwd())
    candidates = [Path(path).expanduser()] if path else [base / c for c in CUSTOM_INSTRUCTIONS_CANDIDATES]
    for candidate in candidates:
        if candidate.is_file():
            text = candidate.read_text(encoding="utf-8").strip()
            if text:
                logger.info("Loaded custom instructions from %s", candidate)
                return text
    return None


def build_system_prompt(
    tool_names: list[str] | None = None,
    working_dir: str | Path | None = None,
    custom_instructions: str | None = None,
    extra_sections: list[str] | None = None,
) -> str:
    """
    Build the system prompt for the orchestrator.

    Assembles the role statement, optional custom instructions, tool rules
    and the working directory into a single prompt string.
    """
    sections: list[str] = [
        "You are an AI assistant that helps with file editing, coding tasks, "
        "and system operations."
    ]

    if custom_instructions:
        sections.append(
            "## Custom Instructions\n\n"
            f"{custom_instructions}\n\n"
            "Follow these alongside the standard instructions below."
        )

    if tool_names:
        sections.append(
            "## Available Tools\n\n" + "\n".join(f"- {name}" for name in tool_names)
        )

    sections.append(TOOL_RULES_SECTION)
    sections.append(
        "Be helpful, direct, and efficient. Explain what you are doing and show the results."
    )
    sections.append(f"Current working directory: {Path(working_dir or Path.cwd())}")

    if extra_sections:
        sections.extend(extra_sections)

    return "\n\n".join(sections)


TOOL_RULES_SECTION = """## Tool Usage Rules

- NEVER use create_file on files that already exist; it refuses to overwrite them.
- ALWAYS use str_replace_editor to modify existing files, even for small changes.
- Before editing a file, use view_file to see its current contents.
- Use bash for searching, file discovery, navigation and system operations.
- For multi-step work, plan with create_todo_list and keep it current with update_todo_list.
- If a tool returns an error, read it and adjust; do not repeat the same failing call."""
