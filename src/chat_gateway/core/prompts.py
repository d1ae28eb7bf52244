"""
System prompt assembly.

The base prompt comes from configuration; requests can add repository
context, a working mode and a skill marker on top of it.
"""

import re
from typing import Optional

from ..models.request import ChatRequest, RepoContext

MAX_REPO_FILES = 10
MAX_REPO_FILE_CHARS = 3000

MODE_PROMPTS = {
    "plan": (
        "\n\n## Mode: Plan\n"
        "Do not write the implementation yet. Break the request into concrete steps, "
        "name the files that need to change and call out open questions or risks "
        "before any code is written."
    ),
    "build": (
        "\n\n## Mode: Build\n"
        "Implement the request directly. Return complete, working code for every file "
        "you change, with each file in its own code block labelled with its path."
    ),
}

SKILL_MODE_PROMPT = (
    "\n\nThe user is using a skill. You should follow the skill's prompt instructions "
    "and respond accordingly. The skill prompt contains specific guidance for how to "
    "handle this request."
)

_BACKTICK_RUN = re.compile(r"`+")


def format_code_block(content: str, language: str = "") -> str:
    """Fence `content` with more backticks than any run it contains."""
    longest = max((len(run) for run in _BACKTICK_RUN.findall(content)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{language}\n{content}\n{fence}"


def format_repo_context(repo: RepoContext) -> str:
    section = "\n\n## Current Repository Context\n"
    section += f"Repository: {repo.repo_full_name}\n\n"

    if repo.structure:
        section += f"### Repository Structure:\n{format_code_block(repo.structure)}\n\n"

    if repo.files:
        section += "### Key Files:\n"
        for repo_file in repo.files[:MAX_REPO_FILES]:
            content = repo_file.content[:MAX_REPO_FILE_CHARS]
            section += f"\n#### {repo_file.path}\n{format_code_block(content)}\n"

    return section


def build_system_prompt(base_prompt: str, request: Optional[ChatRequest] = None) -> str:
    """
    Assemble the system prompt for one request.

    Sections are appended in a fixed order: repository context, mode
    instructions, the skill marker, then free-form additional context.
    Unknown modes are ignored.
    """
    prompt = base_prompt
    if request is None:
        return prompt

    if request.repo_context is not None:
        prompt += format_repo_context(request.repo_context)

    mode_prompt = MODE_PROMPTS.get(request.mode or "")
    if mode_prompt:
        prompt += mode_prompt

    if request.skill_mode:
        prompt += SKILL_MODE_PROMPT

    if request.system_context and request.system_context.strip():
        prompt += f"\n\n## Additional Context\n{request.system_context.strip()}"

    return prompt
