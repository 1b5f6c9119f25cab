"""Building system prompts and reading structured parts of model output."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from stepagents.errors import AgentParsingError

DEFAULT_TOOL_DESCRIPTION_TEMPLATE = (
    "\n{{ tool.name }}: {{ tool.description }}\n    Takes inputs: {{tool.inputs}}\n"
)
MANAGED_AGENTS_PLACEHOLDER = "{{managed_agents_descriptions}}"

_MANAGED_AGENTS_HEADER = (
    "You can also give requests to team members.\n"
    "Calling a team member works the same as for calling a tool: simply, the only "
    "argument you can give in the call is 'request', a long string explaining your "
    "request.\n"
    "Given that this team member is a real human, you should be very verbose in your "
    "request.\n"
    "Here is a list of the team members that you can call:"
)

_CODE_BLOB = re.compile(r"```(?:py|python)?\n([\s\S]*?)\n```")

_FINAL_ANSWER_HINT = (
    "The code blob is invalid. It seems like you're trying to return the final answer. "
    "Use:\nCode:\n```py\nfinal_answer(\"YOUR FINAL ANSWER HERE\")\n```"
)
_CODE_PATTERN_HINT = (
    "The code blob is invalid. Make sure to include code with the correct pattern, "
    "for instance:\nThoughts: Your thoughts\nCode:\n```py\n# Your python code here\n```"
)

_DIGITS = "0123456789"


def _info(tool: Any) -> Mapping[str, Any]:
    return tool.tool_info() if hasattr(tool, "tool_info") else tool


def get_tool_description_with_args(tool_info: Any) -> str:
    """One tool's name, description and input schema, as shown to the model."""
    function = _info(tool_info)["function"]
    properties = function.get("parameters", {}).get("properties")
    inputs = json.dumps(properties, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return (
        DEFAULT_TOOL_DESCRIPTION_TEMPLATE.replace("{{ tool.name }}", function["name"])
        .replace("{{ tool.description }}", function["description"])
        .replace("{{tool.inputs}}", inputs)
    )


def get_tool_descriptions(tools: Iterable[Any]) -> list[str]:
    """Descriptions of every tool, in order."""
    return [get_tool_description_with_args(tool) for tool in tools]


def format_prompt_with_tools(tools: Iterable[Any], prompt_template: str) -> str:
    """Fill the tool descriptions and tool names into a prompt template."""
    infos = [_info(tool) for tool in tools]
    prompt = prompt_template.replace(
        "{{tool_descriptions}}", "\n".join(get_tool_descriptions(infos))
    )
    if "{{tool_names}}" in prompt:
        names = ", ".join(info["function"]["name"] for info in infos)
        prompt = prompt.replace("{{tool_names}}", names)
    return prompt


def _description(agent: Any) -> str:
    description = getattr(agent, "description", "")
    if callable(description):
        description = description()
    return "" if description is None else str(description)


def show_agents_description(managed_agents: Mapping[str, Any] | None) -> str:
    """Text introducing the team members an agent may delegate to."""
    lines = [
        f"{name}: {json.dumps(_description(agent), ensure_ascii=False)}\n"
        for name, agent in (managed_agents or {}).items()
    ]
    return _MANAGED_AGENTS_HEADER + "".join(lines)


def format_prompt_with_managed_agent_description(
    prompt_template: str,
    managed_agents: Mapping[str, Any] | None,
    placeholder: str | None = None,
) -> str:
    """Replace the team-member placeholder, with nothing when there are none."""
    placeholder = MANAGED_AGENTS_PLACEHOLDER if placeholder is None else placeholder
    if managed_agents:
        return prompt_template.replace(placeholder, show_agents_description(managed_agents))
    return prompt_template.replace(placeholder, "")


def parse_code_blobs(code_blob: str) -> str:
    """Extract the fenced Python code from model output.

    Several blocks are joined by a blank line. Raises
    :class:`AgentParsingError` when there is no code block.
    """
    matches = [match.strip() for match in _CODE_BLOB.findall(code_blob)]
    if not matches:
        if "final" in code_blob and "answer" in code_blob:
            raise AgentParsingError(_FINAL_ANSWER_HINT)
        raise AgentParsingError(_CODE_PATTERN_HINT)
    return "\n\n".join(matches)


def parse_plan(plan: str) -> list[str]:
    """The numbered steps of a plan, without their numbering."""
    steps = []
    for line in plan.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("<end_plan>"):
            continue
        if trimmed[0] in _DIGITS:
            steps.append(trimmed.lstrip(_DIGITS).lstrip(".)- "))
    return steps