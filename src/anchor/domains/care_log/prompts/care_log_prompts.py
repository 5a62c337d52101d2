"""MCP Prompts — pre-built interaction templates for the caregiver's day."""

from __future__ import annotations

from fastmcp import FastMCP


def register_care_log_prompts(mcp: FastMCP) -> None:
    """Register care log MCP prompts."""

    @mcp.prompt()
    def morning_check_in_prompt() -> str:
        """Prompt template for recording the morning routine."""
        return """Let's fill in this morning's care log. Please:

1. Load today's draft
2. Ask me for wake time, mood and shower details
3. Record the morning vitals and tell me if any reading needs attention
4. Mark which before and after breakfast medications were given, and when
5. Record breakfast, then share the morning section with family once nothing is missing"""

    @mcp.prompt()
    def end_of_day_review_prompt(focus: str = "anything missing") -> str:
        """Prompt template for reviewing and submitting the day's log."""
        return f"""Let's wrap up today's care log, focusing on {focus}. I'd like to:

1. See which sections still have missing required fields
2. Review any vitals alerts from today
3. Fill in the evening and daily summary sections
4. Submit the care log once every section is complete

Please walk me through what is left, one section at a time."""
