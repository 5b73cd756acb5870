from __future__ import annotations

import html
from typing import Any, Dict, Optional

# Discord embed colors by phase
COLOR_START = 0x3399FF  # blue
COLOR_SUCCESS = 0x00CC66  # green
COLOR_FAILURE = 0xFF3333  # red

# Discord caps embed descriptions at 4096 characters
MAX_DETAIL_LENGTH = 1000

_PHASES = {
    "start": ("🚀", "任務開始", COLOR_START),
    "success": ("✅", "任務成功", COLOR_SUCCESS),
    "failure": ("❌", "任務失敗", COLOR_FAILURE),
}


def format_job_event(
    job_name: str, phase: str, detail: Optional[str] = None
) -> Dict[str, Any]:
    """Format a job lifecycle event for all channels.

    Args:
        job_name: Name of the job.
        phase: "start", "success" or "failure".
        detail: Success summary or error text, if any.

    Returns:
        dict with keys "telegram" (HTML text) and "discord_embeds" (list).
    """
    emoji, title, color = _PHASES[phase]
    if detail and len(detail) > MAX_DETAIL_LENGTH:
        detail = detail[: MAX_DETAIL_LENGTH - 3] + "..."

    # Telegram HTML
    lines = [f"{emoji} <b>{title}</b>", f"任務: {html.escape(job_name)}"]
    if detail:
        if phase == "failure":
            lines.append(f"錯誤: {html.escape(detail)}")
        else:
            lines.append("")
            lines.append(html.escape(detail))
    telegram_text = "\n".join(lines)

    # Discord embed
    embed: Dict[str, Any] = {
        "title": f"{emoji} {title}",
        "color": color,
        "fields": [{"name": "Job", "value": job_name, "inline": True}],
    }
    if detail:
        embed["description"] = detail

    return {"telegram": telegram_text, "discord_embeds": [embed]}
