"""Completion email sent to the job owner when a pipeline run ends."""

from dataclasses import dataclass, field
from html import escape

import structlog

from app.clients.sendgrid import SendGridClient

logger = structlog.get_logger()

# Long name lists are cut off in the message body
MAX_LISTED_NAMES = 50


@dataclass
class JobSummary:
    total_count: int
    processed_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    skipped_names: list[str] = field(default_factory=list)
    failed_names: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def success_rate(self) -> int:
        if self.total_count <= 0:
            return 0
        return round(self.processed_count / self.total_count * 100)


def _name_lines(names: list[str]) -> list[str]:
    lines = [f"  - {n}" for n in names[:MAX_LISTED_NAMES]]
    if len(names) > MAX_LISTED_NAMES:
        lines.append(f"  ... and {len(names) - MAX_LISTED_NAMES} more")
    return lines


def render_subject(summary: JobSummary) -> str:
    if summary.aborted:
        return "HOA Data Enrichment Stopped"
    return "HOA Data Enrichment Complete"


def render_text(summary: JobSummary) -> str:
    headline = (
        "Your data enrichment job stopped before finishing. Results saved so far are available."
        if summary.aborted
        else "Your real estate outreach data processing has been completed."
    )
    lines = [
        "Hello,",
        "",
        headline,
        "",
        "Processing Summary:",
        f"- Total Communities: {summary.total_count}",
        f"- Successfully Processed: {summary.processed_count}",
        f"- Skipped (already in database): {summary.skipped_count}",
        f"- Failed: {summary.failed_count}",
        f"- Success Rate: {summary.success_rate}%",
    ]
    if summary.skipped_names:
        lines += ["", "Skipped:"] + _name_lines(summary.skipped_names)
    if summary.failed_names:
        lines += ["", "Failed:"] + _name_lines(summary.failed_names)
    lines += [
        "",
        "You can view and download your enriched contact data from the dashboard.",
        "",
        "Best regards,",
        "Real Estate Outreach Team",
    ]
    return "\n".join(lines)


def render_html(summary: JobSummary) -> str:
    def name_list(title: str, names: list[str]) -> str:
        if not names:
            return ""
        items = "".join(f"<li>{escape(n)}</li>" for n in names[:MAX_LISTED_NAMES])
        if len(names) > MAX_LISTED_NAMES:
            items += f"<li>... and {len(names) - MAX_LISTED_NAMES} more</li>"
        return f"<h4>{title}</h4><ul>{items}</ul>"

    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{render_subject(summary)}</h2>"
        "<ul>"
        f"<li><strong>Total Communities:</strong> {summary.total_count}</li>"
        f"<li><strong>Successfully Processed:</strong> {summary.processed_count}</li>"
        f"<li><strong>Skipped:</strong> {summary.skipped_count}</li>"
        f"<li><strong>Failed:</strong> {summary.failed_count}</li>"
        f"<li><strong>Success Rate:</strong> {summary.success_rate}%</li>"
        "</ul>"
        f"{name_list('Skipped', summary.skipped_names)}"
        f"{name_list('Failed', summary.failed_names)}"
        '<p style="font-size: 12px; color: #666;">This is an automated message. Please do not reply.</p>'
        "</div>"
    )


class CompletionNotifier:
    """Sends the run summary to the owner. Failures are logged, never raised or retried."""

    def __init__(self, sender: SendGridClient | None = None):
        self.sender = sender or SendGridClient()

    async def notify(self, recipient: str | None, summary: JobSummary) -> bool:
        if not recipient:
            logger.warning("No recipient for completion email")
            return False
        if not self.sender.is_available:
            logger.info(
                "Completion email skipped, SendGrid not configured",
                recipient=recipient,
                processed=summary.processed_count,
                total=summary.total_count,
            )
            return False

        try:
            await self.sender.send(
                recipient,
                render_subject(summary),
                render_text(summary),
                html_body=render_html(summary),
            )
        except Exception as e:
            logger.error("Completion email failed", recipient=recipient, error=str(e))
            return False

        logger.info("Completion email sent", recipient=recipient)
        return True

    async def close(self):
        await self.sender.close()
