from datetime import date

from models import TaskReport


def report_filename(day: date) -> str:
    return f"task-report-{day.isoformat()}.md"


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def render_report_markdown(report: TaskReport) -> str:
    """Render a report as a downloadable Markdown document."""
    summary = report.executive_summary
    sections = [
        f"# Task Management Report\n{summary.summary}",
        f"## Key Metrics\n{_bullets(summary.metrics)}",
        f"## Task Analysis\n{report.task_analysis}",
        f"## Productivity Metrics\n{report.productivity_metrics}",
        f"## Work Style Analysis\n{report.work_style_analysis}",
        f"## Strategic Recommendations\n{_bullets(report.recommendations)}",
    ]
    return "\n\n".join(sections) + "\n"
