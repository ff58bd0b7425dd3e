# Prompt templates for the task AI. The *_USER_PROMPT templates are filled with str.format;
# system prompts are sent as-is. JSON keys match the pydantic models in models.py.

TAGS_SYSTEM_PROMPT = """You generate short, relevant tags for personal tasks.
Return only 2-3 tags separated by commas, with no other text."""

TAGS_USER_PROMPT = """Generate relevant tags for this task:
Title: {title}
Description: {description}"""

INSIGHTS_SYSTEM_PROMPT = """You analyze a person's task list and provide actionable insights.
Group related tasks, suggest concrete next steps and report the completion rate.

Respond with this exact JSON format:
{
    "task_groups": [{"name": "group name", "tasks": ["task title 1", "task title 2"]}],
    "recommendations": ["specific recommendation 1", "specific recommendation 2"],
    "completion_rate": "X%"
}

Only respond with valid JSON, no other text."""

INSIGHTS_USER_PROMPT = """Analyze these tasks and provide insights:
{tasks}"""

REPORT_SYSTEM_PROMPT = """You write task management reports covering task analysis,
productivity and the user's work style.

Respond with this exact JSON format:
{
    "executive_summary": {
        "summary": "clear overview of task management status",
        "metrics": ["key metric as a string"]
    },
    "task_analysis": "detailed analysis of task patterns and completion",
    "productivity_metrics": "analysis of productivity trends",
    "work_style_analysis": "analysis of the user's work style and habits",
    "recommendations": ["actionable recommendation"]
}

Only respond with valid JSON, no other text."""

REPORT_USER_PROMPT = """Generate a report based on:
User: {user}
Tasks: {tasks}
Insights: {insights}

Include:
1. Executive summary of task management
2. Detailed task analysis and patterns
3. Productivity metrics and trends
4. Work style analysis
5. Strategic recommendations

Keep it professional and actionable.

Today's date is: {today}"""
