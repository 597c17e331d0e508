"""Prompt templates for evidence-grounded repository documentation."""

from collections import defaultdict

from repodocs.models.docs import DocPage, RepoContext, RepoContextFile

MAX_TREE_LINES = 200

SYSTEM_PROMPT = """You are an expert documentation generator. Your task is to analyze a source repository and produce comprehensive, well-structured documentation.

CRITICAL RULES:
1. Output ONLY valid JSON - no prose, comments, or markdown outside the JSON structure.
2. Every major claim MUST have at least one evidence item with file_path, excerpt (at most 15 lines and 1200 characters), and reason.
3. If you cannot provide evidence for a claim, mark that section with "**[Needs Review]**" and include a warning.
4. Be accurate and grounded. Do not invent features, files, or capabilities that aren't evident in the code.
5. Focus on practical documentation that helps developers understand and work with the codebase.

OUTPUT FORMAT:
Return a single JSON object with this exact structure:
{
  "repo_summary": {
    "name": "repo-name",
    "tech_stack": ["python", "fastapi", "postgresql"],
    "entrypoints": ["src/app/main.py"]
  },
  "warnings": ["List any issues or gaps found"],
  "needs_more_files": ["path/to/file1", "path/to/dir/"],
  "pages": [
    {
      "category": "ARCHITECTURE|API|FEATURE|RUNBOOK",
      "slug": "architecture/overview",
      "title": "Architecture Overview",
      "markdown": "# Architecture Overview\\n\\n...",
      "evidence": [
        {"file_path": "src/app/main.py", "excerpt": "...", "reason": "Shows the main entry point"}
      ]
    }
  ],
  "tasks": [
    {"title": "Document authentication flow", "description": "...", "category": "API", "priority": "medium"}
  ]
}

Only include "needs_more_files" when more context is genuinely required."""

REQUIRED_PAGES = """## Required Documentation Pages

Generate the following documentation pages. If you lack sufficient context for a page, include a warning and mark uncertain sections with "[Needs Review]".

### ARCHITECTURE (Required)
1. **architecture/overview** - High-level system architecture, components, and their relationships
2. **architecture/tech-stack** - Technologies, frameworks, and dependencies with versions
3. **architecture/services-and-integrations** - External services, APIs, and third-party integrations
4. **architecture/data-model** - Database schema, data structures, and relationships (if applicable)
5. **architecture/deployment** - How the application is deployed, infrastructure, and environments
6. **architecture/decisions** - Key architectural decisions found or inferred

### API (Required if an API exists)
1. **api/overview** - API architecture, patterns, and conventions
2. **api/endpoints** - Endpoints grouped by resource or area
3. **api/auth** - Authentication and authorization mechanisms
4. **api/errors-and-status-codes** - Error handling patterns and status codes

### FEATURE (Required)
1. **features/index** - Overview of major features with confidence levels
2. **features/<feature-name>** - One page per major feature (top 3-5 features)

### RUNBOOK (Required)
1. **runbook/local-dev** - Local development setup
2. **runbook/deployments** - Deployment procedures and CI/CD
3. **runbook/observability** - Logging, monitoring, and metrics
4. **runbook/troubleshooting** - Common issues and solutions
5. **runbook/security** - Secrets management and access control
"""

EVIDENCE_REQUIREMENTS = """## Evidence Requirements

For EVERY major claim or fact in your documentation include an evidence item with:
- `file_path`: The path to the source file
- `excerpt`: The relevant snippet, copied verbatim (at most 15 lines, 1200 characters)
- `reason`: Why this evidence supports the claim

If you cannot find evidence:
- Mark the section with "**[Needs Review]**"
- Add a warning explaining what evidence is missing
- Still include the documentation with your best understanding
"""

OUTPUT_REMINDER = """## Output Format

Return ONLY a valid JSON object following the schema in the system prompt. Do not include any text outside the JSON.

Remember:
- Slug format: `category/page-name` (lowercase, hyphens)
- Markdown should be well-formatted with headers, code blocks, and lists
- Evidence excerpts must be actual code from the provided files
- If uncertain, add warnings and "[Needs Review]" markers rather than guessing
"""


def format_file_tree(files: list[RepoContextFile], max_lines: int = MAX_TREE_LINES) -> str:
    """Render paths grouped by directory, truncated after max_lines."""
    tree: dict[str, list[str]] = defaultdict(list)
    for file in files:
        directory, _, filename = file.path.rpartition("/")
        tree[directory or "."].append(filename)

    lines: list[str] = []
    for directory in sorted(tree):
        if directory != ".":
            lines.append(f"{directory}/")
        for filename in sorted(tree[directory]):
            lines.append(filename if directory == "." else f"  {filename}")

    if len(lines) > max_lines:
        remaining = len(lines) - max_lines
        return "\n".join(lines[:max_lines]) + f"\n... and {remaining} more files"
    return "\n".join(lines)


def _format_key_files(context: RepoContext, with_language: bool = True) -> list[str]:
    parts = []
    for file in context.key_files:
        label = f" ({file.language})" if with_language and file.language else ""
        parts.append(f"### {file.path}{label}\n\n```{file.language or ''}\n{file.content}\n```\n")
    return parts


def build_doc_prompt(context: RepoContext) -> str:
    """Build the first-round documentation prompt."""
    parts = [
        f"""# Repository Documentation Task

Generate comprehensive documentation for the following repository:
- **Repository**: {context.repo_owner}/{context.repo_name}
- **Branch**: {context.default_branch}
- **Total Files**: {context.total_files}
- **Round**: {context.round}/{context.max_rounds}
""",
        f"## File Structure\n\n```\n{format_file_tree(context.file_tree)}\n```\n",
    ]

    if context.key_files:
        parts.append("## Key Files Content\n\nThe following key files have been provided for analysis:\n")
        parts.extend(_format_key_files(context))

    parts.append(REQUIRED_PAGES)
    parts.append(EVIDENCE_REQUIREMENTS)

    if context.round < context.max_rounds:
        parts.append(
            f"""## Need More Files?

If you need additional files to document the repository accurately, list them in the `needs_more_files` array. You have {context.max_rounds - context.round} more round(s) available.

Prioritize requesting:
- Configuration files you haven't seen
- Entry points and main application files
- Key business logic files
- Database schema or migration files
- API route definitions
"""
        )

    parts.append(OUTPUT_REMINDER)
    return "\n".join(parts)


def build_follow_up_prompt(
    context: RepoContext,
    warnings: list[str],
    requested_files: list[str],
) -> str:
    """Build the prompt for a later round that supplies requested files."""
    warning_lines = "\n".join(f"- {w}" for w in warnings) or "- None"
    requested_lines = "\n".join(f"- {f}" for f in requested_files) or "- None"
    parts = [
        f"""# Follow-up: Additional Files Provided

You previously analyzed {context.repo_owner}/{context.repo_name} and requested additional files.

## Previously Identified Issues
{warning_lines}

## Requested Files That Are Now Provided
{requested_lines}

## Additional Key Files
"""
    ]
    parts.extend(_format_key_files(context, with_language=False))
    parts.append(
        """## Task

Using the additional context, update your documentation:
1. Fill in any "[Needs Review]" sections you can now address
2. Add more evidence where you previously had gaps
3. Update any incorrect assumptions
4. Generate any pages you couldn't complete before

Return the COMPLETE updated JSON output (all pages, not just changes).
"""
    )
    parts.append(OUTPUT_REMINDER)
    return "\n".join(parts)


def build_continuation_prompt(
    context: RepoContext,
    completed_pages: list[DocPage],
    attempt: int,
    max_attempts: int,
) -> str:
    """
    Build the prompt used after a response was cut off at the token limit.

    Lists every page already recovered so the model only emits the rest.
    """
    completed = "\n".join(
        f"- {page.slug} ({page.category.value}): {page.title}" for page in completed_pages
    ) or "- None"
    return f"""# Continuation: Response Was Truncated

Your previous response for {context.repo_owner}/{context.repo_name} exceeded the output limit and was cut off (continuation {attempt}/{max_attempts}).

## Pages Already Completed
The following pages were received intact. Do NOT generate them again:
{completed}

## Task

Continue generating the REMAINING required documentation pages only. Keep each page focused and concise so the response fits within the output limit.

Return a single valid JSON object with the same structure as before:
- "repo_summary" (repeat it unchanged)
- "warnings" (only new warnings)
- "pages" (only pages whose slug is not listed above)
- "tasks" (optional)

{EVIDENCE_REQUIREMENTS}
{OUTPUT_REMINDER}"""
