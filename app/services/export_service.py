"""
Export Service

Renders a project's articles as a downloadable file:
- csv: one row per article, header from the selected fields
- json: project summary plus the article rows
- bibtex / endnote: citation manager formats
- prisma: screening counts laid out as PRISMA flow data

Every export is recorded in export_logs.
"""

import csv
import io
import json
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.article import Article
from app.models.project import Project
from app.repositories.article_repo import ArticleRepository
from app.repositories.export_log_repo import ExportLogRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.export import ExportRequest, ExportResult, ExportType

logger = logging.getLogger(__name__)

EXPORTABLE_FIELDS = (
    "id", "external_id", "source", "title", "authors", "abstract",
    "publication_date", "journal", "doi", "pmid", "url", "status",
    "screening_decision", "screening_notes", "metadata", "created_at",
)


class ExportError(Exception):
    """Export could not be produced."""
    pass


class ExportProjectNotFoundError(ExportError):
    pass


# ============================================================
# ROW CONVERSION
# ============================================================

def _plain(value: Any) -> Any:
    """Reduce enums, UUIDs and dates to JSON friendly values."""
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def article_to_row(article: Article, fields: Sequence[str]) -> Dict[str, Any]:
    row = {}
    for field in fields:
        value = article.meta if field == "metadata" else getattr(article, field)
        if isinstance(value, list):
            value = [_plain(v) for v in value]
        else:
            value = _plain(value)
        row[field] = value
    return row


def _year(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, (date, datetime)):
        return str(value.year)
    return str(value)[:4]


# ============================================================
# FORMATS
# ============================================================

def generate_csv(rows: List[Dict[str, Any]]) -> str:
    """CSV with a header row; list values are joined with '; '."""
    if not rows:
        return "No data to export"

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    headers = list(rows[0].keys())
    writer.writerow(headers)

    for row in rows:
        values = []
        for header in headers:
            value = row.get(header)
            if value is None:
                values.append("")
            elif isinstance(value, list):
                values.append("; ".join(str(v) for v in value))
            elif isinstance(value, dict):
                values.append(json.dumps(value))
            else:
                values.append(str(value))
        writer.writerow(values)

    return buffer.getvalue().rstrip("\n")


def generate_json(rows: List[Dict[str, Any]], project: Project, exported_at: datetime) -> str:
    return json.dumps(
        {
            "project": {
                "title": project.title,
                "description": project.description,
                "exportDate": exported_at.isoformat(),
            },
            "articles": rows,
        },
        indent=2,
        default=str,
    )


def generate_bibtex(rows: List[Dict[str, Any]]) -> str:
    entries = []

    for row in rows:
        key = row.get("id") or row.get("pmid") or "unknown"
        entry_type = "article" if row.get("journal") else "misc"
        lines = [f"@{entry_type}{{{key},"]

        if row.get("title"):
            lines.append(f"  title = {{{row['title']}}},")
        if row.get("authors"):
            lines.append(f"  author = {{{' and '.join(row['authors'])}}},")
        if row.get("journal"):
            lines.append(f"  journal = {{{row['journal']}}},")
        year = _year(row.get("publication_date"))
        if year:
            lines.append(f"  year = {{{year}}},")
        if row.get("doi"):
            lines.append(f"  doi = {{{row['doi']}}},")
        if row.get("url"):
            lines.append(f"  url = {{{row['url']}}},")

        lines.append("}")
        entries.append("\n".join(lines) + "\n\n")

    return "".join(entries)


def generate_endnote(rows: List[Dict[str, Any]]) -> str:
    entries = []

    for row in rows:
        lines = ["%0 Journal Article"]

        if row.get("title"):
            lines.append(f"%T {row['title']}")
        for author in row.get("authors") or []:
            lines.append(f"%A {author}")
        if row.get("journal"):
            lines.append(f"%J {row['journal']}")
        year = _year(row.get("publication_date"))
        if year:
            lines.append(f"%D {year}")
        if row.get("doi"):
            lines.append(f"%R {row['doi']}")
        if row.get("url"):
            lines.append(f"%U {row['url']}")
        if row.get("abstract"):
            lines.append(f"%X {row['abstract']}")

        entries.append("\n".join(lines) + "\n\n")

    return "".join(entries)


def generate_prisma(articles: Sequence[Article], project: Project, generated_at: datetime) -> str:
    """
    PRISMA flow counts.

    Maybe and undecided articles are both reported as pending.
    """
    decisions = [_plain(a.screening_decision) for a in articles]
    total = len(decisions)
    included = decisions.count("include")
    excluded = decisions.count("exclude")
    pending = sum(1 for d in decisions if d is None or d == "maybe")

    return f"""PRISMA Flow Data for: {project.title}
Generated: {generated_at.isoformat()}

Identification:
- Records identified through database searching: {total}

Screening:
- Records after duplicates removed: {total}
- Records screened: {included + excluded}
- Records excluded: {excluded}

Eligibility:
- Full-text articles assessed for eligibility: {included}
- Full-text articles included in systematic review: {included}

Included:
- Studies included in systematic review: {included}

Pending Review:
- Records pending screening: {pending}

Export Summary:
Total records: {total}
Included: {included}
Excluded: {excluded}
Pending: {pending}
"""


def export_filename(project_title: str, export_type: ExportType) -> str:
    safe_title = re.sub(r"[^\w\- ]+", "_", project_title).strip() or "project"
    suffix = {
        ExportType.CSV: "export.csv",
        ExportType.JSON: "export.json",
        ExportType.BIBTEX: "export.bib",
        ExportType.ENDNOTE: "export.enw",
        ExportType.PRISMA: "prisma-data.txt",
    }[export_type]
    return f"{safe_title}-{suffix}"


CONTENT_TYPES = {
    ExportType.CSV: "text/csv",
    ExportType.JSON: "application/json",
    ExportType.BIBTEX: "text/plain",
    ExportType.ENDNOTE: "text/plain",
    ExportType.PRISMA: "text/plain",
}


def render_export(
    export_type: ExportType,
    articles: Sequence[Article],
    project: Project,
    fields: Sequence[str],
    now: Optional[datetime] = None
) -> ExportResult:
    """Render articles in the requested format. No database access."""
    now = now or datetime.now(timezone.utc)
    rows = [article_to_row(a, fields) for a in articles]

    if export_type == ExportType.CSV:
        content = generate_csv(rows)
    elif export_type == ExportType.JSON:
        content = generate_json(rows, project, now)
    elif export_type == ExportType.BIBTEX:
        content = generate_bibtex(rows)
    elif export_type == ExportType.ENDNOTE:
        content = generate_endnote(rows)
    elif export_type == ExportType.PRISMA:
        content = generate_prisma(articles, project, now)
    else:
        raise ExportError(f"Unsupported export type: {export_type}")

    return ExportResult(
        content=content,
        content_type=CONTENT_TYPES[export_type],
        filename=export_filename(project.title, export_type),
        record_count=len(rows),
    )


# ============================================================
# SERVICE
# ============================================================

class ExportService:
    """Service class for project exports."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.project_repo = ProjectRepository(db)
        self.article_repo = ArticleRepository(db)
        self.export_log_repo = ExportLogRepository(db)

    async def export_project(
        self,
        project_id: UUID,
        user_id: UUID,
        request: ExportRequest
    ) -> ExportResult:
        """
        Export a project's articles and log the export.

        Raises:
            ExportProjectNotFoundError: project missing or not the user's
            ExportError: unknown field requested
        """
        project = await self.project_repo.get_for_user(project_id, user_id)
        if not project:
            raise ExportProjectNotFoundError("Project not found or access denied")

        fields = request.include_fields or settings.EXPORT_DEFAULT_FIELDS
        unknown = [f for f in fields if f not in EXPORTABLE_FIELDS]
        if unknown:
            raise ExportError(f"Unknown export fields: {', '.join(unknown)}")

        filters = request.filters
        articles = await self.article_repo.get_project_articles(
            project_id,
            status=filters.status,
            screening_decision=filters.screening_decision,
            date_from=filters.date_from,
            date_to=filters.date_to,
            limit=None
        )

        result = render_export(request.export_type, articles, project, fields)

        await self.export_log_repo.create(
            project_id=project_id,
            user_id=user_id,
            export_type=request.export_type.value,
            record_count=result.record_count,
            filters=filters.model_dump(mode="json", exclude_none=True)
        )

        logger.info(f"Exported {result.record_count} articles from project {project_id} as {request.export_type.value}")
        return result
