"""
Project registry for Billtrack.

Creates, lists and updates projects and resolves project references
(by id or by name) for the timer and the ledger.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.models import (
    DEFAULT_CURRENCY,
    ById,
    LookupStatus,
    Project,
    ProjectLookup,
    ProjectRef,
    parse_project_ref,
    utc_now,
)
from ..db.repository import ProjectRepository
from .errors import AmbiguousReference, ProjectNotFound, ValidationError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"name", "client", "description", "hourly_rate", "currency", "color", "archived"}
)


def validation_message(error: PydanticValidationError) -> str:
    """Flatten a pydantic error into a single readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class ProjectRegistry:
    """CRUD over billing-relevant project metadata."""

    def __init__(
        self,
        project_repo: ProjectRepository,
        default_currency: str = DEFAULT_CURRENCY,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.project_repo = project_repo
        self.default_currency = default_currency
        self.clock = clock or utc_now

    def create(
        self,
        name: str,
        client: Optional[str] = None,
        description: Optional[str] = None,
        hourly_rate: Optional[Union[Decimal, float, int, str]] = None,
        currency: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Project:
        """
        Create a new project.

        Args:
            name: Project name, must not be blank
            client: Optional client name
            description: Optional project description
            hourly_rate: Optional non-negative hourly rate
            currency: Three-letter currency code, defaults to the configured one
            color: Optional display color

        Returns:
            The stored project with its assigned id

        Raises:
            ValidationError: If the name is blank, the rate is negative or the
                currency code is malformed
        """
        now = self.clock()
        try:
            project = Project(
                name=name or "",
                client=client,
                description=description,
                hourly_rate=hourly_rate,
                currency=currency or self.default_currency,
                color=color,
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(validation_message(e)) from e

        created = self.project_repo.create_project(project)
        logger.info("Created project #%s '%s'", created.id, created.name)
        return created

    def get(self, project_id: int) -> Project:
        """Get a project by id or raise ProjectNotFound."""
        project = self.project_repo.get_project_by_id(project_id)
        if project is None:
            raise ProjectNotFound(f"Project with ID {project_id} not found")
        return project

    def list(
        self, search: Optional[str] = None, include_archived: bool = False
    ) -> List[Project]:
        """
        List projects ordered by creation time.

        Args:
            search: Case-insensitive substring matched against name, client
                and description
            include_archived: Whether archived projects are included

        Returns:
            Matching projects, oldest first
        """
        search = search.strip() if search else None
        return self.project_repo.list_projects(
            search=search or None, include_archived=include_archived
        )

    def update(self, project_id: int, **fields: Any) -> Project:
        """
        Partially update a project.

        Args:
            project_id: Id of the project to update
            **fields: Any of name, client, description, hourly_rate, currency,
                color and archived

        Returns:
            The updated project

        Raises:
            ProjectNotFound: If the project doesn't exist
            ValidationError: If a field is unknown or a value is invalid
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown project fields: {', '.join(sorted(unknown))}")

        with self.project_repo.db_manager.transaction() as conn:
            project = self.project_repo.fetch_project(conn, project_id)
            if project is None:
                raise ProjectNotFound(f"Project with ID {project_id} not found")

            data = project.model_dump()
            data.update(fields)
            data["updated_at"] = self.clock()
            try:
                updated = Project(**data)
            except PydanticValidationError as e:
                raise ValidationError(validation_message(e)) from e

            if not self.project_repo.update_project(conn, updated):
                raise ProjectNotFound(f"Project with ID {project_id} not found")

        logger.info(
            "Updated project #%s (%s)", project_id, ", ".join(sorted(fields)) or "no fields"
        )
        return updated

    def lookup(self, ref: Union[int, str, ProjectRef]) -> ProjectLookup:
        """
        Resolve a reference without raising.

        A name first matches exactly; when that is not a unique hit every
        case-insensitive match becomes a candidate.
        """
        ref = parse_project_ref(ref)
        if isinstance(ref, ById):
            project = self.project_repo.get_project_by_id(ref.id)
            if project is None:
                return ProjectLookup(status=LookupStatus.NOT_FOUND)
            return ProjectLookup(status=LookupStatus.FOUND, matches=[project])

        candidates = self.project_repo.get_projects_by_name(ref.name)
        exact = [p for p in candidates if p.name == ref.name.strip()]
        if len(exact) == 1:
            return ProjectLookup(status=LookupStatus.FOUND, matches=exact)
        if not candidates:
            return ProjectLookup(status=LookupStatus.NOT_FOUND)
        if len(candidates) == 1:
            return ProjectLookup(status=LookupStatus.FOUND, matches=candidates)
        return ProjectLookup(status=LookupStatus.AMBIGUOUS, matches=candidates)

    def resolve(self, ref: Union[int, str, ProjectRef]) -> Project:
        """
        Resolve a reference to exactly one project.

        Raises:
            ProjectNotFound: If nothing matches
            AmbiguousReference: If a name matches several projects
        """
        ref = parse_project_ref(ref)
        result = self.lookup(ref)
        if result.status is LookupStatus.NOT_FOUND:
            raise ProjectNotFound(f"Project '{ref}' not found")
        if result.status is LookupStatus.AMBIGUOUS:
            raise AmbiguousReference(str(ref), result.matches)
        return result.matches[0]
