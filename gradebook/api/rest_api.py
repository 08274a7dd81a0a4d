"""
REST API implementation for the gradebook using FastAPI.
"""

import logging
import threading
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from ..core.enums import PASSING_GRADE
from ..core.exceptions import (
    GradebookException, ValidationError, NotFoundError, ConcurrencyError, PersistenceError
)
from ..core.interfaces import PersistenceAPI, CourseEnrollmentService
from ..core.name_mapper import NameMapper
from ..services import GradingSession

logger = logging.getLogger(__name__)


# Pydantic models for API
class ComponentIn(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    weight: float
    active: bool = True


class SchemaRequest(BaseModel):
    components: List[ComponentIn] = Field(default_factory=list)
    expected_version: Optional[int] = None


class ComponentResponse(BaseModel):
    id: str
    name: str
    key: str
    weight: float
    order: int
    active: bool
    split_items: Optional[int] = None


class SchemaResponse(BaseModel):
    course_id: str
    state: str
    version: int
    weight_sum: float
    components: List[ComponentResponse]


class ScoreRequest(BaseModel):
    enrollment_id: str = Field(..., min_length=1)
    component_key: str = Field(..., min_length=1)
    value: float


class ScoreResponse(BaseModel):
    enrollment_id: str
    component_key: str
    value: float
    version: int


class SplitRequest(BaseModel):
    component_id: str = Field(..., min_length=1)
    total_items: int


class ResizeRequest(BaseModel):
    total_items: int


class SplitResponse(BaseModel):
    id: str
    component_id: str
    total_items: int
    item_weight: float


class SplitItemRequest(BaseModel):
    enrollment_id: str = Field(..., min_length=1)
    index: int
    score: float


class SplitItemResponse(BaseModel):
    component_id: str
    enrollment_id: str
    state: str
    rollup: Optional[float] = None


class StandingResponse(BaseModel):
    enrollment_id: str
    prorated_average: float
    final_average: int
    status: str
    breakdown: List[Dict[str, Any]] = []


class FieldNameResponse(BaseModel):
    name: str
    key: str


class GradebookRestAPI:
    """REST API over the grading sessions of each course."""

    def __init__(self, persistence: PersistenceAPI,
                 enrollment_service: Optional[CourseEnrollmentService] = None,
                 name_mapper: Optional[NameMapper] = None,
                 passing_grade: float = PASSING_GRADE):
        self._persistence = persistence
        self._enrollment_service = enrollment_service
        self._name_mapper = name_mapper or NameMapper()
        self._passing_grade = passing_grade
        self._sessions: Dict[str, GradingSession] = {}

        self._lock = threading.RLock()

        # Create FastAPI app
        self.app = FastAPI(
            title="Gradebook API",
            description="Evaluation schemas, scores and final averages of university courses",
            version="1.0.0",
            docs_url="/docs",
            redoc_url="/redoc"
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Setup routes
        self._setup_routes()

    def get_session(self, course_id: str) -> GradingSession:
        """Grading session of a course, loaded from persistence on first use."""
        with self._lock:
            session = self._sessions.get(course_id)
            if session is None:
                session = GradingSession(
                    course_id, self._persistence, self._enrollment_service,
                    self._name_mapper, self._passing_grade
                )
                session.load()
                self._sessions[course_id] = session
            return session

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/", response_model=Dict[str, str])
        async def root():
            """Root endpoint."""
            return {
                "message": "Gradebook API",
                "version": "1.0.0",
                "docs": "/docs"
            }

        @self.app.get("/health", response_model=Dict[str, str])
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

        @self.app.get("/field-name", response_model=FieldNameResponse)
        async def field_name(name: str):
            """Canonical field key of a free-form component name."""
            try:
                return FieldNameResponse(name=name, key=self._name_mapper.map_to_field(name))
            except GradebookException as e:
                raise self._http_error(e)

        # Schema endpoints
        @self.app.get("/courses/{course_id}/schema", response_model=SchemaResponse)
        async def get_schema(course_id: str):
            """Get the evaluation schema of a course."""
            try:
                with self._lock:
                    return self._schema_to_response(self.get_session(course_id))
            except GradebookException as e:
                raise self._http_error(e)

        @self.app.put("/courses/{course_id}/schema", response_model=SchemaResponse)
        async def apply_schema(course_id: str, schema_data: SchemaRequest):
            """Replace, validate and apply the evaluation schema of a course."""
            with self._lock:
                session = self.get_session(course_id)
                previous, previous_state = session.schema.snapshot(), session.schema.state
                try:
                    self._replace_components(session, schema_data.components)
                    session.apply_schema(schema_data.expected_version)
                    return self._schema_to_response(session)
                except GradebookException as e:
                    # Pending scores are kept; only the schema edit is undone
                    session.schema.restore(previous, previous_state)
                    raise self._http_error(e)

        # Score endpoints
        @self.app.post("/courses/{course_id}/scores", response_model=ScoreResponse)
        async def record_score(course_id: str, score_data: ScoreRequest):
            """Record a score; it stays pending until the course is saved."""
            try:
                with self._lock:
                    score = self.get_session(course_id).record_score(
                        score_data.enrollment_id, score_data.component_key, score_data.value
                    )
                    return ScoreResponse(**score.to_dict())
            except GradebookException as e:
                raise self._http_error(e)

        @self.app.post("/courses/{course_id}/scores/save", response_model=Dict[str, Any])
        async def save_scores(course_id: str):
            """Flush every pending score, one student at a time."""
            try:
                with self._lock:
                    return self.get_session(course_id).save_all().to_dict()
            except GradebookException as e:
                raise self._http_error(e)

        # Split endpoints
        @self.app.post("/courses/{course_id}/splits", response_model=SplitResponse,
                       status_code=status.HTTP_201_CREATED)
        async def enable_split(course_id: str, split_data: SplitRequest):
            """Split a component into separately graded items."""
            try:
                with self._lock:
                    session = self.get_session(course_id)
                    session.enable_split(split_data.component_id, split_data.total_items)
                    return self._split_to_response(session, split_data.component_id)
            except GradebookException as e:
                raise self._http_error(e)

        @self.app.patch("/courses/{course_id}/splits/{component_id}", response_model=SplitResponse)
        async def resize_split(course_id: str, component_id: str, resize_data: ResizeRequest):
            """Change the number of items of a split component."""
            try:
                with self._lock:
                    session = self.get_session(course_id)
                    session.resize_split(component_id, resize_data.total_items)
                    return self._split_to_response(session, component_id)
            except GradebookException as e:
                raise self._http_error(e)

        @self.app.post("/courses/{course_id}/splits/{component_id}/items", response_model=SplitItemResponse)
        async def grade_split_item(course_id: str, component_id: str, item_data: SplitItemRequest):
            """Grade one item of a split component."""
            try:
                with self._lock:
                    session = self.get_session(course_id)
                    state = session.grade_split_item(
                        component_id, item_data.enrollment_id, item_data.index, item_data.score
                    )
                    return SplitItemResponse(
                        component_id=component_id,
                        enrollment_id=item_data.enrollment_id,
                        state=state.value,
                        rollup=session.coordinator.rollup(component_id, item_data.enrollment_id)
                    )
            except GradebookException as e:
                raise self._http_error(e)

        # Average endpoints
        @self.app.get("/courses/{course_id}/enrollments/{enrollment_id}/average",
                      response_model=StandingResponse)
        async def get_average(course_id: str, enrollment_id: str):
            """Prorated and final average of one student, with the per-component breakdown."""
            try:
                with self._lock:
                    session = self.get_session(course_id)
                    standing = session.standing(enrollment_id)
                    return StandingResponse(
                        **standing.to_dict(),
                        breakdown=[c.to_dict() for c in session.breakdown(enrollment_id)]
                    )
            except GradebookException as e:
                raise self._http_error(e)

        @self.app.get("/courses/{course_id}/roster", response_model=List[StandingResponse])
        async def get_roster(course_id: str, period_id: Optional[str] = None):
            """Standing of every student of the course."""
            try:
                with self._lock:
                    standings = self.get_session(course_id).roster_report(period_id)
                    return [StandingResponse(**s.to_dict()) for s in standings]
            except GradebookException as e:
                raise self._http_error(e)

    def _replace_components(self, session: GradingSession, components: List[ComponentIn]) -> None:
        schema = session.schema
        requested = {c.id for c in components if c.id}
        for existing in schema.components:
            if existing.id not in requested:
                schema.remove_component(existing.id)

        ordered_ids = []
        for item in components:
            if item.id:
                component = schema.get(item.id)
                if component.name != item.name:
                    schema.rename_component(item.id, item.name)
                schema.set_weight(item.id, item.weight)
            else:
                component = schema.add_component(item.name, item.weight)
            if component.active != item.active:
                schema.set_active(component.id, item.active)
            ordered_ids.append(component.id)
        schema.reorder(ordered_ids)

    @staticmethod
    def _http_error(error: GradebookException) -> HTTPException:
        """Map a domain error to its HTTP status."""
        if isinstance(error, ValidationError):
            status_code = status.HTTP_400_BAD_REQUEST
        elif isinstance(error, NotFoundError):
            status_code = status.HTTP_404_NOT_FOUND
        elif isinstance(error, ConcurrencyError):
            status_code = status.HTTP_409_CONFLICT
        elif isinstance(error, PersistenceError):
            status_code = status.HTTP_502_BAD_GATEWAY
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        if status_code >= 500:
            logger.error("Request failed: %s", error.message)
        return HTTPException(
            status_code=status_code,
            detail={'message': error.message, 'error_code': error.error_code, 'details': error.details}
        )

    def _schema_to_response(self, session: GradingSession) -> SchemaResponse:
        components = []
        for component in session.schema.components:
            split_items = None
            if session.coordinator.is_split(component.id):
                split_items = session.coordinator.series_for(component.id).total_items
            components.append(ComponentResponse(
                id=component.id,
                name=component.name,
                key=component.key,
                weight=component.weight,
                order=component.order,
                active=component.active,
                split_items=split_items
            ))
        return SchemaResponse(
            course_id=session.course_id,
            state=session.schema.state.value,
            version=session.schema_version,
            weight_sum=session.schema.active_weight_sum(),
            components=components
        )

    def _split_to_response(self, session: GradingSession, component_id: str) -> SplitResponse:
        series = session.coordinator.series_for(component_id)
        return SplitResponse(
            id=series.id,
            component_id=component_id,
            total_items=series.total_items,
            item_weight=session.coordinator.item_weight(component_id)
        )
