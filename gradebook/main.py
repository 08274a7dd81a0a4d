"""
Main entry point for the gradebook platform.
"""

import logging
import threading
import time
from typing import Optional

from .core.enums import PASSING_GRADE
from .core.name_mapper import NameMapper
from .persistence import PersistenceFactory
from .services import GradingSession, RosterEnrollmentService
from .api.rest_api import GradebookRestAPI

logger = logging.getLogger(__name__)


class GradingPlatform:
    """Main platform class that wires persistence, roster and the REST API."""

    def __init__(self, config: Optional[dict] = None):
        self._config = config or {}
        self._persistence = None
        self._enrollment_service = None
        self._name_mapper = None
        self._rest_api = None
        self._rest_thread = None

        # Initialize platform
        self._initialize_platform()

    @property
    def persistence(self):
        return self._persistence

    @property
    def enrollment_service(self) -> RosterEnrollmentService:
        return self._enrollment_service

    @property
    def name_mapper(self) -> NameMapper:
        return self._name_mapper

    @property
    def rest_api(self) -> GradebookRestAPI:
        return self._rest_api

    @property
    def passing_grade(self) -> float:
        return self._config.get('passing_grade', PASSING_GRADE)

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        logging.basicConfig(
            level=self._config.get('log_level', 'INFO'),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
        logger.info("Initializing gradebook platform...")

        persistence_type = self._config.get('persistence_type', 'memory')
        persistence_config = self._config.get('persistence_config', {})
        self._persistence = PersistenceFactory.create_persistence(persistence_type, **persistence_config)
        logger.info("Persistence initialized: %s", persistence_type)

        self._name_mapper = NameMapper(
            extra_mappings=self._config.get('custom_names', {}),
            strict=self._config.get('strict_name_mapping', False)
        )
        self._enrollment_service = RosterEnrollmentService()
        logger.info("Services initialized")

        self._rest_api = GradebookRestAPI(
            self._persistence,
            self._enrollment_service,
            self._name_mapper,
            self.passing_grade
        )
        logger.info("Gradebook platform initialized")

    def open_session(self, course_id: str) -> GradingSession:
        """Grading session of a course, shared with the REST API."""
        return self._rest_api.get_session(course_id)

    def start_rest_server(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start the REST server in a background thread."""
        if self._rest_thread is not None:
            logger.warning("REST server already running")
            return

        import uvicorn

        host = host or self._config.get('rest_host', '0.0.0.0')
        port = port or self._config.get('rest_port', 8000)

        def run_server():
            uvicorn.run(
                self._rest_api.app,
                host=host,
                port=port,
                log_level=str(self._config.get('log_level', 'info')).lower()
            )

        self._rest_thread = threading.Thread(target=run_server, daemon=True)
        self._rest_thread.start()

        logger.info("REST server started on %s:%s (docs at /docs)", host, port)

    def run_demo(self):
        """Grade a small course end to end and log the results."""
        course_id = "CS101-2024-1"
        for number in range(1, 4):
            self._enrollment_service.enroll(f"enr-{number}", course_id, f"S00{number}", period_id="2024-1")

        session = self.open_session(course_id)
        parcial = session.schema.add_component("Parcial 1", 30)
        session.schema.add_component("Prácticas", 30)
        trabajos = session.schema.add_component("Trabajos", 20)
        session.schema.add_component("Examen Final", 20)
        session.apply_schema()
        session.enable_split(trabajos.id, 2)

        for number, (p1, pr, t1, t2, ef) in enumerate(
                [(16, 14, 18, 14, 12), (9, 11, 10, 8, 10), (20, 18, 19, 17, 15)], start=1):
            enrollment_id = f"enr-{number}"
            session.record_score(enrollment_id, parcial.key, p1)
            session.record_score(enrollment_id, "practicas", pr)
            session.grade_split_item(trabajos.id, enrollment_id, 1, t1)
            session.grade_split_item(trabajos.id, enrollment_id, 2, t2)
            session.record_score(enrollment_id, "examenFinal", ef)

        report = session.save_all()
        logger.info("Saved %d students, %d failed", len(report.saved), len(report.failed))
        for standing in session.roster_report():
            logger.info("%s: prorated %.2f, final %d (%s)", standing.enrollment_id,
                        standing.prorated_average, standing.final_average, standing.status.value)


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Gradebook evaluation and aggregation platform")
    parser.add_argument("--rest-port", type=int, default=None, help="REST server port")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")
    parser.add_argument("--config", type=str, help="Configuration file path")

    args = parser.parse_args()

    # Load configuration
    config = {}
    if args.config:
        import json
        with open(args.config, 'r') as f:
            config = json.load(f)

    platform = GradingPlatform(config)

    try:
        if args.demo:
            platform.run_demo()
        else:
            platform.start_rest_server(port=args.rest_port)

            # Keep running
            logger.info("Platform is running. Press Ctrl+C to stop.")
            while True:
                time.sleep(1)

    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
