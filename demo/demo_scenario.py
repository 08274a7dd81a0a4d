#!/usr/bin/env python3
"""
Demo scenario for the gradebook platform.
"""

import os

from gradebook.main import GradingPlatform
from gradebook.core.exceptions import WeightSumError, InvalidSplitConfig


COURSE_ID = "MAT101-2024-2"


def run_demo():
    """Run a comprehensive demo of the gradebook platform."""
    print("=" * 60)
    print("GRADEBOOK EVALUATION PLATFORM - DEMO")
    print("=" * 60)

    config = {
        'persistence_type': 'sqlite',
        'persistence_config': {'database_path': 'demo_gradebook.db'},
        'passing_grade': 11,
        'log_level': 'WARNING'
    }

    if os.path.exists('demo_gradebook.db'):
        os.remove('demo_gradebook.db')
    platform = GradingPlatform(config)

    try:
        print("\n1. Enrolling students...")
        enroll_students(platform)

        print("\n2. Defining the evaluation schema...")
        define_schema(platform)

        print("\n3. Grading regular components...")
        grade_components(platform)

        print("\n4. Grading a split component...")
        grade_split_component(platform)

        print("\n5. Saving and reloading...")
        save_and_reload(platform)

        print("\n6. Final averages...")
        show_averages(platform)

        print("\n" + "=" * 60)
        print("DEMO COMPLETED SUCCESSFULLY!")
        print("=" * 60)

    except Exception as e:
        print(f"\nDemo failed with error: {e}")
        import traceback
        traceback.print_exc()


def enroll_students(platform):
    students = [("enr-001", "S001"), ("enr-002", "S002"), ("enr-003", "S003")]
    for enrollment_id, student_id in students:
        platform.enrollment_service.enroll(enrollment_id, COURSE_ID, student_id, period_id="2024-2")
        print(f"  {student_id} enrolled as {enrollment_id}")
    print(f"  Roster statistics: {platform.enrollment_service.get_statistics()}")


def define_schema(platform):
    session = platform.open_session(COURSE_ID)
    schema = session.schema

    for name in ["Parcial 1", "Prácticas", "Trabajos", "Examen Final", "Exposición Oral"]:
        print(f"  {name!r} -> {platform.name_mapper.map_to_field(name)}")

    schema.add_component("Parcial 1", 25)
    schema.add_component("Prácticas", 25)
    schema.add_component("Trabajos", 20)
    schema.add_component("Examen Final", 20)

    try:
        session.apply_schema()
    except WeightSumError as e:
        print(f"  ✓ Rejected incomplete schema: weights sum to {e.actual_sum:.2f}")

    schema.add_component("Exposición Oral", 10)
    version = session.apply_schema()
    print(f"  ✓ Schema applied (version {version}, state {schema.state.value})")


def grade_components(platform):
    session = platform.open_session(COURSE_ID)
    scores = {
        "enr-001": {"parcial1": 15, "practicas": 16, "examenFinal": 13, "exposicionOral": 17},
        "enr-002": {"parcial1": 8, "practicas": 10, "examenFinal": 9, "exposicionOral": 12},
        "enr-003": {"parcial1": 19, "practicas": 18, "examenFinal": 17},
    }
    for enrollment_id, by_key in scores.items():
        for key, value in by_key.items():
            session.record_score(enrollment_id, key, value)
        print(f"  {enrollment_id}: prorated average {session.compute_prorated_average(enrollment_id):.2f}")


def grade_split_component(platform):
    session = platform.open_session(COURSE_ID)
    trabajos = session.schema.find_by_key("trabajos")

    session.enable_split(trabajos.id, 4)
    print(f"  Trabajos split into 4 items of {session.coordinator.item_weight(trabajos.id):.2f}% each")

    for index, score in enumerate([18, 14, 16, 12], start=1):
        state = session.grade_split_item(trabajos.id, "enr-001", index, score)
        print(f"    enr-001 item {index} = {score}: {state.value}")
    print(f"  enr-001 Trabajos rollup: {session.coordinator.rollup(trabajos.id, 'enr-001'):.2f}")

    session.grade_split_item(trabajos.id, "enr-002", 1, 11)
    session.grade_split_item(trabajos.id, "enr-002", 2, 9)
    print(f"  enr-002 Trabajos state: {session.coordinator.state(trabajos.id, 'enr-002').value}")

    try:
        session.resize_split(trabajos.id, 3)
    except InvalidSplitConfig as e:
        print(f"  ✓ Resize rejected: {e.message}")


def save_and_reload(platform):
    session = platform.open_session(COURSE_ID)
    report = session.save_all()
    print(f"  Save report: {report.to_dict()['saved']} saved, {report.to_dict()['failed']} failed")

    session.load()
    print(f"  Reloaded schema version {session.schema_version}, "
          f"{len(session.ledger.enrollments())} students with scores")
    print(f"  Storage statistics: {platform.persistence.get_statistics()}")


def show_averages(platform):
    session = platform.open_session(COURSE_ID)
    for standing in session.roster_report(period_id="2024-2"):
        print(f"  {standing.enrollment_id}: final {standing.final_average} "
              f"({standing.status.value}), prorated {standing.prorated_average:.2f}")
        for contribution in session.breakdown(standing.enrollment_id):
            print(f"    {contribution.name:<16} {contribution.weight:>5.1f}%  "
                  f"score={contribution.score}  contributes {contribution.contribution:.2f}")


if __name__ == "__main__":
    run_demo()
