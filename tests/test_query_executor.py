import math
import os
import threading
import unittest
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from registrar.api.crud_modules.descriptors import build_registry
from registrar.db.session import Base
from registrar.models.course import Course
from registrar.models.department import Department
from registrar.models.program import Program
from registrar.models.user import User
from registrar.services.query_executor import OperationCancelled, execute
from registrar.services.query_parser import parse

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class QueryExecutorTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=cls.engine)
        cls.registry = build_registry()

    @classmethod
    def tearDownClass(cls):
        Base.metadata.drop_all(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        self.db = self.SessionLocal()

    def tearDown(self):
        self.db.rollback()
        for model in (Course, Program, User, Department):
            self.db.query(model).delete()
        self.db.commit()
        self.db.close()

    def _seed_departments(self, count: int = 25) -> list[Department]:
        rows = []
        for index in range(count):
            rows.append(
                Department(
                    id=uuid.uuid4(),
                    code=f"D{index + 1:08d}",
                    # pairs share a timestamp so the secondary sort key matters
                    name=f"Department {(count - index):02d}",
                    created_at=BASE_TIME + timedelta(minutes=index // 2),
                )
            )
        self.db.add_all(rows)
        self.db.commit()
        return rows

    def _run(self, resource: str, params: dict, **kwargs):
        descriptor = self.registry[resource]
        return execute(self.db, parse(params, descriptor), descriptor, self.registry, **kwargs)

    def test_sort_desc_then_asc_returns_second_page(self):
        rows = self._seed_departments(25)
        expected = sorted(rows, key=lambda row: row.name)
        expected = sorted(expected, key=lambda row: row.created_at, reverse=True)

        result = self._run("department", {"sort": "-created_at,name", "page": "2", "limit": "10"})

        self.assertEqual(result.total, 25)
        self.assertIsNone(result.predicate_error)
        self.assertEqual([item["name"] for item in result.records], [row.name for row in expected[10:20]])
        self.assertEqual(math.ceil(result.total / 10), 3)

    def test_camel_case_sort_matches_snake_case_sort(self):
        rows = self._seed_departments(25)
        expected = sorted(rows, key=lambda row: row.name)
        expected = sorted(expected, key=lambda row: row.created_at, reverse=True)

        result = self._run("department", {"sort": "-createdAt,name", "page": "2", "limit": "10"})

        self.assertEqual(result.total, 25)
        self.assertEqual([item["name"] for item in result.records], [row.name for row in expected[10:20]])

    def test_pages_cover_every_record_exactly_once(self):
        rows = self._seed_departments(25)
        for limit in (1, 7, 10, 25, 100):
            pages = math.ceil(25 / limit)
            seen = []
            for page in range(1, pages + 1):
                result = self._run("department", {"page": str(page), "limit": str(limit)})
                self.assertEqual(result.total, 25)
                seen.extend(item["id"] for item in result.records)
            self.assertEqual(len(seen), 25)
            self.assertEqual(set(seen), {str(row.id) for row in rows})

    def test_range_operator_on_text_field_yields_empty_result(self):
        department = Department(id=uuid.uuid4(), code="D00000001", name="Physics")
        self.db.add(department)
        self.db.add(
            Program(
                id=uuid.uuid4(),
                program_code="P00000001",
                name="Physics BSc",
                description="Physics",
                department_id=department.id,
                degree_level="bachelor",
                credits=180,
                duration=3,
                status="active",
            )
        )
        self.db.commit()

        result = self._run("program", {"status[gte]": "active"})

        self.assertEqual(result.records, [])
        self.assertEqual(result.total, 0)
        self.assertIn("status", result.predicate_error)

    def test_predicate_failures_do_not_raise(self):
        self._seed_departments(3)
        cases = [
            ("department", {"nonexistent": "x"}),
            ("department", {"created_at[gt]": "not-a-date"}),
            ("program", {"credits[gte]": "many"}),
            ("course", {"day_of_week": "Monday"}),
            ("user", {"password_hash": "x"}),
            ("department", {"profile.name": "x"}),
        ]
        for resource, params in cases:
            with self.subTest(resource=resource, params=params):
                result = self._run(resource, params)
                self.assertEqual((result.records, result.total), ([], 0))
                self.assertIsNotNone(result.predicate_error)

    def test_filters_are_conjunctive_and_coerced(self):
        science = Department(id=uuid.uuid4(), code="D00000001", name="Science")
        arts = Department(id=uuid.uuid4(), code="D00000002", name="Arts")
        self.db.add_all([science, arts])
        for index, (department, credits) in enumerate([(science, 120), (science, 240), (arts, 240)]):
            self.db.add(
                Program(
                    id=uuid.uuid4(),
                    program_code=f"P{index + 1:08d}",
                    name=f"Program {index}",
                    description="-",
                    department_id=department.id,
                    degree_level="bachelor",
                    credits=credits,
                    duration=3,
                )
            )
        self.db.commit()

        result = self._run("program", {"department_id": str(science.id), "credits[gte]": "200"})
        self.assertEqual(result.total, 1)
        self.assertEqual(result.records[0]["credits"], 240)

        result = self._run("program", {"program_code[in]": "P00000001,P00000003"})
        self.assertEqual(sorted(item["program_code"] for item in result.records), ["P00000001", "P00000003"])

        result = self._run("program", {"credits[ne]": "240"})
        self.assertEqual(result.total, 1)

    def test_date_only_value_matches_whole_day_on_timestamps(self):
        self._seed_departments(4)
        self.db.add(
            Department(
                id=uuid.uuid4(),
                code="D00000099",
                name="Later",
                created_at=BASE_TIME + timedelta(days=1),
            )
        )
        self.db.commit()

        result = self._run("department", {"created_at": "2026-01-05"})
        self.assertEqual(result.total, 4)
        result = self._run("department", {"created_at[ne]": "2026-01-05"})
        self.assertEqual([item["name"] for item in result.records], ["Later"])

    def test_search_is_case_insensitive_and_escapes_wildcards(self):
        self.db.add_all(
            [
                Department(id=uuid.uuid4(), code="D00000001", name="100% Research"),
                Department(id=uuid.uuid4(), code="D00000002", name="1000 Club"),
                Department(id=uuid.uuid4(), code="D00000003", name="History", description="research archive"),
            ]
        )
        self.db.commit()

        result = self._run("department", {"search": "100%"})
        self.assertEqual([item["name"] for item in result.records], ["100% Research"])

        result = self._run("department", {"search": "RESEARCH"})
        self.assertEqual(result.total, 2)

    def test_unknown_sort_field_is_ignored(self):
        self._seed_departments(5)
        result = self._run("department", {"sort": "-nonexistent"})
        self.assertEqual(result.total, 5)
        self.assertEqual(len(result.records), 5)

    def test_projection_keeps_id_and_never_emits_hidden_fields(self):
        self._seed_departments(2)
        result = self._run("department", {"fields": "name,bogus"})
        for record in result.records:
            self.assertEqual(set(record), {"id", "name"})

        self.db.add(
            User(
                id=uuid.uuid4(),
                user_code="A0000017",
                username="root",
                email="root@example.edu",
                password_hash="secret",
                role="admin",
            )
        )
        self.db.commit()
        result = self._run("user", {"fields": "username,password_hash"})
        self.assertEqual(result.records[0], {"id": result.records[0]["id"], "username": "root"})
        result = self._run("user", {})
        self.assertNotIn("password_hash", result.records[0])

    def test_relations_are_expanded_and_dangling_ids_become_none(self):
        department = Department(id=uuid.uuid4(), code="D00000001", name="Chemistry")
        self.db.add(department)
        program = Program(
            id=uuid.uuid4(),
            program_code="P00000001",
            name="Chemistry BSc",
            description="-",
            department_id=department.id,
            degree_level="bachelor",
            credits=180,
            duration=3,
        )
        orphan = Program(
            id=uuid.uuid4(),
            program_code="P00000002",
            name="Orphan",
            description="-",
            department_id=uuid.uuid4(),
            degree_level="master",
            credits=90,
            duration=1,
        )
        self.db.add_all([program, orphan])
        self.db.add(
            Course(
                id=uuid.uuid4(),
                course_code="C00000001",
                title="Organic Chemistry",
                description="-",
                credits=6,
                day_of_week=["Friday"],
                start_time="13:00",
                end_time="15:00",
                location="Lab 3",
                program_ids=[str(program.id), str(uuid.uuid4())],
                prerequisites=[],
            )
        )
        self.db.commit()

        result = self._run("program", {"sort": "program_code"})
        self.assertEqual(
            result.records[0]["department_id"],
            {"id": str(department.id), "name": "Chemistry", "code": "D00000001"},
        )
        self.assertIsNone(result.records[1]["department_id"])

        result = self._run("course", {})
        self.assertEqual(
            result.records[0]["program_ids"],
            [{"id": str(program.id), "name": "Chemistry BSc", "program_code": "P00000001"}, None],
        )

    def test_visible_fields_limit_filtering(self):
        self._seed_departments(2)
        result = self._run("department", {"code": "D00000001"}, visible_fields=frozenset({"id", "name"}))
        self.assertEqual(result.total, 0)
        self.assertIsNotNone(result.predicate_error)

    def test_cancelled_execution_raises(self):
        self._seed_departments(2)
        cancel_event = threading.Event()
        cancel_event.set()
        with self.assertRaises(OperationCancelled):
            self._run("department", {}, cancel_event=cancel_event)


if __name__ == "__main__":
    unittest.main()
