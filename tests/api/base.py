import os
import unittest
from uuid import UUID, uuid4

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from registrar.core.security import create_access_token, hash_password
from registrar.db.session import Base, get_db
from registrar.main import app
from registrar.models.academic_record import AcademicRecord
from registrar.models.attendance import Attendance
from registrar.models.course import Course
from registrar.models.department import Department
from registrar.models.program import Program
from registrar.models.user import User
from registrar.services.user_codes import generate_user_code

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


class RegistrarApiBase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Base.metadata.drop_all(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(Attendance))
            db.execute(delete(AcademicRecord))
            db.execute(delete(Course))
            db.execute(delete(User))
            db.execute(delete(Program))
            db.execute(delete(Department))
            db.commit()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self._seed()

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def _seed(self):
        self.department_id = self._add(
            Department(id=uuid4(), code="D00000001", name="Computer Science", description="CS")
        )
        self.program_id = self._add(
            Program(
                id=uuid4(),
                program_code="P00000001",
                name="BSc Computer Science",
                description="Undergraduate programme",
                department_id=UUID(self.department_id),
                degree_level="bachelor",
                credits=180,
                duration=3,
            )
        )
        self.course_id = self._add(
            Course(
                id=uuid4(),
                course_code="C00000001",
                title="Databases",
                description="Relational databases",
                credits=6,
                day_of_week=["Monday", "Wednesday"],
                start_time="09:00",
                end_time="10:30",
                location="Room 101",
                program_ids=[self.program_id],
                prerequisites=[],
            )
        )
        self.admin_id = self._create_user("admin", "registrar")
        self.teacher_id = self._create_user("teacher", "tturing", {"contact_phone": "555-0100", "status": "active"})
        self.student_id = self._create_user("student", "alovelace", self._student_profile())
        self.other_student_id = self._create_user("student", "ghopper", self._student_profile())

    def _student_profile(self) -> dict:
        return {
            "enrollment_status": "enrolled",
            "department_id": self.department_id,
            "program_id": self.program_id,
            "year": 2,
            "phone": "555-0199",
        }

    def _add(self, row) -> str:
        with self.SessionLocal() as db:
            db.add(row)
            db.commit()
            return str(row.id)

    def _create_user(self, role: str, username: str, profile_data: dict | None = None) -> str:
        with self.SessionLocal() as db:
            user = User(
                id=uuid4(),
                user_code=generate_user_code(db, role),
                username=username,
                email=f"{username}@example.edu",
                password_hash=PASSWORD_HASH,
                role=role,
                first_name=username.capitalize(),
                last_name="Test",
                profile_data=profile_data,
            )
            db.add(user)
            db.commit()
            return str(user.id)

    def _add_academic_record(self, student_id: str, semester: str = "Fall") -> str:
        return self._add(
            AcademicRecord(
                id=uuid4(),
                student_id=UUID(student_id),
                course_id=UUID(self.course_id),
                semester=semester,
                academic_year="2025-2026",
            )
        )

    @staticmethod
    def _auth_headers(user_id: str, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
