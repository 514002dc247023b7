import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from registrar.api.crud_modules.descriptors import build_registry
from registrar.services.field_access import (
    READ,
    STUDENT_OWN_PROFILE_FIELDS,
    USER_DIRECTORY_FIELDS,
    WRITE,
    FieldPermission,
    FieldPolicy,
    build_field_policy,
    filter_by_allowed,
)

PROFILE = {
    "id": "u1",
    "username": "alovelace",
    "email": "ada@example.edu",
    "role": "student",
    "profile_data": {"contact_phone": "555-0100", "bio": "Analyst", "status": "active"},
}


class FilterByAllowedTests(unittest.TestCase):
    def test_dotted_path_keeps_only_allowed_child(self):
        filtered = filter_by_allowed(PROFILE, {"username", "profile_data.contact_phone"})
        self.assertEqual(filtered, {"username": "alovelace", "profile_data": {"contact_phone": "555-0100"}})

    def test_top_level_key_keeps_whole_nested_object(self):
        filtered = filter_by_allowed(PROFILE, {"profile_data", "profile_data.bio"})
        self.assertEqual(filtered, {"profile_data": PROFILE["profile_data"]})

    def test_unknown_fields_are_dropped(self):
        self.assertEqual(filter_by_allowed({"role": "admin", "is_superuser": True}, {"email"}), {})
        self.assertEqual(filter_by_allowed(PROFILE, set()), {})
        self.assertEqual(filter_by_allowed(None, {"email"}), {})
        self.assertEqual(filter_by_allowed(["email"], {"email"}), {})

    def test_nested_path_into_non_object_is_dropped(self):
        data = {"profile_data": "not an object", "grade": None}
        self.assertEqual(filter_by_allowed(data, {"profile_data.bio", "grade.final"}), {})

    def test_explicit_none_is_kept(self):
        self.assertEqual(filter_by_allowed({"notes": None}, {"notes"}), {"notes": None})

    def test_input_is_not_mutated(self):
        data = {"profile_data": {"phone": "1", "address": "x"}}
        filter_by_allowed(data, {"profile_data.phone"})
        self.assertEqual(data, {"profile_data": {"phone": "1", "address": "x"}})

    def test_idempotent(self):
        samples = [
            (PROFILE, {"username", "profile_data.contact_phone"}),
            (PROFILE, {"profile_data", "profile_data.bio", "missing.child"}),
            (PROFILE, {"email", "role", "profile_data.status", "profile_data.nope"}),
            ({"grade": {"final": 90, "midterm": None}}, {"grade.final", "grade.midterm"}),
            ({}, {"anything"}),
        ]
        for data, allowed in samples:
            with self.subTest(allowed=sorted(allowed)):
                once = filter_by_allowed(data, allowed)
                self.assertEqual(filter_by_allowed(once, allowed), once)


class FieldPolicyTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.registry = build_registry()
        cls.policy = build_field_policy(cls.registry)

    def test_blanket_and_own_only_entries(self):
        policy = FieldPolicy(
            [
                FieldPermission("student", "user", READ, False, frozenset({"id", "username"})),
                FieldPermission("student", "user", READ, True, frozenset({"email"})),
            ]
        )
        self.assertEqual(policy.allowed_fields("student", "user", READ, own=False), {"id", "username"})
        self.assertEqual(policy.allowed_fields("student", "user", READ, own=True), {"id", "username", "email"})
        self.assertEqual(policy.allowed_fields("teacher", "user", READ, own=True), frozenset())

    def test_user_write_on_someone_else_is_empty_without_blanket_permission(self):
        for role in ("teacher", "student"):
            with self.subTest(role=role):
                self.assertEqual(self.policy.allowed_fields(role, "user", WRITE, own=False), frozenset())
        self.assertEqual(self.policy.allowed_fields("student", "user", WRITE, own=True), STUDENT_OWN_PROFILE_FIELDS)

    def test_directory_fields_for_other_users(self):
        self.assertEqual(self.policy.allowed_fields("student", "user", READ, own=False), USER_DIRECTORY_FIELDS)
        teacher_view = self.policy.allowed_fields("teacher", "user", READ, own=False)
        self.assertIn("profile_data.program_id", teacher_view)
        self.assertNotIn("profile_data", teacher_view)
        self.assertNotIn("password_hash", teacher_view)

    def test_admin_can_write_password_but_never_read_hash(self):
        self.assertIn("password", self.policy.allowed_fields("admin", "user", WRITE, own=False))
        self.assertNotIn("password_hash", self.policy.allowed_fields("admin", "user", WRITE, own=False))
        self.assertNotIn("password_hash", self.policy.allowed_fields("admin", "user", READ, own=False))
        self.assertNotIn("id", self.policy.allowed_fields("admin", "department", WRITE, own=False))

    def test_students_only_read_their_own_records(self):
        self.assertFalse(self.policy.has_blanket("student", "academic_record", READ))
        self.assertEqual(self.policy.allowed_fields("student", "academic_record", READ, own=False), frozenset())
        self.assertIn("grade", self.policy.allowed_fields("student", "academic_record", READ, own=True))
        self.assertEqual(self.policy.allowed_fields("student", "attendance", WRITE, own=True), frozenset())

    def test_catalogue_is_read_only_for_non_admins(self):
        for resource in ("department", "program", "course"):
            for role in ("teacher", "student"):
                with self.subTest(resource=resource, role=role):
                    self.assertTrue(self.policy.has_blanket(role, resource, READ))
                    self.assertEqual(self.policy.allowed_fields(role, resource, WRITE, own=False), frozenset())


if __name__ == "__main__":
    unittest.main()
