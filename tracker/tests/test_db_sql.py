import os
import tempfile
import unittest

from sqlalchemy import inspect

from tracker.db import ProjectFields, SqlDbClient
from tracker.errors import (
    ConstraintViolation,
    InvalidCredentials,
    ProjectNotFound,
    UserNotFound,
)
from tracker.membership import ATOMIC, READ_MODIFY_WRITE, MembershipManager, decode
from tracker.tests.test_membership import BarrierDb, run_concurrently


def sample_fields(**overrides) -> ProjectFields:
    values = dict(
        name="Spring launch",
        owner_handle="@acme",
        ticket_info="VIP + general",
        setter_rate=12.5,
        sales_goal=20000.0,
        estimated_revenue=15000.0,
        member_ids="",
    )
    values.update(overrides)
    return ProjectFields(**values)


class SqlDbClientTests(unittest.TestCase):
    """
    Uses in-memory SQLite via SQLAlchemy URL for fast/local testing of the SQL client.
    """

    def setUp(self):
        self.db = SqlDbClient("sqlite+pysqlite:///:memory:")

    def tearDown(self):
        self.db.close()

    def test_schema_uses_persisted_column_names(self):
        inspector = inspect(self.db.engine)
        self.assertEqual(
            [column["name"] for column in inspector.get_columns("usuarios")],
            ["id", "nombre", "email", "pass"],
        )
        self.assertEqual(
            [column["name"] for column in inspector.get_columns("proyectos")],
            [
                "id",
                "nombre_proyecto",
                "usuario_instagram",
                "tickets",
                "tarifa_setter",
                "objetivo_ventas",
                "facturacion_estimada",
                "usuarios",
            ],
        )

    def test_create_user_then_authenticate(self):
        created = self.db.create_user("Ana", "ana@example.com", "hunter2")
        self.assertIsNotNone(created.id)
        user = self.db.authenticate("ana@example.com", "hunter2")
        self.assertEqual(user, created)

    def test_authenticate_rejects_wrong_secret(self):
        self.db.create_user("Ana", "ana@example.com", "hunter2")
        with self.assertRaises(InvalidCredentials):
            self.db.authenticate("ana@example.com", "hunter3")

    def test_duplicate_email_is_constraint_violation(self):
        self.db.create_user("Ana", "ana@example.com", "a")
        with self.assertRaises(ConstraintViolation):
            self.db.create_user("Other Ana", "ana@example.com", "b")
        self.assertEqual(len(self.db.list_users()), 1)

    def test_get_user_by_email_missing(self):
        with self.assertRaises(UserNotFound):
            self.db.get_user_by_email("nobody@example.com")

    def test_create_and_get_project(self):
        created = self.db.create_project(sample_fields(member_ids="3,4"))
        fetched = self.db.get_project(created.id)
        self.assertEqual(fetched, created)
        self.assertEqual(fetched.member_ids, "3,4")
        self.assertEqual(fetched.setter_rate, 12.5)

    def test_get_missing_project(self):
        with self.assertRaises(ProjectNotFound):
            self.db.get_project(404)

    def test_update_revenue_touches_only_revenue(self):
        project = self.db.create_project(sample_fields(member_ids="1"))
        self.assertEqual(self.db.update_project_revenue(project.id, 999.5), 1)

        updated = self.db.get_project(project.id)
        self.assertEqual(updated.estimated_revenue, 999.5)
        self.assertEqual(updated.name, project.name)
        self.assertEqual(updated.owner_handle, project.owner_handle)
        self.assertEqual(updated.ticket_info, project.ticket_info)
        self.assertEqual(updated.setter_rate, project.setter_rate)
        self.assertEqual(updated.sales_goal, project.sales_goal)
        self.assertEqual(updated.member_ids, project.member_ids)

        self.assertEqual(self.db.update_project_revenue(project.id + 100, 1.0), 0)

    def test_update_project_overwrites_every_field(self):
        project = self.db.create_project(sample_fields(member_ids="1,2"))
        changes = self.db.update_project(
            project.id, ProjectFields(name="Renamed", member_ids="2")
        )
        self.assertEqual(changes, 1)
        updated = self.db.get_project(project.id)
        self.assertEqual(updated.name, "Renamed")
        self.assertEqual(updated.member_ids, "2")
        self.assertIsNone(updated.owner_handle)
        self.assertIsNone(updated.estimated_revenue)
        self.assertEqual(self.db.update_project(project.id + 1, ProjectFields()), 0)

    def test_delete_project_does_not_cascade(self):
        user = self.db.create_user("Ana", "ana@example.com", "a")
        doomed = self.db.create_project(sample_fields(member_ids=str(user.id)))
        kept = self.db.create_project(sample_fields(member_ids=str(user.id)))

        self.assertEqual(self.db.delete_project(doomed.id), 1)
        self.assertEqual(self.db.delete_project(doomed.id), 0)
        self.assertEqual([p.id for p in self.db.list_projects()], [kept.id])
        self.assertEqual(self.db.list_users(), [user])

    def test_append_member(self):
        project = self.db.create_project(sample_fields(member_ids=None))
        self.assertEqual(self.db.append_member(project.id, 5), 1)
        self.assertEqual(self.db.append_member(project.id, 7), 1)
        self.assertEqual(self.db.get_project(project.id).member_ids, "5,7")
        self.assertEqual(self.db.append_member(project.id + 1, 7), 0)

    def test_append_member_to_empty_string(self):
        project = self.db.create_project(sample_fields(member_ids=""))
        self.db.append_member(project.id, 9)
        self.assertEqual(self.db.get_project(project.id).member_ids, "9")

    def test_list_projects_matching_escapes_wildcards(self):
        self.db.create_project(sample_fields(member_ids="1,2"))
        self.assertEqual(self.db.list_projects_matching("%"), [])
        self.assertEqual(len(self.db.list_projects_matching("2")), 1)

    def test_membership_queries_are_exact(self):
        for index in range(12):
            self.db.create_user(f"User {index}", f"u{index}@example.com", "x")
        only_twelve = self.db.create_project(sample_fields(member_ids="12"))
        manager = MembershipManager(self.db)

        self.assertEqual(manager.find_projects_for_member("1"), [])

        manager.add_member(only_twelve.id, "u0@example.com")
        self.assertEqual(
            [p.id for p in manager.find_projects_for_member("1")], [only_twelve.id]
        )
        self.assertEqual(self.db.get_project(only_twelve.id).member_ids, "12,1")


class SqlConcurrentAppendTests(unittest.TestCase):
    """Two threads race on one project stored in an SQLite file."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "tracker.db")
        self.db = SqlDbClient(f"sqlite+pysqlite:///{path}")
        self.user_a = self.db.create_user("A", "a@example.com", "x")
        self.user_b = self.db.create_user("B", "b@example.com", "y")
        self.project = self.db.create_project(sample_fields(member_ids=""))

    def tearDown(self):
        self.db.close()
        self.tmpdir.cleanup()

    def _race(self, mode):
        manager = MembershipManager(BarrierDb(self.db, parties=2), append_mode=mode)
        errors = run_concurrently(
            lambda: manager.add_member(self.project.id, "a@example.com"),
            lambda: manager.add_member(self.project.id, "b@example.com"),
        )
        self.assertEqual(errors, [])
        return decode(self.db.get_project(self.project.id).member_ids)

    def test_atomic_append_keeps_both_members(self):
        self.assertEqual(
            sorted(self._race(ATOMIC)),
            sorted([str(self.user_a.id), str(self.user_b.id)]),
        )

    def test_read_modify_write_can_lose_an_update(self):
        self.assertEqual(len(self._race(READ_MODIFY_WRITE)), 1)


if __name__ == "__main__":
    unittest.main()
