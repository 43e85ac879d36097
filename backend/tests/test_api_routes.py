"""Route behaviour against an in-memory store."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fakes import FakeStore, assessment
from flask import session
from pymongo.errors import ServerSelectionTimeoutError

from schoolmis import create_app
from schoolmis.config import Settings
from schoolmis.routes import students as student_routes

STUDENTS = [
    {"_id": "STU001", "full_name": "Ama Mensah", "gender": "Female", "class_name": "SHS2A", "programme": "Science"},
    {"_id": "STU002", "full_name": "Kwame Asante", "gender": "Male", "class_name": "SHS2A", "programme": "Science"},
    {"_id": "STU003", "full_name": "Abena Owusu", "gender": "Female", "class_name": "SHS2B", "programme": "Arts"},
]

ASSESSMENTS = [
    assessment("STU001", "Core Mathematics", 84),
    assessment("STU001", "English Language", 72),
    assessment("STU001", "Integrated Science", 40),
    assessment("STU002", "Core Mathematics", 40),
    assessment("STU002", "English Language", 51),
    assessment("STU002", "Integrated Science", 30),
    assessment("STU003", "Government", 66, class_name="SHS2B"),
    assessment("STU003", "Government", 90, class_name="SHS2B", term="Second Term"),
]


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FakeStore(STUDENTS, ASSESSMENTS)
        self.app = create_app(Settings(), store=self.store)
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def login(self) -> None:
        response = self.client.post(
            "/api/login", json={"username": "admin", "password": "admin"}
        )
        self.assertEqual(200, response.status_code)


class SystemRoutesTestCase(ApiTestCase):
    def test_health(self) -> None:
        for path in ("/health", "/api/health"):
            with self.subTest(path=path):
                payload = self.client.get(path).get_json()
                self.assertTrue(payload["ok"])
                self.assertEqual("healthy", payload["status"])

    def test_system_config_exposes_rules(self) -> None:
        payload = self.client.get("/api/system/config").get_json()

        self.assertEqual(["First Term", "Second Term", "Third Term"], payload["terms"])
        self.assertEqual("A1", payload["grade_bands"][0]["grade"])
        self.assertEqual("Promoted", payload["promotion_rules"][0]["status"])

    def test_unknown_route_is_json(self) -> None:
        response = self.client.get("/api/nope")
        self.assertEqual(404, response.status_code)
        self.assertIn("error", response.get_json())


class StudentRoutesTestCase(ApiTestCase):
    def test_list_is_paged(self) -> None:
        payload = self.client.get("/api/students?page_size=2").get_json()

        self.assertEqual(3, payload["total"])
        self.assertEqual(2, len(payload["items"]))
        self.assertTrue(payload["has_next"])

    def test_invalid_sort_is_rejected(self) -> None:
        response = self.client.get("/api/students?sort=age")
        self.assertEqual(400, response.status_code)

    def test_by_class_and_programme(self) -> None:
        by_class = self.client.get("/api/students/class/SHS2A").get_json()
        by_programme = self.client.get("/api/students/programme/Arts").get_json()

        self.assertEqual({"STU001", "STU002"}, {row["_id"] for row in by_class})
        self.assertEqual(["STU003"], [row["_id"] for row in by_programme])

    def test_search_requires_query(self) -> None:
        self.assertEqual(400, self.client.get("/api/students/search").status_code)
        rows = self.client.get("/api/students/search?q=kwame").get_json()
        self.assertEqual(["STU002"], [row["_id"] for row in rows])

    def test_get_missing_student(self) -> None:
        self.assertEqual(404, self.client.get("/api/students/NOPE").status_code)

    def test_create_update_delete(self) -> None:
        self.login()
        created = self.client.post(
            "/api/students",
            json={
                "_id": "STU010",
                "full_name": "Esi Boateng",
                "gender": "Female",
                "class_name": "SHS1C",
                "programme": "Business",
            },
        )
        self.assertEqual(201, created.status_code)

        updated = self.client.put("/api/students/STU010", json={"class_name": "SHS2C"})
        self.assertEqual(200, updated.status_code)
        self.assertEqual(
            "SHS2C", self.client.get("/api/students/STU010").get_json()["class_name"]
        )

        renamed = self.client.put("/api/students/STU010", json={"_id": "STU011"})
        self.assertEqual(400, renamed.status_code)

        deleted = self.client.delete("/api/students/STU001")
        self.assertEqual(200, deleted.status_code)
        self.assertEqual(3, deleted.get_json()["assessments_deleted"])

    def test_failed_assessment_cleanup_keeps_student(self) -> None:
        def _fail_delete_many(query):
            raise ServerSelectionTimeoutError("no servers")

        self.store.assessments.delete_many = _fail_delete_many
        self.login()

        response = self.client.delete("/api/students/STU001")

        self.assertEqual(503, response.status_code)
        self.assertEqual(200, self.client.get("/api/students/STU001").status_code)
        self.assertEqual(
            3, self.store.assessments.count_documents({"student_id": "STU001"})
        )

    def test_update_and_delete_trim_student_id(self) -> None:
        with self.app.test_request_context(
            "/api/students/x", method="PUT", json={"class_name": "SHS3A"}
        ):
            session["is_admin"] = True
            updated = student_routes.update_student(" STU002 ")
        self.assertEqual(200, updated.status_code)
        self.assertEqual(
            "SHS3A", self.store.students.find_one({"_id": "STU002"})["class_name"]
        )

        with self.app.test_request_context("/api/students/x", method="DELETE"):
            session["is_admin"] = True
            deleted = student_routes.delete_student(" STU003 ")
        self.assertEqual(200, deleted.status_code)
        self.assertEqual(2, deleted.get_json()["assessments_deleted"])
        self.assertIsNone(self.store.students.find_one({"_id": "STU003"}))

    def test_database_outage_returns_503(self) -> None:
        def _unavailable():
            raise ServerSelectionTimeoutError("no servers")

        self.store.get_students_collection = _unavailable
        response = self.client.get("/api/students")

        self.assertEqual(503, response.status_code)
        self.assertEqual(
            "Database unavailable. Please try again later.", response.get_json()["error"]
        )


class AssessmentRoutesTestCase(ApiTestCase):
    def test_grade_lookup(self) -> None:
        payload = self.client.get("/api/assessments/grade?score=79.99").get_json()
        self.assertEqual({"score": 79.99, "grade": "B2", "remark": "Very Good"}, payload)

        response = self.client.get("/api/assessments/grade?score=101")
        self.assertEqual(400, response.status_code)

    def test_direct_promotion(self) -> None:
        for average, failed, expected in [
            (50, 2, "Promoted"),
            (50, 3, "Conditional"),
            (40, 4, "Repeat"),
        ]:
            with self.subTest(average=average, failed=failed):
                payload = self.client.post(
                    "/api/assessments/promotion",
                    json={"average_score": average, "failed_subjects": failed},
                ).get_json()
                self.assertEqual(expected, payload["promotion_status"])

    def test_promotion_rejects_negative_failures(self) -> None:
        response = self.client.post(
            "/api/assessments/promotion",
            json={"average_score": 60, "failed_subjects": -1},
        )
        self.assertEqual(400, response.status_code)
        self.assertIn("failed_subjects", response.get_json()["details"])

    def test_promotion_from_stored_assessments(self) -> None:
        payload = self.client.post(
            "/api/assessments/promotion",
            json={"student_id": "STU002", "term": "First Term", "academic_year": "2025/2026"},
        ).get_json()

        self.assertEqual(40.33, payload["average_score"])
        self.assertEqual(2, payload["failed_subjects"])
        self.assertEqual("Conditional", payload["promotion_status"])

    def test_create_computes_grade(self) -> None:
        self.login()
        response = self.client.post(
            "/api/assessments",
            json={
                "student_id": "STU003",
                "subject": "Economics",
                "class_name": "SHS2B",
                "term": "first",
                "academic_year": "2025-2026",
                "class_score": 24,
                "exam_score": 51,
            },
        )

        self.assertEqual(201, response.status_code)
        created = response.get_json()["assessment"]
        self.assertEqual(75.0, created["total_score"])
        self.assertEqual("B2", created["grade"])
        self.assertEqual("First Term", created["term"])
        self.assertEqual("2025/2026", created["academic_year"])

    def test_create_for_unknown_student(self) -> None:
        self.login()
        response = self.client.post(
            "/api/assessments",
            json={
                "student_id": "NOPE",
                "subject": "Economics",
                "class_name": "SHS2B",
                "term": "First Term",
                "academic_year": "2025/2026",
                "class_score": 24,
                "exam_score": 51,
            },
        )
        self.assertEqual(404, response.status_code)

    def test_update_regrades(self) -> None:
        self.login()
        target = str(ASSESSMENTS[2]["_id"])

        response = self.client.put(f"/api/assessments/{target}", json={"exam_score": 50})

        self.assertEqual(200, response.status_code)
        updated = response.get_json()["assessment"]
        self.assertEqual(50.0, updated["total_score"])
        self.assertEqual("D7", updated["grade"])

    def test_class_listing_uses_path_year(self) -> None:
        rows = self.client.get("/api/assessments/class/SHS2B/first/2025/2026").get_json()
        self.assertEqual(1, len(rows))
        self.assertEqual("C4", rows[0]["grade"])

        bad = self.client.get("/api/assessments/class/SHS2B/fifth/2025/2026")
        self.assertEqual(400, bad.status_code)

    def test_class_average_shapes_aggregate(self) -> None:
        self.store.assessments.aggregate.return_value = [
            {
                "overall": [{"_id": None, "count": 6, "average": 52.8333, "students": ["STU001", "STU002"]}],
                "subjects": [
                    {"_id": "Core Mathematics", "count": 2, "average": 62.0, "highest": 84, "lowest": 40},
                ],
            }
        ]

        payload = self.client.get("/api/assessments/average/SHS2A/first/2025-2026").get_json()

        self.assertEqual(52.83, payload["average_score"])
        self.assertEqual("D7", payload["grade"])
        self.assertEqual(2, payload["student_count"])
        self.assertEqual("C5", payload["subjects"][0]["grade"])


class ReportRoutesTestCase(ApiTestCase):
    def test_class_report_ranks_students(self) -> None:
        payload = self.client.get("/api/reports/class/SHS2A/first/2025/2026").get_json()

        self.assertEqual(2, payload["student_count"])
        first, second = payload["students"]
        self.assertEqual(("STU001", 1, "Promoted"), (first["student_id"], first["position"], first["promotion_status"]))
        self.assertEqual(("STU002", 2, "Conditional"), (second["student_id"], second["position"], second["promotion_status"]))
        self.assertEqual({"Promoted": 1, "Conditional": 1, "Repeat": 0}, payload["promotion_summary"])

    def test_student_report(self) -> None:
        payload = self.client.get("/api/reports/student/STU001/first/2025/2026").get_json()

        self.assertEqual("Ama Mensah", payload["student"]["full_name"])
        self.assertEqual(
            ["Core Mathematics", "English Language", "Integrated Science"],
            [row["subject"] for row in payload["subjects"]],
        )
        self.assertEqual(65.33, payload["summary"]["average_score"])
        self.assertEqual(1, payload["summary"]["failed_subjects"])

    def test_report_card_includes_position(self) -> None:
        payload = self.client.get("/api/reports/generate/STU002/first/2025/2026").get_json()

        self.assertEqual(2, payload["position"])
        self.assertEqual(2, payload["class_size"])
        self.assertEqual("SHS2A", payload["class_name"])

    def test_report_card_without_assessments(self) -> None:
        response = self.client.get("/api/reports/generate/STU003/third/2025/2026")
        self.assertEqual(404, response.status_code)

    def test_headmaster_report(self) -> None:
        payload = self.client.get("/api/reports/headmaster/first/2025/2026").get_json()

        self.assertEqual(3, payload["student_count"])
        self.assertEqual(7, payload["assessment_count"])
        distribution = {row["grade"]: row["count"] for row in payload["grade_distribution"]}
        self.assertEqual(3, distribution["F9"])
        self.assertEqual(["SHS2A", "SHS2B"], [row["class_name"] for row in payload["classes"]])
        self.assertEqual("STU003", payload["top_students"][0]["student_id"])

    def test_promotion_report(self) -> None:
        payload = self.client.get("/api/reports/promotion/1/2025-2026").get_json()

        self.assertEqual({"Promoted": 2, "Conditional": 1, "Repeat": 0}, payload["summary"])

    def test_export_is_csv(self) -> None:
        response = self.client.get("/api/reports/export/SHS2A/first/2025/2026")

        self.assertEqual(200, response.status_code)
        self.assertTrue(response.mimetype.startswith("text/csv"))
        lines = response.get_data(as_text=True).splitlines()
        self.assertTrue(lines[0].startswith("position,student_id"))
        self.assertEqual(3, len(lines))
        self.assertIn("attachment;", response.headers["Content-Disposition"])


if __name__ == "__main__":
    unittest.main()
