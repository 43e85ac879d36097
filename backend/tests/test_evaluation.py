"""Grade ladder and promotion rules."""

from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schoolmis.evaluation import (
    EvaluationInputError,
    GradeResult,
    PromotionStatus,
    check_failed_subjects,
    check_score,
    grade_bands,
    grade_for_score,
    promotion_rules,
    promotion_status,
    summarize_scores,
)

GRADE_RANK = ["F9", "D8", "D7", "C6", "C5", "C4", "B3", "B2", "A1"]


class GradeForScoreTestCase(unittest.TestCase):
    def test_lower_edges_are_inclusive(self) -> None:
        for score, grade, remark in [
            (80, "A1", "Excellent"),
            (75, "B2", "Very Good"),
            (70, "B3", "Good"),
            (65, "C4", "Credit"),
            (60, "C5", "Credit"),
            (55, "C6", "Credit"),
            (50, "D7", "Pass"),
            (45, "D8", "Pass"),
            (0, "F9", "Fail"),
        ]:
            with self.subTest(score=score):
                self.assertEqual(GradeResult(grade, remark), grade_for_score(score))

    def test_just_below_each_edge_falls_to_next_band(self) -> None:
        self.assertEqual("B2", grade_for_score(79.99).grade)
        self.assertEqual("D8", grade_for_score(49.99).grade)
        self.assertEqual("F9", grade_for_score(44.99).grade)

    def test_out_of_range_scores_classify_into_nearest_band(self) -> None:
        self.assertEqual("A1", grade_for_score(120).grade)
        self.assertEqual("F9", grade_for_score(-5).grade)

    def test_grades_never_get_worse_as_scores_rise(self) -> None:
        previous = -1
        for tenths in range(0, 1001):
            rank = GRADE_RANK.index(grade_for_score(tenths / 10).grade)
            self.assertGreaterEqual(rank, previous)
            previous = rank

    def test_repeated_calls_agree(self) -> None:
        self.assertEqual(grade_for_score(67.5), grade_for_score(67.5))
        self.assertEqual({"grade": "C4", "remark": "Credit"}, grade_for_score(67.5).to_dict())


class PromotionStatusTestCase(unittest.TestCase):
    def test_documented_cases(self) -> None:
        for average, failed, expected in [
            (50, 2, PromotionStatus.PROMOTED),
            (50, 3, PromotionStatus.CONDITIONAL),
            (40, 3, PromotionStatus.CONDITIONAL),
            (40, 4, PromotionStatus.REPEAT),
            (49, 2, PromotionStatus.CONDITIONAL),
            (39.99, 0, PromotionStatus.REPEAT),
            (95, 0, PromotionStatus.PROMOTED),
        ]:
            with self.subTest(average=average, failed=failed):
                self.assertIs(expected, promotion_status(average, failed))

    def test_status_serialises_as_plain_string(self) -> None:
        self.assertEqual("Promoted", promotion_status(70, 0).value)
        self.assertEqual("Repeat", PromotionStatus("Repeat"))


class SummarizeScoresTestCase(unittest.TestCase):
    def test_summary_counts_failed_subjects(self) -> None:
        summary = summarize_scores([84, 72, 40, 30])

        self.assertEqual(4, summary.subject_count)
        self.assertEqual(226, summary.total_score)
        self.assertEqual(56.5, summary.average_score)
        self.assertEqual(2, summary.failed_subjects)
        self.assertIs(PromotionStatus.PROMOTED, summary.status)

    def test_status_uses_unrounded_average(self) -> None:
        just_under_pass = summarize_scores([50.0, 50.0, 49.99])
        self.assertEqual(50.0, just_under_pass.average_score)
        self.assertIs(PromotionStatus.CONDITIONAL, just_under_pass.status)

        just_under_conditional = summarize_scores([40.0, 40.0, 39.99])
        self.assertEqual(40.0, just_under_conditional.average_score)
        self.assertIs(PromotionStatus.REPEAT, just_under_conditional.status)

    def test_empty_summary_has_no_status(self) -> None:
        summary = summarize_scores([])

        self.assertIsNone(summary.average_score)
        self.assertIsNone(summary.status)
        self.assertIsNone(summary.to_dict()["promotion_status"])


class InputCheckTestCase(unittest.TestCase):
    def test_check_score_accepts_numbers_and_numeric_strings(self) -> None:
        self.assertEqual(0.0, check_score(0))
        self.assertEqual(100.0, check_score("100"))
        self.assertEqual(44.5, check_score(44.5))

    def test_check_score_rejects_out_of_domain_values(self) -> None:
        for value in (-0.01, 100.01, math.nan, math.inf, True, None, "abc", [50]):
            with self.subTest(value=value):
                with self.assertRaises(EvaluationInputError):
                    check_score(value)

    def test_check_failed_subjects(self) -> None:
        self.assertEqual(3, check_failed_subjects(3))
        self.assertEqual(2, check_failed_subjects("2"))
        self.assertEqual(1, check_failed_subjects(1.0))
        for value in (-1, 2.5, "two", None, False):
            with self.subTest(value=value):
                with self.assertRaises(EvaluationInputError):
                    check_failed_subjects(value)


class RuleTablesTestCase(unittest.TestCase):
    def test_grade_bands_end_with_fail(self) -> None:
        bands = grade_bands()
        self.assertEqual(9, len(bands))
        self.assertEqual("A1", bands[0]["grade"])
        self.assertEqual({"min_score": 0.0, "grade": "F9", "remark": "Fail"}, bands[-1])

    def test_promotion_rules_in_precedence_order(self) -> None:
        statuses = [rule["status"] for rule in promotion_rules()]
        self.assertEqual(["Promoted", "Conditional", "Repeat"], statuses)


if __name__ == "__main__":
    unittest.main()
