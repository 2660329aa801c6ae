import unittest
from unittest.mock import MagicMock

from eventboard.errors import PrimaryStoreError
from eventboard.pipeline import Step, StepPolicy, StepStatus, run_pipeline


def _boom(exc):
    def action():
        raise exc

    return action


class RunPipelineTests(unittest.TestCase):
    def test_all_steps_succeed_in_order(self):
        calls = []
        result = run_pipeline(
            [
                Step("a", StepPolicy.CRITICAL, lambda: calls.append("a") or 1),
                Step("b", StepPolicy.BEST_EFFORT, lambda: calls.append("b") or 2),
            ]
        )
        self.assertTrue(result.success)
        self.assertEqual(calls, ["a", "b"])
        self.assertEqual(result.value("a"), 1)
        self.assertEqual(result.value("b"), 2)

    def test_best_effort_failure_is_recorded_and_run_continues(self):
        later = MagicMock(return_value="ok")
        result = run_pipeline(
            [
                Step("primary", StepPolicy.CRITICAL, lambda: 1),
                Step("backup", StepPolicy.BEST_EFFORT, _boom(RuntimeError("down"))),
                Step("cache", StepPolicy.BEST_EFFORT, later),
            ]
        )
        self.assertTrue(result.success)
        self.assertEqual(result.outcome("backup").status, StepStatus.FAILED)
        self.assertEqual(str(result.outcome("backup").error), "down")
        later.assert_called_once()
        self.assertEqual(result.outcome("cache").status, StepStatus.SUCCEEDED)

    def test_critical_failure_skips_remaining_steps(self):
        later = MagicMock()
        result = run_pipeline(
            [
                Step("primary", StepPolicy.CRITICAL, _boom(PrimaryStoreError("nope"))),
                Step("backup", StepPolicy.BEST_EFFORT, later),
            ]
        )
        self.assertFalse(result.success)
        later.assert_not_called()
        self.assertEqual(result.outcome("backup").status, StepStatus.SKIPPED)
        self.assertEqual(result.critical_failure.name, "primary")
        with self.assertRaises(PrimaryStoreError):
            result.raise_for_failure()

    def test_disabled_step_is_skipped(self):
        action = MagicMock()
        result = run_pipeline(
            [
                Step("drive", StepPolicy.BEST_EFFORT, action, enabled=False),
                Step("lazy", StepPolicy.BEST_EFFORT, action, enabled=lambda: False),
            ]
        )
        action.assert_not_called()
        self.assertEqual(
            [step.status for step in result.steps],
            [StepStatus.SKIPPED, StepStatus.SKIPPED],
        )
        self.assertTrue(result.success)

    def test_failing_enabled_check_fails_only_its_step(self):
        action = MagicMock()
        later = MagicMock(return_value="ok")
        result = run_pipeline(
            [
                Step("primary", StepPolicy.CRITICAL, lambda: 1),
                Step(
                    "drive",
                    StepPolicy.BEST_EFFORT,
                    action,
                    enabled=_boom(ConnectionError("token store down")),
                ),
                Step("cache", StepPolicy.BEST_EFFORT, later),
            ]
        )
        self.assertTrue(result.success)
        action.assert_not_called()
        self.assertEqual(result.outcome("drive").status, StepStatus.FAILED)
        self.assertEqual(str(result.outcome("drive").error), "token store down")
        self.assertEqual(result.outcome("cache").status, StepStatus.SUCCEEDED)

    def test_failing_enabled_check_on_critical_step_aborts(self):
        later = MagicMock()
        result = run_pipeline(
            [
                Step("primary", StepPolicy.CRITICAL, MagicMock(), enabled=_boom(RuntimeError("x"))),
                Step("backup", StepPolicy.BEST_EFFORT, later),
            ]
        )
        self.assertFalse(result.success)
        later.assert_not_called()
        self.assertEqual(result.outcome("backup").status, StepStatus.SKIPPED)

    def test_as_dict_is_json_friendly(self):
        result = run_pipeline(
            [Step("backup", StepPolicy.BEST_EFFORT, _boom(ValueError("bad")))]
        )
        self.assertEqual(
            result.as_dict(),
            [
                {
                    "name": "backup",
                    "policy": "best_effort",
                    "status": "failed",
                    "error": "bad",
                }
            ],
        )


if __name__ == "__main__":
    unittest.main()
