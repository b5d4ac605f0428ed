from unittest.mock import patch

import pytest

from storage_hygiene.common.exceptions import ConcurrencyConflictError, ValidationError
from storage_hygiene.common.retry_utils import retry_on_conflict


class TestRetryOnConflict:
    @patch("storage_hygiene.common.retry_utils.time.sleep")
    def test_succeeds_after_conflicts(self, mock_sleep):
        calls = []

        @retry_on_conflict(max_attempts=3, delay_secs=0.5)
        def update():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrencyConflictError("version mismatch")
            return "ok"

        assert update() == "ok"
        assert len(calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]

    @patch("storage_hygiene.common.retry_utils.time.sleep")
    def test_gives_up_with_none(self, mock_sleep):
        calls = []

        @retry_on_conflict(max_attempts=2)
        def update():
            calls.append(1)
            raise ConcurrencyConflictError("version mismatch")

        assert update() is None
        assert len(calls) == 2
        assert mock_sleep.call_count == 1

    def test_other_errors_propagate(self):
        @retry_on_conflict()
        def update():
            raise ValidationError("bad")

        with pytest.raises(ValidationError):
            update()

    def test_keeps_function_name(self):
        @retry_on_conflict()
        def update_status():
            return 1

        assert update_status.__name__ == "update_status"
