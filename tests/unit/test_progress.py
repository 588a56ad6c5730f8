from __future__ import annotations

from unittest.mock import MagicMock, patch

from bulk_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_follows_stdout():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_non_tty_tracker_counts_without_tqdm():
    with patch("bulk_import.services.progress.is_tty_enabled", return_value=False), \
         patch("bulk_import.services.progress.tqdm") as mock_tqdm:
        with ProgressTracker(3) as tracker:
            tracker.batch_settled(success=True)
            tracker.batch_settled(success=False)
        mock_tqdm.assert_not_called()
        assert tracker.pbar is None
        assert tracker.settled == 2
        assert tracker.failed == 1


def test_tty_tracker_updates_bar():
    bar = MagicMock()
    with patch("bulk_import.services.progress.is_tty_enabled", return_value=True), \
         patch("bulk_import.services.progress.tqdm", return_value=bar) as mock_tqdm:
        tracker = ProgressTracker(2, description="Submitting")
        tracker.batch_settled(success=False)
        tracker.close()

    kwargs = mock_tqdm.call_args.kwargs
    assert kwargs["total"] == 2
    assert kwargs["unit"] == "batch"
    bar.update.assert_called_once_with(1)
    bar.set_postfix.assert_called_once_with(failed=1)
    bar.close.assert_called_once()
    assert tracker.pbar is None
