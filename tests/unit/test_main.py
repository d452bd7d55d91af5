"""Unit tests for main.py module."""

import pytest
from pytest_mock import MockerFixture, MockType

import main
from contendo.core.config import Settings


@pytest.fixture
def mock_main_dependencies(
    mocker: MockerFixture, test_settings: Settings
) -> dict[str, MockType]:
    """Patch everything main() touches outside the module."""
    manager_cls = mocker.patch("main.LifecycleManager")
    manager_cls.return_value.run = mocker.Mock(return_value="run-coroutine")
    return {
        "get_settings": mocker.patch("main.get_settings", return_value=test_settings),
        "setup_logging": mocker.patch("main.setup_logging"),
        "LifecycleManager": manager_cls,
        "asyncio_run": mocker.patch("main.asyncio.run", return_value=0),
        "logger_info": mocker.patch("main.logger.info"),
    }


@pytest.mark.unit
class TestMainFunction:
    """Test class for main() function."""

    def test_main_loads_settings_and_sets_up_logging(
        self,
        mock_main_dependencies: dict[str, MockType],
        test_settings: Settings,
    ) -> None:
        """Verify that main() loads settings and initializes logging first."""
        with pytest.raises(SystemExit):
            main.main()

        mock_main_dependencies["get_settings"].assert_called_once()
        mock_main_dependencies["setup_logging"].assert_called_once_with(test_settings)

    def test_main_runs_lifecycle_manager(
        self, mock_main_dependencies: dict[str, MockType], test_settings: Settings
    ) -> None:
        """Verify the manager runs and its result becomes the exit code."""
        # Arrange
        mock_main_dependencies["asyncio_run"].return_value = 1

        # Act
        with pytest.raises(SystemExit) as exc_info:
            main.main()

        # Assert
        manager_cls = mock_main_dependencies["LifecycleManager"]
        manager_cls.assert_called_once_with(test_settings)
        mock_main_dependencies["asyncio_run"].assert_called_once_with("run-coroutine")
        assert exc_info.value.code == 1

    def test_main_logs_startup_banner(
        self, mock_main_dependencies: dict[str, MockType], test_settings: Settings
    ) -> None:
        """Verify the startup banner names host, port and mode."""
        with pytest.raises(SystemExit):
            main.main()

        mock_main_dependencies["logger_info"].assert_called_once_with(
            "Starting Contendo Business Management Platform on http://{}:{} ({} mode)",
            test_settings.api_host,
            test_settings.port,
            test_settings.environment,
        )
