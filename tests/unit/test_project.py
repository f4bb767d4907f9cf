"""Unit tests for the project model and its lifecycle"""

import pytest

from autodocops.exceptions import InvalidTransitionError, ValidationError
from autodocops.models.project import (
    ConnectionConfig,
    DocumentationConfig,
    Language,
    Project,
    ProjectStatus,
    ProjectType,
    can_transition,
    validate_version,
)


def _project(**overrides) -> Project:
    return Project(name="Shop API", type=ProjectType.API, created_by="ana", **overrides)


class TestVersion:
    """Test strict x.y.z version validation"""

    @pytest.mark.parametrize("version", ["1.0.0", "2.1.3", "10.20.30"])
    def test_valid_versions(self, version):
        assert validate_version(version) == version

    @pytest.mark.parametrize("version", ["1.0", "v1.0.0", "", "1.0.0-beta", "1.0.0.0", " 1.0.0"])
    def test_invalid_versions(self, version):
        with pytest.raises(ValidationError):
            validate_version(version)

    def test_update_version_stamps_user(self):
        project = _project()
        project.update_version("2.0.1", updated_by="luis")

        assert project.version == "2.0.1"
        assert project.updated_by == "luis"

    def test_update_version_rejects_invalid(self):
        project = _project()
        with pytest.raises(ValidationError):
            project.update_version("2.0")
        assert project.version == "1.0.0"


class TestLifecycle:
    """Test project state transitions"""

    def test_new_project_is_created(self):
        project = _project()

        assert project.status == ProjectStatus.CREATED
        assert project.updated_by == "ana"
        assert project.last_analyzed_at is None

    def test_created_cannot_start_analysis(self):
        project = _project()

        with pytest.raises(InvalidTransitionError) as exc_info:
            project.begin_analysis()

        assert exc_info.value.kind == "invalid_transition"
        assert project.status == ProjectStatus.CREATED

    def test_happy_path(self):
        project = _project()
        project.mark_configured("ana")
        project.begin_analysis("ana")
        project.mark_analyzed("ana")
        project.mark_documentation_generated("ana")

        assert project.status == ProjectStatus.DOCUMENTATION_GENERATED
        assert project.last_analyzed_at is not None

    def test_error_recovery_path(self):
        """analyzing -> error -> configured -> analyzing is allowed"""
        project = _project()
        project.mark_configured()
        project.begin_analysis()
        project.mark_error()
        project.mark_configured()
        project.begin_analysis()

        assert project.status == ProjectStatus.ANALYZING

    def test_every_transition_stamps_updated_fields(self):
        project = _project()
        before = project.updated_at

        project.mark_configured(updated_by="luis")

        assert project.updated_by == "luis"
        assert project.updated_at >= before

    def test_mark_analyzed_requires_analyzing(self):
        project = _project()
        project.mark_configured()

        with pytest.raises(InvalidTransitionError):
            project.mark_analyzed()

    def test_no_operation_returns_to_created(self):
        for status in ProjectStatus:
            assert not can_transition(status, ProjectStatus.CREATED)

    def test_error_reachable_from_every_state(self):
        for status in ProjectStatus:
            assert can_transition(status, ProjectStatus.ERROR)

    def test_pause_and_resume_restore_previous_state(self):
        project = _project()
        project.mark_configured()
        project.begin_analysis()
        project.mark_analyzed()

        project.pause("ana")
        assert project.status == ProjectStatus.PAUSED
        assert project.paused_from == ProjectStatus.ANALYZED

        project.resume("ana")
        assert project.status == ProjectStatus.ANALYZED
        assert project.paused_from is None

    def test_cannot_pause_twice(self):
        project = _project()
        project.pause()

        with pytest.raises(InvalidTransitionError):
            project.pause()

    def test_resume_requires_paused(self):
        project = _project()

        with pytest.raises(InvalidTransitionError):
            project.resume()

    def test_paused_project_can_be_reconfigured(self):
        project = _project()
        project.pause()
        project.mark_configured()

        assert project.status == ProjectStatus.CONFIGURED
        assert project.paused_from is None


class TestProjectFields:
    """Test project field validation and basic info updates"""

    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            Project(name="   ", type=ProjectType.DATABASE)

    def test_invalid_version_rejected_at_construction(self):
        with pytest.raises(ValueError):
            _project(version="v1")

    def test_update_basic_info(self):
        project = _project()
        project.update_basic_info("Shop API v2", "Public storefront API", updated_by="luis")

        assert project.name == "Shop API v2"
        assert project.description == "Public storefront API"
        assert project.updated_by == "luis"

    def test_update_basic_info_rejects_blank_name(self):
        project = _project()

        with pytest.raises(ValidationError):
            project.update_basic_info("", "desc")
        assert project.name == "Shop API"

    def test_default_language_is_spanish(self):
        assert _project().preferred_language == Language.SPANISH

    def test_access_token_excluded_from_dump(self):
        project = _project(
            connection_config=ConnectionConfig.for_git_repository(
                "https://git.example.com/shop.git", access_token="secret-token", branch="main"
            )
        )

        dumped = project.model_dump_json()

        assert "secret-token" not in dumped
        assert project.connection_config.access_token == "secret-token"
        assert project.connection_config.branch == "main"

    def test_sql_server_connection(self):
        connection = ConnectionConfig.for_sql_server(
            "db.example.com", "Shop", username="reader", password="pw"
        )

        assert "db.example.com" in connection.connection_string
        assert connection.authentication_type == "sql"
        assert connection.username == "reader"


class TestDocumentationPresets:
    """Test documentation configuration presets"""

    def test_full_enables_everything(self):
        config = DocumentationConfig.full()

        assert config.generate_openapi
        assert config.generate_csharp_sdk
        assert config.generate_data_dictionary

    def test_basic_disables_sdks(self):
        config = DocumentationConfig.basic()

        assert config.generate_openapi
        assert config.generate_usage_guides
        assert not config.generate_typescript_sdk
        assert not config.generate_csharp_sdk
        assert not config.generate_postman_collection

    def test_api_only_disables_database_artifacts(self):
        config = DocumentationConfig.api_only()

        assert not config.generate_schema_documentation
        assert not config.generate_er_diagrams
        assert config.generate_postman_collection

    def test_database_only_disables_api_artifacts(self):
        config = DocumentationConfig.database_only()

        assert not config.generate_openapi
        assert not config.generate_usage_guides
        assert config.generate_data_dictionary
