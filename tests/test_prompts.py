import pytest

from src.relay.domain.errors import InvalidRequestError, PromptError, UnknownArtifactError
from src.relay.domain.generation_models import ArtifactType, Turn, UserAnswers
from src.relay.services import prompts


def test_parse_artifact_accepts_the_four_names():
    assert [prompts.parse_artifact(n) for n in ("blueprint", "architecture", "guide", "tasks")] == list(ArtifactType)


@pytest.mark.parametrize("name", ["bogus", "", "Blueprint", "task"])
def test_parse_artifact_rejects_unknown_names(name):
    with pytest.raises(UnknownArtifactError) as excinfo:
        prompts.parse_artifact(name)
    assert isinstance(excinfo.value, InvalidRequestError)
    assert str(excinfo.value) == f"Unknown artifact type: {name}"


def test_model_config_for_long_and_narrative_documents():
    blueprint = prompts.model_config_for(ArtifactType.BLUEPRINT)
    tasks = prompts.model_config_for(ArtifactType.TASKS)
    guide = prompts.model_config_for(ArtifactType.GUIDE)
    assert blueprint == tasks
    assert (blueprint.temperature, blueprint.max_output_tokens) == (0.6, 64000)
    assert (guide.temperature, guide.max_output_tokens) == (0.7, 16384)
    assert guide.top_k == 40 and guide.top_p == 0.95


def test_blueprint_embeds_answers_and_date():
    answers = UserAnswers(project_name="TaskPilot", core_features="Boards")
    text = prompts.blueprint_prompt(answers, today="2025-01-02T00:00:00Z")
    assert "today's date of 2025-01-02T00:00:00Z" in text
    assert "- Project Name: TaskPilot" in text
    assert "- Core Features: Boards" in text
    assert "# TaskPilot Technical Blueprint" in text
    assert "- Project Overview: No overview provided" in text


def test_blueprint_falls_back_for_empty_answers():
    text = prompts.blueprint_prompt(UserAnswers())
    assert "- Project Name: Unnamed Project" in text
    assert "# Project Technical Blueprint" in text
    assert "- Additional Requirements: None provided" in text


def test_follow_up_prompts_only_restate_project_name():
    answers = UserAnswers(project_name="TaskPilot", project_overview="secret overview")
    arch = prompts.architecture_prompt(answers)
    guide = prompts.guide_prompt(answers)
    assert "# TaskPilot File/Folder Architecture" in arch
    assert "# TaskPilot Implementation Guide" in guide
    assert "secret overview" not in arch + guide


def test_tasks_prompt_demands_raw_json():
    text = prompts.tasks_prompt(UserAnswers(project_name="TaskPilot"))
    assert '"tasks": [' in text
    assert "ONLY the raw JSON" in text


def test_user_answers_accept_camel_case_payload():
    answers = UserAnswers.model_validate({"projectName": "X", "uiUx": "dark mode"})
    assert answers.project_name == "X"
    assert answers.ui_ux == "dark mode"
    assert answers.model_dump(by_alias=True)["techArchitecture"] == ""


def test_build_contents_appends_prompt_after_history():
    history = [Turn("user", "first prompt"), Turn("model", "blueprint text")]
    contents = prompts.build_contents(ArtifactType.ARCHITECTURE, UserAnswers(project_name="P"), history)
    assert contents[:2] == history
    assert contents[2].role == "user"
    assert "# P File/Folder Architecture" in contents[2].text
    assert len(history) == 2


def test_render_prompt_rejects_blank_template(monkeypatch):
    monkeypatch.setitem(prompts.PROMPT_TEMPLATES, ArtifactType.GUIDE, lambda answers, today=None: "  ")
    with pytest.raises(PromptError):
        prompts.render_prompt(ArtifactType.GUIDE, UserAnswers())
