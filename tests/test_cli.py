import pytest
from typer.testing import CliRunner

from conftest import SAMPLE_AUDIO_DURATION, SAMPLE_LRC, FakeImageGenerator
from lyricmv import __version__
from lyricmv.cli import _collaborators, app
from lyricmv.config import config
from lyricmv.pipeline import Collaborators, MVPipeline, ProjectStore

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "workspace", tmp_path)
    return tmp_path


@pytest.fixture
def project(workspace, audio_file):
    mv = MVPipeline.create(
        ProjectStore(),
        Collaborators(image_generator=FakeImageGenerator()),
        project_id="cli-demo",
    )
    mv.run_until_image_confirmation(
        lrc_content=SAMPLE_LRC,
        audio_path=audio_file,
        audio_duration=SAMPLE_AUDIO_DURATION,
    )
    return mv


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_status_of_unknown_project(workspace):
    result = runner.invoke(app, ["status", "nope"])

    assert result.exit_code == 1
    assert "Project not found" in result.output


def test_status(project):
    result = runner.invoke(app, ["status", "cli-demo"])

    assert result.exit_code == 0
    assert "awaiting_image_confirm (60%)" in result.output
    assert "Images: 0 confirmed, 10 pending" in result.output


def test_images_lists_every_segment(project):
    result = runner.invoke(app, ["images", "cli-demo"])

    assert result.exit_code == 0
    assert "[001]" in result.output
    assert "[010]" in result.output


def test_confirm_images(project):
    result = runner.invoke(app, ["confirm-images", "cli-demo", "3"])
    assert result.exit_code == 0
    assert "1 confirmed, 9 pending" in result.output

    result = runner.invoke(app, ["confirm-images", "cli-demo", "--all"])
    assert result.exit_code == 0
    assert "10 confirmed, 0 pending" in result.output
    assert ProjectStore().load("cli-demo").data.image_confirmation.is_complete


def test_confirm_images_needs_a_target(project):
    result = runner.invoke(app, ["confirm-images", "cli-demo"])
    assert result.exit_code == 1


def test_confirming_an_unknown_index_fails_cleanly(project):
    result = runner.invoke(app, ["confirm-images", "cli-demo", "99"])

    assert result.exit_code == 1
    assert "no generated artifact" in result.output


def test_storyboard_is_skipped_without_an_api_key(monkeypatch, capsys):
    monkeypatch.setattr(config, "anthropic_api_key", "")

    collaborators = _collaborators(storyboard=True)

    assert collaborators.storyboarder is None
    assert "ANTHROPIC_API_KEY not set" in capsys.readouterr().out


def test_storyboard_agent_is_built_with_an_api_key(monkeypatch):
    monkeypatch.setattr(config, "anthropic_api_key", "test-key")

    assert _collaborators(storyboard=True).storyboarder is not None


def test_video_commands_need_the_veo_configuration(project, monkeypatch):
    monkeypatch.setattr(config, "veo_output_bucket", "")

    result = runner.invoke(app, ["videos", "cli-demo"])

    assert result.exit_code == 1
    assert "VEO_OUTPUT_BUCKET" in result.output
