import re

import pytest

from conftest import make_lyric
from lyricmv.agents import StoryboardAgent
from lyricmv.agents.storyboard import BATCH_SIZE, ETHNICITY_BY_LANGUAGE, STYLE_SAMPLE_SIZE
from lyricmv.exceptions import GenerationError


class FakeClaude:
    """Answers every request with one storyboard entry per lyric in the prompt."""

    def __init__(self, reply=None):
        self.prompts = []
        self.systems = []
        self.reply = reply

    def create_json_message(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.systems.append(kwargs.get("system"))
        if self.reply is not None:
            return self.reply

        count = int(re.search(r"LYRIC COUNT: (\d+)", prompt).group(1))
        return {
            "global_style": {"aesthetic": "film grain", "color_tone": "warm", "quality": "8k"},
            "character_description": "woman in a red coat",
            "storyboard": [
                {
                    "index": i,
                    "lyric": f"line {i}",
                    "scene_type": "character" if i % 2 else "landscape",
                    "prompt": f"shot {i}",
                    "has_character": bool(i % 2),
                }
                for i in range(1, count + 1)
            ],
        }


def lyrics(count):
    return [make_lyric(i, (i - 1) * 3.0, i * 3.0) for i in range(1, count + 1)]


def test_short_song_is_one_request():
    client = FakeClaude()
    agent = StoryboardAgent(client=client, batch_delay=0)

    storyboard = agent.generate(lyrics(8), "english")

    assert len(client.prompts) == 1
    assert [scene.index for scene in storyboard.scenes] == list(range(1, 9))
    assert storyboard.character_description == "woman in a red coat"
    assert storyboard.global_style["ethnicity"] == ETHNICITY_BY_LANGUAGE["english"]
    assert client.systems[0] == agent.system_prompt


def test_long_song_is_batched_without_gaps():
    client = FakeClaude()
    agent = StoryboardAgent(client=client, batch_delay=0)

    storyboard = agent.generate(lyrics(30), "english")

    counts = [int(re.search(r"LYRIC COUNT: (\d+)", p).group(1)) for p in client.prompts]
    assert counts == [STYLE_SAMPLE_SIZE, BATCH_SIZE, 30 - STYLE_SAMPLE_SIZE - BATCH_SIZE]
    assert [scene.index for scene in storyboard.scenes] == list(range(1, 31))
    assert "Established global style" in client.prompts[1]
    assert "woman in a red coat" in client.prompts[1]
    assert "Established global style" not in client.prompts[0]


def test_character_prompts_get_the_face_description():
    client = FakeClaude()
    storyboard = StoryboardAgent(client=client, batch_delay=0).generate(lyrics(2), "chinese")

    character, empty = storyboard.scenes
    assert character.prompt.startswith(ETHNICITY_BY_LANGUAGE["chinese"])
    assert empty.prompt == "shot 2"
    assert "CHARACTER FACE: Chinese Asian face" in client.prompts[0]


def test_camel_case_keys_are_accepted():
    reply = {
        "globalStyle": {"aesthetic": "pastel"},
        "characterDescription": "boy with headphones",
        "storyboard": [{"index": 1, "prompt": "boy with headphones on a rooftop", "sceneType": "character", "hasCharacter": True}],
    }
    storyboard = StoryboardAgent(client=FakeClaude(reply), batch_delay=0).generate(lyrics(1), "klingon")

    scene = storyboard.scenes[0]
    assert scene.has_character is True
    assert scene.scene_type == "character"
    assert scene.prompt == "boy with headphones on a rooftop"
    assert storyboard.global_style == {"aesthetic": "pastel"}
    assert storyboard.character_description == "boy with headphones"


@pytest.mark.parametrize("reply", [["not", "an", "object"], {"scenes": []}])
def test_unusable_replies_raise(reply):
    agent = StoryboardAgent(client=FakeClaude(reply), batch_delay=0)
    with pytest.raises(GenerationError):
        agent.generate(lyrics(3), "english")
