"""Storyboard agent: lyric lines to per-line image prompts."""

import json
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .base import BaseAgent
from ..exceptions import GenerationError
from ..models import LyricSegment, Storyboard, StoryboardScene
from ..services.base import Storyboarder

# Lyrics per request
BATCH_SIZE = 15
# Lyrics sent with the first request of a batched run, which fixes the style
STYLE_SAMPLE_SIZE = 10

ETHNICITY_BY_LANGUAGE = {
    "chinese": "Chinese Asian face, East Asian features, black hair",
    "japanese": "Japanese face, East Asian features",
    "korean": "Korean face, East Asian features, Korean features",
    "english": "diverse ethnicity",
    "spanish": "Latino Hispanic face, Hispanic features",
}

SYSTEM_PROMPT = """You are a music video storyboard artist. You turn lyric lines into
visual shot descriptions for AI image generation, pacing character shots and
empty shots the way a music video director would.

Rules:
1. About 40-50% of shots show the character (has_character: true): lines about
   the singer or the listener, their feelings, actions or interactions.
2. About 50-60% are landscape, object or artistic shots (has_character: false):
   nature, abstract feelings shown as imagery, the passing of time. Prelude,
   interlude and outro markers are always empty shots. Insert an empty shot
   after two character shots in a row.
3. Character shots must keep one consistent look. Describe it once in
   character_description (face, hair, age, clothing) and start every
   character prompt with its core features plus "same character, consistent
   appearance".
4. Empty shots never mention a person.
5. Every shot shares one aesthetic, one color tone and one quality description.
6. Neighbouring shots should flow visually.

Output strict JSON only, no markdown:
{
    "global_style": {"aesthetic": "...", "color_tone": "...", "quality": "..."},
    "character_description": "...",
    "storyboard": [
        {"index": 1, "lyric": "...", "scene_type": "character|landscape|object|artistic",
         "prompt": "...", "has_character": true}
    ]
}"""


@dataclass
class StoryboardInput:
    """Input data for the storyboard agent."""

    lyrics: Sequence[LyricSegment]
    language: str
    genre: Optional[str] = None
    style_hint: Optional[str] = None
    mood: Optional[str] = None


class StoryboardAgent(BaseAgent[StoryboardInput, Storyboard], Storyboarder):
    """Agent generating the storyboard of a song.

    Songs longer than one batch are split: the first request fixes the
    global style and character, and every later batch is asked to keep them.
    """

    def __init__(self, *args: Any, batch_delay: float = 1.0, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._batch_delay = batch_delay

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "StoryboardAgent"

    @property
    def system_prompt(self) -> str:
        """Return the system prompt for storyboard generation."""
        return SYSTEM_PROMPT

    def generate(self, lyrics: Sequence[LyricSegment], language: str) -> Storyboard:
        return self.run(StoryboardInput(lyrics=lyrics, language=language))

    def run(self, input_data: StoryboardInput) -> Storyboard:
        """Generate the storyboard for every lyric line.

        Args:
            input_data: Lyrics, language and optional style hints.

        Returns:
            Storyboard whose scene indices match the lyric indices.

        Raises:
            GenerationError: If a request fails or returns unusable JSON.
        """
        lyrics = list(input_data.lyrics)
        self._logger.info(f"Generating storyboard for {len(lyrics)} lyrics ({input_data.language})")

        if len(lyrics) <= BATCH_SIZE:
            storyboard = self._generate_batch(lyrics, input_data)
            self._logger.info(f"Generated {len(storyboard.scenes)} scenes")
            return storyboard

        self._logger.info(f"{len(lyrics)} lyrics, generating in batches of {BATCH_SIZE}")
        first = self._generate_batch(lyrics[:STYLE_SAMPLE_SIZE], input_data)
        scenes: List[StoryboardScene] = list(first.scenes)

        style_hint = (
            f"{input_data.style_hint or ''}\n"
            f"Established global style: {json.dumps(first.global_style, ensure_ascii=False)}\n"
            f"Character description: {first.character_description}"
        )

        start = STYLE_SAMPLE_SIZE
        while start < len(lyrics):
            time.sleep(self._batch_delay)
            batch = lyrics[start:start + BATCH_SIZE]
            result = self._generate_batch(
                batch,
                input_data,
                style_hint=style_hint,
                index_offset=start,
            )
            scenes.extend(result.scenes)
            start += BATCH_SIZE

        self._logger.info(f"Generated {len(scenes)} scenes")
        return Storyboard(
            scenes=scenes,
            global_style=first.global_style,
            character_description=first.character_description,
        )

    def _generate_batch(
        self,
        batch: Sequence[LyricSegment],
        input_data: StoryboardInput,
        style_hint: Optional[str] = None,
        index_offset: int = 0,
    ) -> Storyboard:
        prompt = self._build_prompt(batch, input_data, style_hint or input_data.style_hint)
        data = self._create_json(prompt)
        return self._parse_response(data, input_data.language, index_offset)

    def _build_prompt(
        self,
        batch: Sequence[LyricSegment],
        input_data: StoryboardInput,
        style_hint: Optional[str],
    ) -> str:
        """Build the user prompt for one batch of lyrics."""
        ethnicity = ETHNICITY_BY_LANGUAGE.get(input_data.language, "diverse ethnicity")
        lyrics_data = [
            {
                "index": i + 1,
                "start_time": round(lyric.start_time, 2),
                "end_time": round(lyric.end_time, 2),
                "duration": round(lyric.duration, 2),
                "text": lyric.text,
                "special_type": lyric.special_type.value if lyric.special_type else None,
            }
            for i, lyric in enumerate(batch)
        ]

        prompt_parts = [
            f"SONG LANGUAGE: {input_data.language}",
            f"CHARACTER FACE: {ethnicity}",
            f"LYRIC COUNT: {len(batch)}",
            "",
            "LYRICS:",
            json.dumps(lyrics_data, ensure_ascii=False, indent=2),
        ]

        if input_data.genre:
            prompt_parts.append(f"GENRE: {input_data.genre}")
        if style_hint:
            prompt_parts.append(f"VISUAL STYLE: {style_hint.strip()}")
        if input_data.mood:
            prompt_parts.append(f"MOOD: {input_data.mood}")

        prompt_parts.extend([
            "",
            "Return one storyboard entry per lyric, using the same index.",
        ])

        return "\n".join(prompt_parts)

    def _parse_response(self, data: Any, language: str, index_offset: int) -> Storyboard:
        """Convert the parsed JSON reply into a Storyboard.

        Scene indices are shifted by ``index_offset`` so batches line up with
        the song-wide lyric indices.
        """
        if not isinstance(data, dict):
            raise GenerationError("Storyboard response is not a JSON object")

        entries = data.get("storyboard")
        if not isinstance(entries, list):
            raise GenerationError("Storyboard response does not contain a storyboard array")

        ethnicity = ETHNICITY_BY_LANGUAGE.get(language, "")
        scenes: List[StoryboardScene] = []

        for position, entry in enumerate(entries, start=1):
            has_character = bool(entry.get("has_character", entry.get("hasCharacter", False)))
            prompt = str(entry.get("prompt", ""))

            # Character prompts must carry the face description
            if has_character and ethnicity and not any(
                term.strip().lower() in prompt.lower() for term in ethnicity.split(",")
            ):
                prompt = f"{ethnicity}, {prompt}"

            scenes.append(StoryboardScene(
                index=int(entry.get("index", position)) + index_offset,
                prompt=prompt,
                scene_type=str(entry.get("scene_type", entry.get("sceneType", "unknown"))),
                has_character=has_character,
            ))

        global_style = dict(data.get("global_style") or data.get("globalStyle") or {})
        if ethnicity:
            global_style["ethnicity"] = ethnicity

        return Storyboard(
            scenes=scenes,
            global_style=global_style,
            character_description=data.get("character_description") or data.get("characterDescription"),
        )
