"""
Re-classification and coaching through external vision/language models.

The analysis engine never calls this module. An orchestrator (the HTTP layer)
uses it to re-identify stored pose thumbnails and to request free-text
coaching built from a finished AnalysisResult.
"""

import base64
import json
import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import config
from errors import AnalysisError, UnsupportedModelError
from models import AnalysisResult, CoachingFeedback, DetectedPose, PoseIdentification, PoseName, round_half_up

logger = logging.getLogger(__name__)

POSE_IDENTIFICATION_PROMPT = """You are an expert IFBB Pro League judge. Analyze this frame and identify which of the 8 MANDATORY BODYBUILDING POSES is being performed.

THE 8 MANDATORY IFBB POSES:
1. front-double-biceps - Front-facing, arms raised to shoulder height, elbows bent ~90 degrees, fists clenched.
2. front-lat-spread - Front-facing, hands on waist, elbows pushed forward/outward.
3. side-chest - Side view, front arm bent across body, rear leg bent touching front calf.
4. back-double-biceps - Back-facing, arms raised like front double biceps, one leg back and flexed.
5. back-lat-spread - Back-facing, arms wide spreading lats, hands on waist.
6. side-triceps - Side view, near arm extended behind showing triceps, far hand grips near wrist.
7. abs-and-thighs - Front-facing, hands behind head, one leg forward.
8. most-muscular - Front-facing, dramatic contraction (crab/hands clasped/hands on hips).
9. general-transition-pose - Transition/relaxed pose between mandatories.

Score quality 0-100 on muscularity, symmetry, conditioning and presentation.

Respond with JSON only:
{
  "poseName": "exact name from list above",
  "confidence": 0-100,
  "quality": 0-100,
  "notes": "2-3 sentences on execution, strengths, and improvements"
}"""

_CAMEL_ALIASES = {
    "frontDoubleBiceps": PoseName.FRONT_DOUBLE_BICEPS,
    "backDoubleBiceps": PoseName.BACK_DOUBLE_BICEPS,
    "frontLatSpread": PoseName.FRONT_LAT_SPREAD,
    "backLatSpread": PoseName.BACK_LAT_SPREAD,
    "sideChest": PoseName.SIDE_CHEST,
    "sideTriceps": PoseName.SIDE_TRICEPS,
    "mostMuscular": PoseName.MOST_MUSCULAR,
    "absAndThighs": PoseName.ABS_AND_THIGHS,
    "abdominalAndThigh": PoseName.ABS_AND_THIGHS,
    "generalPose": PoseName.GENERAL_TRANSITION_POSE,
}


class VisionProvider(ABC):
    """Capability interface over one external model provider."""

    model_id: str = ""

    def identify_pose(self, thumbnail: str) -> PoseIdentification:
        return parse_identification(self._complete(POSE_IDENTIFICATION_PROMPT, image=thumbnail, max_tokens=512))

    def generate_text(self, prompt: str) -> str:
        return self._complete(prompt, max_tokens=2048)

    @abstractmethod
    def _complete(self, prompt: str, image: Optional[str] = None, max_tokens: int = 1024) -> str:
        """Send one prompt, optionally with a base64 JPEG, and return the reply text."""


class OpenAIProvider(VisionProvider):
    model_id = "gpt-4o"

    def __init__(self, api_key: Optional[str] = None):
        import openai

        self.client = openai.OpenAI(api_key=api_key or config.OPENAI_API_KEY)

    def _complete(self, prompt: str, image: Optional[str] = None, max_tokens: int = 1024) -> str:
        content: list[dict] = [{"type": "text", "text": prompt}]
        if image:
            content.append({"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image}"}})
        response = self.client.chat.completions.create(
            model=self.model_id,
            max_completion_tokens=max_tokens,
            response_format={"type": "json_object"},
            messages=[{"role": "user", "content": content}],
        )
        return response.choices[0].message.content or "{}"


class AnthropicProvider(VisionProvider):
    model_id = "claude-sonnet-4"
    api_model = "claude-sonnet-4-20250514"

    def __init__(self, api_key: Optional[str] = None):
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key or config.ANTHROPIC_API_KEY)

    def _complete(self, prompt: str, image: Optional[str] = None, max_tokens: int = 1024) -> str:
        content: list[dict] = []
        if image:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": "image/jpeg", "data": image},
            })
        content.append({"type": "text", "text": prompt + "\n\nRespond with valid JSON only."})
        message = self.client.messages.create(
            model=self.api_model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        text_block = next((b for b in message.content if b.type == "text"), None)
        return text_block.text if text_block is not None else "{}"


class GeminiProvider(VisionProvider):
    model_id = "gemini-2.5-pro"

    def __init__(self, api_key: Optional[str] = None, client=None):
        if client is None:
            from google import genai

            client = genai.Client(api_key=api_key or config.GEMINI_API_KEY)
        self.client = client

    def _complete(self, prompt: str, image: Optional[str] = None, max_tokens: int = 1024) -> str:
        contents: list = []
        if image:
            contents.append({"inline_data": {"data": base64.b64decode(image), "mime_type": "image/jpeg"}})
        contents.append(prompt)
        response = self.client.models.generate_content(
            model=self.model_id,
            contents=contents,
            config={"response_mime_type": "application/json"},
        )
        return response.text or "{}"


class GeminiFlashProvider(GeminiProvider):
    """Faster Gemini model, used for text-only coaching."""

    model_id = "gemini-2.5-flash"


PROVIDERS = {
    OpenAIProvider.model_id: OpenAIProvider,
    AnthropicProvider.model_id: AnthropicProvider,
    GeminiProvider.model_id: GeminiProvider,
    GeminiFlashProvider.model_id: GeminiFlashProvider,
}


def get_provider(model_id: str) -> VisionProvider:
    if model_id not in PROVIDERS:
        raise UnsupportedModelError(model_id, details={"supported": sorted(PROVIDERS)})
    return PROVIDERS[model_id]()


def _extract_json(text: str) -> dict:
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise AnalysisError("Model response contained no JSON object", "INVALID_MODEL_RESPONSE")
    try:
        return json.loads(match.group())
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Model response is not valid JSON: {e}", "INVALID_MODEL_RESPONSE") from e


def _to_pose_name(raw: str) -> PoseName:
    if raw in _CAMEL_ALIASES:
        return _CAMEL_ALIASES[raw]
    try:
        return PoseName(raw)
    except ValueError:
        logger.warning("Unknown pose name from model: %r", raw)
        return PoseName.GENERAL_TRANSITION_POSE


def _percent(value) -> int:
    try:
        return int(min(100, max(0, round_half_up(float(value)))))
    except (TypeError, ValueError, OverflowError):
        return 0


def parse_identification(text: str) -> PoseIdentification:
    data = _extract_json(text)
    return PoseIdentification(
        pose_name=_to_pose_name(str(data.get("poseName", ""))),
        quality_score=_percent(data.get("quality")),
        confidence=_percent(data.get("confidence")),
        notes=str(data.get("notes", "")),
    )


def _reidentify(pose: DetectedPose, provider: VisionProvider) -> DetectedPose:
    if not pose.thumbnail:
        return pose
    try:
        ident = provider.identify_pose(pose.thumbnail)
    except AnalysisError as e:
        logger.warning("Keeping %s at %ds: %s", pose.pose_name.value, pose.timestamp, e.message)
        return pose
    return pose.model_copy(update={"pose_name": ident.pose_name, "quality_score": ident.quality_score})


def reclassify_poses(
    poses: list[DetectedPose],
    provider: VisionProvider,
    max_workers: int = config.RECLASSIFY_WORKERS,
) -> list[DetectedPose]:
    """Return a new event list with names and scores from ``provider``.

    Events without a thumbnail are carried over unchanged; the input list is
    never modified.
    """
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        updated = list(pool.map(lambda p: _reidentify(p, provider), poses))
    logger.info("Re-classified %d poses with %s", len(updated), provider.model_id)
    return updated


def build_coaching_prompt(result: AnalysisResult) -> str:
    scores = result.category_scores
    poses = ", ".join(p.pose_name.value for p in result.detected_poses) or "none"
    return f"""As an expert bodybuilding coach, analyze this competitor's performance:

Scores (out of 100):
- Overall: {result.overall_score}
- Muscularity: {scores.muscularity}
- Symmetry: {scores.symmetry}
- Conditioning: {scores.conditioning}
- Posing: {scores.posing}
- Aesthetics: {scores.aesthetics}

Detected Poses: {poses}
Measurements: {result.measurements.model_dump_json()}

Provide personalized coaching in JSON format:
{{
  "strengths": ["strength 1", "strength 2", ...],
  "areasToImprove": ["area 1", "area 2", ...],
  "specificRecommendations": ["recommendation 1", "recommendation 2", ...],
  "trainingFocus": "overall training focus summary"
}}"""


def generate_coaching(result: AnalysisResult, provider: VisionProvider) -> CoachingFeedback:
    text = provider.generate_text(build_coaching_prompt(result))
    try:
        data = _extract_json(text)
    except AnalysisError:
        # Fallback: use raw text
        return CoachingFeedback(training_focus=text[:200])
    return CoachingFeedback(
        strengths=list(data.get("strengths", [])),
        areas_to_improve=list(data.get("areasToImprove", [])),
        specific_recommendations=list(data.get("specificRecommendations", [])),
        training_focus=str(data.get("trainingFocus", "")),
    )
