"""LLM judge for response quality.

Uses an LLM to rate an agent response against its query (and the expected
answer when one is known). Supports multi-vote judging (median across N calls)
to reduce noise. Single responsibility: just judging, no metric bookkeeping.

Public API:
    JudgeResult: Result of judging a response
    judge_quality: Judge one response with optional multi-vote
"""

from __future__ import annotations

import json
import logging
import os
import re
import statistics
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_JUDGE_MODEL = "claude-sonnet-4-5-20250929"


@dataclass
class JudgeResult:
    """Result of judging one response."""

    score: float  # 0.0 to 1.0
    reasoning: str
    vote_scores: list[float] | None = None


def _extract_json(text: str) -> dict:
    """Extract a JSON object from LLM response text.

    Handles raw JSON, markdown fenced blocks (with or without a language tag),
    and a bare ``{...}`` embedded in prose.

    Raises:
        json.JSONDecodeError: If no valid JSON object can be extracted
    """
    stripped = text.strip()

    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", stripped, re.DOTALL)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass

    brace_match = re.search(r"\{.*\}", stripped, re.DOTALL)
    if brace_match:
        try:
            return json.loads(brace_match.group(0))
        except json.JSONDecodeError:
            pass

    raise json.JSONDecodeError(
        f"No valid JSON found in response: {stripped[:200]}",
        stripped,
        0,
    )


def _build_judge_prompt(query: str, response: str, expected: str | None) -> str:
    expected_block = f"\nExpected Answer: {expected}\n" if expected else ""
    return f"""You are judging the quality of an AI agent's response.

Rate the response on a scale of 0.0 to 1.0 considering:
- Relevance: does it address the query?
- Completeness: does it answer every part of the query?
- Coherence: is it well structured and free of repetition?
- Accuracy: is it factually correct (matches the expected answer if given)?

Query: {query}
{expected_block}
Agent's Response: {response}

Return ONLY a JSON object with this structure:
{{"score": 0.85, "reasoning": "Brief explanation of the rating"}}"""


def _single_judge_call(client: object, model: str, prompt: str) -> JudgeResult:
    """Execute a single judging LLM call."""
    message = client.messages.create(  # type: ignore[attr-defined]
        model=model,
        max_tokens=500,
        messages=[{"role": "user", "content": prompt}],
    )

    response_text = message.content[0].text
    result_json = _extract_json(response_text)
    score = max(0.0, min(1.0, float(result_json["score"])))

    return JudgeResult(score=score, reasoning=str(result_json.get("reasoning", "")))


def judge_quality(
    query: str,
    response: str,
    expected: str | None = None,
    model: str = "",
    num_votes: int = 1,
) -> JudgeResult:
    """Judge a response with an LLM, taking the median of num_votes calls.

    Requires the ``ANTHROPIC_API_KEY`` env var. The model defaults to the
    ``JUDGE_MODEL`` env var, then DEFAULT_JUDGE_MODEL.

    Raises:
        OSError: If ANTHROPIC_API_KEY is not set
        RuntimeError: If every vote failed
    """
    if not response or not response.strip():
        return JudgeResult(score=0.0, reasoning="Agent provided no response")

    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise OSError("ANTHROPIC_API_KEY environment variable is required for LLM judging")

    import anthropic

    client = anthropic.Anthropic(api_key=api_key)
    judge_model = model or os.environ.get("JUDGE_MODEL", DEFAULT_JUDGE_MODEL)
    prompt = _build_judge_prompt(query, response, expected)

    num_votes = max(1, min(num_votes, 9))
    if num_votes == 1:
        return _single_judge_call(client, judge_model, prompt)

    vote_results: list[JudgeResult] = []
    for vote_idx in range(num_votes):
        try:
            vote_results.append(_single_judge_call(client, judge_model, prompt))
        except Exception as e:
            logger.warning("Judge vote %d failed: %s", vote_idx, e)

    if not vote_results:
        raise RuntimeError("All judge votes failed")

    vote_scores = [r.score for r in vote_results]
    median_score = statistics.median(vote_scores)
    closest_vote = min(vote_results, key=lambda r: abs(r.score - median_score))

    return JudgeResult(
        score=median_score,
        reasoning=f"[{len(vote_results)}-vote median] {closest_vote.reasoning}",
        vote_scores=vote_scores,
    )


__all__ = ["JudgeResult", "judge_quality"]
