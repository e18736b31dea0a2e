# backend/apollo_service/services/search_params.py
"""
LLM-driven generation of people search filters from free-form context.

Each attempt asks the model for a filter object, validates it, and probes
Apollo with a one-result search to learn the total. Attempts repeat (feeding
the failed history back to the model) until a probe finds at least one
person or the attempt budget runs out.

All spend lands on a single child run: token costs for every model call and
one search credit for every probe. Any error marks that run failed.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt

from ..core.config import get_settings
from ..schemas.search import SearchFilters
from .connectors.apollo import ApolloClient
from .filters import to_apollo_params
from .keys import CallerContext, KeysClient
from .llm import LLMClient, token_cost_names
from .pagination import APOLLO_KEY_PROVIDER
from .runs import SEARCH_CREDIT, TASK_SEARCH_PARAMS, CostLine, CostReporter, RunContext
from .search_params_prompt import SearchAttempt, build_user_message, get_system_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_llm_json(content: str) -> Optional[Any]:
    """Parse model output, tolerating a ```json fence. None if not JSON."""
    cleaned = _FENCE_RE.sub("", content.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


async def _resolve_keys(
    ctx: RunContext,
    key_source: str,
    keys: KeysClient,
    caller: CallerContext,
) -> tuple[str, str]:
    llm_provider = get_settings().LLM_PROVIDER_KEY_NAME
    if key_source == "byok":
        apollo_key = await keys.get_byok_key(ctx.org_id, APOLLO_KEY_PROVIDER, caller)
        llm_key = await keys.get_byok_key(ctx.org_id, llm_provider, caller)
    else:
        apollo_key = await keys.get_app_key(ctx.app_id, APOLLO_KEY_PROVIDER, caller)
        llm_key = await keys.get_app_key(ctx.app_id, llm_provider, caller)
    return apollo_key, llm_key


async def generate_search_params(
    ctx: RunContext,
    context: str,
    key_source: str,
    *,
    apollo: ApolloClient,
    keys: KeysClient,
    reporter: CostReporter,
    llm: LLMClient,
    caller: CallerContext,
    max_attempts: int | None = None,
) -> Dict[str, Any]:
    """
    Returns `{"search_params", "total_results", "attempts", "attempt_history"}`.

    `search_params` is the last filter object that passed validation (empty
    if none did), with the total its probe reported.
    """
    max_attempts = max_attempts or get_settings().SEARCH_PARAMS_MAX_ATTEMPTS
    apollo_key, llm_key = await _resolve_keys(ctx, key_source, keys, caller)
    run_id = await reporter.open_run(ctx, TASK_SEARCH_PARAMS)

    system_prompt = get_system_prompt()
    history: List[SearchAttempt] = []
    final: Dict[str, Any] = {"search_params": {}, "total_results": 0}

    async def _attempt() -> SearchAttempt:
        attempt_no = len(history) + 1
        response = await llm.complete(llm_key, system_prompt, build_user_message(context, history))

        input_cost, output_cost = token_cost_names(response.model)
        await reporter.charge(
            run_id,
            [CostLine(input_cost, response.input_tokens), CostLine(output_cost, response.output_tokens)],
        )

        raw = parse_llm_json(response.content)
        if raw is None:
            logger.warning(
                "Attempt %s: model returned invalid JSON: %s",
                attempt_no,
                response.content[:200],
                extra={"run_id": run_id, "step": "search_params"},
            )
            result = SearchAttempt(search_params={}, total_results=0)
            history.append(result)
            return result

        try:
            filters = SearchFilters.model_validate(raw).to_stored()
        except ValidationError as exc:
            logger.warning(
                "Attempt %s: generated filters failed validation: %s",
                attempt_no,
                exc.errors(include_url=False),
                extra={"run_id": run_id, "step": "search_params"},
            )
            result = SearchAttempt(search_params=raw if isinstance(raw, dict) else {}, total_results=0)
            history.append(result)
            return result

        probe = await apollo.search_people(apollo_key, to_apollo_params(filters, page=1, per_page=1))
        await reporter.charge(run_id, [CostLine(SEARCH_CREDIT, 1)])

        total = probe["total_entries"]
        logger.info(
            "Attempt %s: %s results",
            attempt_no,
            total,
            extra={"run_id": run_id, "step": "search_params"},
        )
        result = SearchAttempt(search_params=filters, total_results=total)
        history.append(result)
        final["search_params"] = filters
        final["total_results"] = total
        return result

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_result(lambda attempt: attempt.total_results == 0),
        # Out of attempts is not an error: answer with the best we have.
        retry_error_callback=lambda state: state.outcome.result(),
        reraise=True,
    )

    try:
        await retrying(_attempt)
        await reporter.complete(run_id)
    except Exception:
        logger.exception("Search params generation failed", extra={"run_id": run_id, "step": "search_params"})
        await reporter.fail(run_id)
        raise

    return {
        "search_params": final["search_params"],
        "total_results": final["total_results"],
        "attempts": len(history),
        "attempt_history": [
            {"search_params": a.search_params, "total_results": a.total_results} for a in history
        ],
    }
