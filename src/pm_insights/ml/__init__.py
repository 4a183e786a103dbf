"""Generative analysis with deterministic fallback.

This package contains:
- oracle.py: OpenAIOracle, the chat-completions transport
- insights.py: InsightOrchestrator (prompt -> oracle -> validate -> fallback)
- fallback.py: deterministic insights, recommendations and predictions

The oracle transport is kept apart from the orchestrator so the openai SDK is
only imported when a request is actually sent. Building prompts, the dry run
and every fallback path work on a base install without the [ml] extras.

Install the OpenAI SDK with: pip install -e ".[ml]"
"""
