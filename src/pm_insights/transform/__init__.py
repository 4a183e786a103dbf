"""Deterministic derivation pipelines: normalization, velocity, risk, KPIs, sprints."""
