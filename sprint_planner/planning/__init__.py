"""Velocity analytics, context assembly, prompting and orchestration."""
