"""Arbiter orchestration and the per-utterance message pipeline."""
