"""Compose ordered prompt queues for chat models and manage them as presets."""
