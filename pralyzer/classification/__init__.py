"""LLM classification of pull-request conversations."""
