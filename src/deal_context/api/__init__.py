"""FastAPI service exposing deal context and coaching prompts."""
