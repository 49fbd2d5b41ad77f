"""LLM access - Gemini model and prompt templates"""
