"""Agents, their log steps and prompt helpers: tool calling, code writing and planning."""