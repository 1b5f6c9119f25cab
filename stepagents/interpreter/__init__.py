"""A restricted interpreter for agent-written Python code, and the tools it can call."""