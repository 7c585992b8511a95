"""Contest domain services: window evaluation, questions, sessions,
submissions and the reveal gate.

Each module owns exactly one table and is imported by HTTP routes and the
in-process gateway, keeping transport concerns separated from the rules that
guard the contest.
"""
